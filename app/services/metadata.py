from __future__ import annotations

import logging
import re
import warnings
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning

from app.services.errors import MetadataFetchFailed

log = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    # Several sites refuse obvious bots, so present a desktop browser.
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}

DEFAULT_TIMEOUT = 5.0
DEFAULT_MAX_BYTES = 2_500_000
FAILED_DESCRIPTION = "Failed to fetch page information"

FAVICON_RELS = (
    "icon",
    "shortcut icon",
    "apple-touch-icon",
    "apple-touch-icon-precomposed",
)
SUMMARY_SELECTORS = (
    "main p:first-of-type",
    "article p:first-of-type",
    "[role='main'] p:first-of-type",
    ".content p:first-of-type",
    "#content p:first-of-type",
    "p:first-of-type",
)
SUMMARY_MIN_LENGTH = 20
SUMMARY_MAX_LENGTH = 200
_NAVIGATION_WORDS = re.compile(
    r"(Home|About|Contact|Menu|Navigation|Cookie|Privacy|Terms)\s*"
)
_SENTENCE_END = re.compile(r"[.!?]")

# Abandoned fetches hold a worker until their own httpx timeout expires.
METADATA_WORKERS = 16
_executor = ThreadPoolExecutor(
    max_workers=METADATA_WORKERS, thread_name_prefix="url-metadata"
)


@dataclass
class UrlMetadata:
    title: str | None = None
    description: str | None = None
    favicon: str | None = None
    og_image: str | None = None
    site_name: str | None = None
    author: str | None = None
    keywords: str | None = None

    def as_dict(self):
        return {
            "title": self.title,
            "description": self.description,
            "favicon": self.favicon,
            "ogImage": self.og_image,
            "siteName": self.site_name,
            "author": self.author,
            "keywords": self.keywords,
        }


def degraded_metadata(url: str) -> UrlMetadata:
    return UrlMetadata(title=_host_of(url) or url, description=FAILED_DESCRIPTION)


def _host_of(url: str) -> str | None:
    try:
        return urlparse(url).hostname
    except ValueError:
        return None


def fetch_html(
    url: str, timeout: float, max_bytes: int, transport=None
) -> tuple[bytes, str | None, str]:
    """Return the capped body, the header charset (if any) and the final URL."""
    with httpx.Client(
        follow_redirects=True,
        timeout=timeout,
        headers=DEFAULT_HEADERS,
        transport=transport,
    ) as client:
        with client.stream("GET", url) as response:
            if response.status_code >= 400:
                raise MetadataFetchFailed(f"HTTP {response.status_code} for {url}")
            chunks = []
            total = 0
            for chunk in response.iter_bytes():
                total += len(chunk)
                if total > max_bytes:
                    break
                chunks.append(chunk)
            return b"".join(chunks), response.charset_encoding, str(response.url)


def _build_soup(html, encoding: str | None = None) -> BeautifulSoup:
    # Bytes without a header charset are sniffed from <meta charset>.
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)
        if isinstance(html, bytes):
            return BeautifulSoup(html, "lxml", from_encoding=encoding)
        return BeautifulSoup(html, "lxml")


def _normalize_space(text: str) -> str:
    return " ".join(text.split())


def _truncate(text: str) -> str:
    if len(text) > SUMMARY_MAX_LENGTH:
        return text[: SUMMARY_MAX_LENGTH - 3] + "..."
    return text


def meta_content(soup: BeautifulSoup, key: str) -> str | None:
    for attr in ("property", "name"):
        tag = soup.find("meta", attrs={attr: key})
        if tag is not None:
            return (tag.get("content") or "").strip() or None
    return None


def extract_title(soup: BeautifulSoup) -> str | None:
    title = meta_content(soup, "og:title") or meta_content(soup, "twitter:title")
    if title:
        return title
    if soup.title is not None:
        return _normalize_space(soup.title.get_text()) or None
    return None


def extract_description(soup: BeautifulSoup) -> str | None:
    return (
        meta_content(soup, "og:description")
        or meta_content(soup, "twitter:description")
        or meta_content(soup, "description")
        or summarize(soup)
    )


def summarize(soup: BeautifulSoup) -> str | None:
    for selector in SUMMARY_SELECTORS:
        paragraph = soup.select_one(selector)
        if paragraph is None:
            continue
        text = _normalize_space(paragraph.get_text(" "))
        if len(text) > SUMMARY_MIN_LENGTH:
            return _truncate(text)

    if soup.body is None:
        return None
    body_text = _normalize_space(soup.body.get_text(" "))
    if len(body_text) <= 50:
        return None
    body_text = _NAVIGATION_WORDS.sub("", body_text)
    for sentence in _SENTENCE_END.split(body_text):
        sentence = sentence.strip()
        if len(sentence) > SUMMARY_MIN_LENGTH:
            return _truncate(sentence)
    return None


def extract_favicon(soup: BeautifulSoup, page_url: str) -> str | None:
    base_url = page_url
    base = soup.find("base", href=True)
    if base is not None:
        base_url = urljoin(page_url, base["href"])

    links = soup.find_all("link", href=True)
    for rel in FAVICON_RELS:
        for link in links:
            link_rel = " ".join(link.get("rel") or []).strip().lower()
            href = (link.get("href") or "").strip()
            if link_rel == rel and href:
                return urljoin(base_url, href)

    parsed = urlparse(page_url)
    if not parsed.scheme or not parsed.hostname:
        return None
    return f"{parsed.scheme}://{parsed.hostname}/favicon.ico"


def extract_author(soup: BeautifulSoup) -> str | None:
    return meta_content(soup, "author") or meta_content(soup, "article:author")


def parse_metadata(
    html: str | bytes, page_url: str, encoding: str | None = None
) -> UrlMetadata:
    soup = _build_soup(html, encoding)
    return UrlMetadata(
        title=extract_title(soup),
        description=extract_description(soup),
        favicon=extract_favicon(soup, page_url),
        og_image=meta_content(soup, "og:image"),
        site_name=meta_content(soup, "og:site_name"),
        author=extract_author(soup),
        keywords=meta_content(soup, "keywords"),
    )


def scrape_metadata(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    max_bytes: int = DEFAULT_MAX_BYTES,
    transport=None,
) -> UrlMetadata:
    try:
        body, encoding, final_url = fetch_html(
            url, timeout, max_bytes, transport=transport
        )
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise MetadataFetchFailed(str(exc) or exc.__class__.__name__) from exc
    return parse_metadata(body, final_url, encoding)


def fetch_metadata(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    max_bytes: int = DEFAULT_MAX_BYTES,
    transport=None,
) -> UrlMetadata:
    """Scrape page metadata, giving up after ``timeout`` seconds.

    The scrape runs on a worker thread. When it is too slow or fails, the
    worker is abandoned and a degraded result naming the host is returned, so
    this never raises.
    """
    future = _executor.submit(scrape_metadata, url, timeout, max_bytes, transport)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        future.cancel()
        log.warning("Timed out fetching metadata for %s", url)
    except Exception as exc:
        log.warning("Failed to fetch metadata for %s: %s", url, exc)
    return degraded_metadata(url)
