import uuid
from datetime import datetime, timedelta, timezone

from dateutil import parser as dt_parser

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def new_id() -> str:
    return str(uuid.uuid4())


def format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = dt_parser.isoparse(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).replace(microsecond=0)


def next_timestamp(previous: datetime | None) -> datetime:
    """Return now, or one second past ``previous`` if the clock has not moved."""
    now = utcnow()
    if previous is not None and now <= previous:
        return previous + timedelta(seconds=1)
    return now


def clean_text(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
