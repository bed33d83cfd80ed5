"""Named-file access inside one Google Drive folder.

Every call takes the caller's credential explicitly; nothing here reads the
request or session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import Error as GoogleApiError
from googleapiclient.http import MediaInMemoryUpload

from app.services.common import format_timestamp, parse_timestamp
from app.services.errors import RemoteCallFailed, StoreCorrupt, StoreUnavailable

log = logging.getLogger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
JSON_MIME_TYPE = "application/json"
TOKEN_LIFETIME = timedelta(hours=1)

_TRANSPORT_ERRORS = (GoogleApiError, GoogleAuthError, httplib2.HttpLib2Error, OSError)


@dataclass
class DriveCredential:
    access_token: str | None
    # The real expiry of the grant is not tracked; assume a fresh hour.
    expiry: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc) + TOKEN_LIFETIME
    )

    def to_google_credentials(self) -> Credentials:
        # google-auth compares expiry against a naive UTC clock.
        expiry = self.expiry.astimezone(timezone.utc).replace(tzinfo=None)
        return Credentials(token=self.access_token, expiry=expiry)


@dataclass
class RemoteFile:
    id: str
    name: str
    created_at: datetime | None
    modified_at: datetime | None
    size: int | None

    @classmethod
    def from_api(cls, item: dict) -> RemoteFile:
        size = item.get("size")
        return cls(
            id=item["id"],
            name=item.get("name") or "",
            created_at=parse_timestamp(item.get("createdTime")),
            modified_at=parse_timestamp(item.get("modifiedTime")),
            size=int(size) if size is not None else None,
        )

    def as_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "createdAt": format_timestamp(self.created_at),
            "modifiedAt": format_timestamp(self.modified_at),
            "size": self.size,
        }


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def _execute(request, action: str):
    try:
        return request.execute()
    except _TRANSPORT_ERRORS as exc:
        raise RemoteCallFailed(f"Drive {action} failed: {exc}") from exc


def _build_service(credential: DriveCredential):
    return build(
        "drive",
        "v3",
        credentials=credential.to_google_credentials(),
        cache_discovery=False,
    )


class DriveFileStore:
    def __init__(self, service_factory=None):
        self._service_factory = service_factory or _build_service

    def _service(self, credential: DriveCredential | None):
        if credential is None or not credential.access_token:
            raise StoreUnavailable("Drive service is not available")
        try:
            return self._service_factory(credential)
        except _TRANSPORT_ERRORS as exc:
            raise RemoteCallFailed(f"Drive client setup failed: {exc}") from exc

    def _first_id(self, service, query: str) -> str | None:
        result = _execute(
            service.files().list(q=query, spaces="drive", fields="files(id, name)"),
            "search",
        )
        files = result.get("files") or []
        if files:
            return files[0]["id"]
        return None

    def _find_file(self, service, name: str, container_id: str) -> str | None:
        query = (
            f"name={_quote(name)} and {_quote(container_id)} in parents "
            "and trashed=false"
        )
        return self._first_id(service, query)

    def ensure_container(self, credential: DriveCredential | None, name: str) -> str:
        service = self._service(credential)
        query = (
            f"name={_quote(name)} and mimeType='{FOLDER_MIME_TYPE}' and trashed=false"
        )
        folder_id = self._first_id(service, query)
        if folder_id:
            return folder_id

        folder = _execute(
            service.files().create(
                body={"name": name, "mimeType": FOLDER_MIME_TYPE}, fields="id"
            ),
            "folder create",
        )
        log.info("Created Drive folder %s with id %s", name, folder["id"])
        return folder["id"]

    def read_file(
        self, credential: DriveCredential | None, name: str, container_id: str
    ) -> str | None:
        service = self._service(credential)
        file_id = self._find_file(service, name, container_id)
        if file_id is None:
            return None

        data = _execute(service.files().get_media(fileId=file_id), "download")
        if isinstance(data, str):
            return data
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise StoreCorrupt(f"{name} is not valid UTF-8") from exc

    def write_file(
        self,
        credential: DriveCredential | None,
        name: str,
        content: str,
        container_id: str,
    ) -> None:
        service = self._service(credential)
        file_id = self._find_file(service, name, container_id)
        media = MediaInMemoryUpload(
            content.encode("utf-8"), mimetype=JSON_MIME_TYPE, resumable=False
        )

        if file_id is not None:
            _execute(
                service.files().update(fileId=file_id, body={}, media_body=media),
                "update",
            )
            log.info("Updated Drive file %s", name)
            return

        _execute(
            service.files().create(
                body={"name": name, "parents": [container_id]},
                media_body=media,
                fields="id",
            ),
            "create",
        )
        log.info("Created Drive file %s", name)

    def delete_file(
        self, credential: DriveCredential | None, name: str, container_id: str
    ) -> bool:
        service = self._service(credential)
        file_id = self._find_file(service, name, container_id)
        if file_id is None:
            return False
        _execute(service.files().delete(fileId=file_id), "delete")
        log.info("Deleted Drive file %s", name)
        return True

    def list_files(
        self, credential: DriveCredential | None, container_id: str
    ) -> list[RemoteFile]:
        service = self._service(credential)
        query = f"{_quote(container_id)} in parents and trashed=false"
        items: list[RemoteFile] = []
        page_token = None
        while True:
            result = _execute(
                service.files().list(
                    q=query,
                    spaces="drive",
                    fields=(
                        "nextPageToken, "
                        "files(id, name, createdTime, modifiedTime, size)"
                    ),
                    pageToken=page_token,
                ),
                "list",
            )
            items.extend(RemoteFile.from_api(item) for item in result.get("files") or [])
            page_token = result.get("nextPageToken")
            if not page_token:
                break
        return items
