"""Entities of the bookmark document stored in Drive.

The document is one JSON envelope::

    {"version": "1.0", "lastModified": "...", "bookmarks": [...],
     "folders": [...], "tags": [...]}

Keys are camelCase on the wire. ``from_dict`` raises ``ValueError`` for
payloads of the wrong shape; callers decide whether that means a corrupt
store or a bad request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from app.services.common import format_timestamp, parse_timestamp

DOCUMENT_VERSION = "1.0"


def _require_mapping(payload, kind: str) -> dict:
    if not isinstance(payload, dict):
        raise ValueError(f"{kind} must be an object")
    return payload


def _optional_str(payload: dict, key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        raise ValueError(f"{key} must be a string")
    return str(value)


def _optional_int(payload: dict, key: str) -> int | None:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"{key} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{key} must be an integer") from exc


def _optional_bool(payload: dict, key: str) -> bool | None:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _timestamp(payload: dict, key: str) -> datetime | None:
    try:
        return parse_timestamp(payload.get(key))
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValueError(f"{key} is not a valid timestamp") from exc


def _string_list(payload: dict, key: str) -> list[str]:
    value = payload.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{key} must be a list")
    if not all(isinstance(item, str) for item in value):
        raise ValueError(f"{key} must contain only strings")
    return list(value)


def _object_list(payload: dict, key: str, factory) -> list:
    value = payload.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{key} must be a list")
    return [factory(item) for item in value]


@dataclass
class BookmarkMetadata:
    visit_count: int | None = 0
    last_visited: datetime | None = None
    custom_data: dict | None = None

    @classmethod
    def from_dict(cls, payload) -> BookmarkMetadata:
        payload = _require_mapping(payload, "metadata")
        custom_data = payload.get("customData")
        if custom_data is not None and not isinstance(custom_data, dict):
            raise ValueError("customData must be an object")
        return cls(
            visit_count=_optional_int(payload, "visitCount"),
            last_visited=_timestamp(payload, "lastVisited"),
            custom_data=custom_data,
        )

    def as_dict(self):
        return {
            "visitCount": self.visit_count,
            "lastVisited": format_timestamp(self.last_visited),
            "customData": self.custom_data,
        }


@dataclass
class Bookmark:
    url: str | None = None
    title: str | None = None
    description: str | None = None
    folder_id: str | None = None
    tags: list[str] = field(default_factory=list)
    favicon: str | None = None
    metadata: BookmarkMetadata | None = None
    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_dict(cls, payload) -> Bookmark:
        payload = _require_mapping(payload, "bookmark")
        metadata = payload.get("metadata")
        return cls(
            id=_optional_str(payload, "id"),
            url=_optional_str(payload, "url"),
            title=_optional_str(payload, "title"),
            description=_optional_str(payload, "description"),
            folder_id=_optional_str(payload, "folderId"),
            tags=_string_list(payload, "tags"),
            favicon=_optional_str(payload, "favicon"),
            metadata=BookmarkMetadata.from_dict(metadata)
            if metadata is not None
            else None,
            created_at=_timestamp(payload, "createdAt"),
            updated_at=_timestamp(payload, "updatedAt"),
        )

    def as_dict(self):
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "description": self.description,
            "folderId": self.folder_id,
            "tags": list(self.tags),
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
            "favicon": self.favicon,
            "metadata": self.metadata.as_dict() if self.metadata else None,
        }


@dataclass
class Folder:
    name: str | None = None
    parent_id: str | None = None
    is_locked: bool | None = False
    password_hash: str | None = None
    color: str | None = None
    icon: str | None = None
    order: int | None = None
    id: str | None = None

    @classmethod
    def from_dict(cls, payload) -> Folder:
        payload = _require_mapping(payload, "folder")
        return cls(
            id=_optional_str(payload, "id"),
            name=_optional_str(payload, "name"),
            parent_id=_optional_str(payload, "parentId"),
            is_locked=_optional_bool(payload, "isLocked"),
            password_hash=_optional_str(payload, "passwordHash"),
            color=_optional_str(payload, "color"),
            icon=_optional_str(payload, "icon"),
            order=_optional_int(payload, "order"),
        )

    def as_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "parentId": self.parent_id,
            "isLocked": self.is_locked,
            "passwordHash": self.password_hash,
            "color": self.color,
            "icon": self.icon,
            "order": self.order,
        }


@dataclass
class Tag:
    name: str | None = None
    color: str | None = None
    # Set to zero on create and not maintained afterwards.
    usage_count: int | None = 0
    id: str | None = None

    @classmethod
    def from_dict(cls, payload) -> Tag:
        payload = _require_mapping(payload, "tag")
        return cls(
            id=_optional_str(payload, "id"),
            name=_optional_str(payload, "name"),
            color=_optional_str(payload, "color"),
            usage_count=_optional_int(payload, "usageCount"),
        )

    def as_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "usageCount": self.usage_count,
        }


@dataclass
class BookmarkData:
    version: str = DOCUMENT_VERSION
    last_modified: datetime | None = None
    bookmarks: list[Bookmark] = field(default_factory=list)
    folders: list[Folder] = field(default_factory=list)
    tags: list[Tag] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload) -> BookmarkData:
        payload = _require_mapping(payload, "document")
        return cls(
            version=_optional_str(payload, "version") or DOCUMENT_VERSION,
            last_modified=_timestamp(payload, "lastModified"),
            bookmarks=_object_list(payload, "bookmarks", Bookmark.from_dict),
            folders=_object_list(payload, "folders", Folder.from_dict),
            tags=_object_list(payload, "tags", Tag.from_dict),
        )

    def as_dict(self):
        return {
            "version": self.version,
            "lastModified": format_timestamp(self.last_modified),
            "bookmarks": [bookmark.as_dict() for bookmark in self.bookmarks],
            "folders": [folder.as_dict() for folder in self.folders],
            "tags": [tag.as_dict() for tag in self.tags],
        }
