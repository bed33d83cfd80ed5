"""Bookmark, folder and tag operations over the Drive-hosted JSON document.

Each operation loads the whole document, changes it in memory and writes the
whole document back. There is no locking or version check: when two requests
mutate concurrently the later write wins.
"""

from __future__ import annotations

import json
import logging
import re

from flask import current_app
from werkzeug.security import check_password_hash, generate_password_hash

from app.services.common import new_id, next_timestamp, utcnow
from app.services.documents import (
    Bookmark,
    BookmarkData,
    BookmarkMetadata,
    Folder,
    Tag,
)
from app.services.drive import DriveCredential, DriveFileStore, RemoteFile
from app.services.errors import (
    FolderFallbackMissing,
    InvalidFolderPassword,
    NotFound,
    StoreCorrupt,
)
from app.services.security import current_drive_credential

log = logging.getLogger(__name__)

DEFAULT_FOLDER_NAME = "BookmarkService"
DEFAULT_DATA_FILE = "bookmarks.json"
BACKUP_NAME_PATTERN = re.compile(r"^backup-\d{8}T\d{6}Z\.json$")


def default_folders() -> list[Folder]:
    return [
        Folder(
            id=new_id(),
            name="일반",
            parent_id=None,
            is_locked=False,
            color="#4285F4",
            icon="folder",
            order=1,
        ),
        Folder(
            id=new_id(),
            name="중요",
            parent_id=None,
            is_locked=False,
            color="#EA4335",
            icon="star",
            order=2,
        ),
    ]


def _contains(value: str | None, needle: str) -> bool:
    return bool(value) and needle in value.lower()


def bookmark_matches(bookmark: Bookmark, query: str) -> bool:
    needle = query.lower()
    return (
        _contains(bookmark.title, needle)
        or _contains(bookmark.description, needle)
        or _contains(bookmark.url, needle)
        or any(_contains(tag, needle) for tag in bookmark.tags)
    )


def _index_of(items, identifier: str) -> int | None:
    for index, item in enumerate(items):
        if item.id == identifier:
            return index
    return None


class BookmarkStore:
    def __init__(
        self,
        file_store: DriveFileStore,
        credential: DriveCredential | None,
        folder_name: str = DEFAULT_FOLDER_NAME,
        data_file: str = DEFAULT_DATA_FILE,
    ):
        self.file_store = file_store
        self.credential = credential
        self.folder_name = folder_name
        self.data_file = data_file
        self._container_id: str | None = None

    @property
    def container_id(self) -> str:
        if self._container_id is None:
            self._container_id = self.file_store.ensure_container(
                self.credential, self.folder_name
            )
        return self._container_id

    def _read_raw(self) -> str | None:
        return self.file_store.read_file(
            self.credential, self.data_file, self.container_id
        )

    def load(self) -> BookmarkData:
        content = self._read_raw()
        if content is None:
            return BookmarkData()
        try:
            return BookmarkData.from_dict(json.loads(content))
        except ValueError as exc:
            raise StoreCorrupt(f"{self.data_file} could not be parsed: {exc}") from exc

    def save(self, data: BookmarkData) -> None:
        data.last_modified = utcnow()
        content = json.dumps(data.as_dict(), ensure_ascii=False)
        self.file_store.write_file(
            self.credential, self.data_file, content, self.container_id
        )

    def initialize(self) -> bool:
        if self._read_raw() is not None:
            return False

        self.save(BookmarkData(folders=default_folders()))
        log.info("Initialized bookmark data in Drive folder %s", self.folder_name)
        return True

    # Bookmarks

    def list_bookmarks(self) -> list[Bookmark]:
        return self.load().bookmarks

    def get_bookmark(self, bookmark_id: str) -> Bookmark:
        data = self.load()
        index = _index_of(data.bookmarks, bookmark_id)
        if index is None:
            raise NotFound("bookmark", bookmark_id)
        return data.bookmarks[index]

    def create_bookmark(self, bookmark: Bookmark) -> Bookmark:
        data = self.load()

        now = utcnow()
        bookmark.id = new_id()
        bookmark.created_at = now
        bookmark.updated_at = now
        if bookmark.metadata is None:
            bookmark.metadata = BookmarkMetadata(visit_count=0)

        data.bookmarks.append(bookmark)
        self.save(data)
        log.info("Created bookmark %s", bookmark.id)
        return bookmark

    def update_bookmark(self, bookmark_id: str, updated: Bookmark) -> Bookmark:
        data = self.load()
        index = _index_of(data.bookmarks, bookmark_id)
        if index is None:
            raise NotFound("bookmark", bookmark_id)

        existing = data.bookmarks[index]
        updated.id = bookmark_id
        updated.created_at = existing.created_at
        updated.updated_at = next_timestamp(existing.updated_at)
        data.bookmarks[index] = updated
        self.save(data)
        log.info("Updated bookmark %s", bookmark_id)
        return updated

    def delete_bookmark(self, bookmark_id: str) -> None:
        data = self.load()
        index = _index_of(data.bookmarks, bookmark_id)
        if index is None:
            raise NotFound("bookmark", bookmark_id)

        del data.bookmarks[index]
        self.save(data)
        log.info("Deleted bookmark %s", bookmark_id)

    def search_bookmarks(self, query: str) -> list[Bookmark]:
        return [
            bookmark for bookmark in self.load().bookmarks
            if bookmark_matches(bookmark, query)
        ]

    def bookmarks_by_folder(self, folder_id: str) -> list[Bookmark]:
        return [
            bookmark for bookmark in self.load().bookmarks
            if bookmark.folder_id == folder_id
        ]

    def bookmarks_by_tag(self, tag: str) -> list[Bookmark]:
        return [bookmark for bookmark in self.load().bookmarks if tag in bookmark.tags]

    # Folders

    def list_folders(self) -> list[Folder]:
        return self.load().folders

    def get_folder(self, folder_id: str) -> Folder:
        data = self.load()
        index = _index_of(data.folders, folder_id)
        if index is None:
            raise NotFound("folder", folder_id)
        return data.folders[index]

    def create_folder(self, folder: Folder) -> Folder:
        data = self.load()

        folder.id = new_id()
        if folder.order is None:
            folder.order = len(data.folders) + 1

        data.folders.append(folder)
        self.save(data)
        log.info("Created folder %s", folder.id)
        return folder

    def update_folder(self, folder_id: str, updated: Folder) -> Folder:
        data = self.load()
        index = _index_of(data.folders, folder_id)
        if index is None:
            raise NotFound("folder", folder_id)

        updated.id = folder_id
        data.folders[index] = updated
        self.save(data)
        log.info("Updated folder %s", folder_id)
        return updated

    def delete_folder(self, folder_id: str) -> None:
        """Remove a folder, moving its bookmarks to the first remaining folder.

        Raises ``FolderFallbackMissing`` when the folder still holds bookmarks
        and no other folder exists to receive them.
        """
        data = self.load()
        index = _index_of(data.folders, folder_id)
        if index is None:
            raise NotFound("folder", folder_id)

        remaining = [folder for folder in data.folders if folder.id != folder_id]
        orphans = [
            bookmark for bookmark in data.bookmarks if bookmark.folder_id == folder_id
        ]
        if orphans and not remaining:
            raise FolderFallbackMissing(
                f"cannot delete folder {folder_id}: no other folder for "
                f"{len(orphans)} bookmark(s)"
            )

        for bookmark in orphans:
            bookmark.folder_id = remaining[0].id
        data.folders = remaining
        self.save(data)
        log.info("Deleted folder %s, moved %s bookmark(s)", folder_id, len(orphans))

    def lock_folder(self, folder_id: str, password: str) -> Folder:
        data = self.load()
        index = _index_of(data.folders, folder_id)
        if index is None:
            raise NotFound("folder", folder_id)

        folder = data.folders[index]
        folder.is_locked = True
        folder.password_hash = generate_password_hash(password)
        self.save(data)
        log.info("Locked folder %s", folder_id)
        return folder

    def unlock_folder(self, folder_id: str, password: str) -> Folder:
        data = self.load()
        index = _index_of(data.folders, folder_id)
        if index is None:
            raise NotFound("folder", folder_id)

        folder = data.folders[index]
        if not folder.is_locked:
            return folder
        if not folder.password_hash or not check_password_hash(
            folder.password_hash, password
        ):
            raise InvalidFolderPassword(folder_id)

        folder.is_locked = False
        folder.password_hash = None
        self.save(data)
        log.info("Unlocked folder %s", folder_id)
        return folder

    # Tags

    def list_tags(self) -> list[Tag]:
        return self.load().tags

    def create_tag(self, tag: Tag) -> Tag:
        data = self.load()

        tag.id = new_id()
        tag.usage_count = 0

        data.tags.append(tag)
        self.save(data)
        log.info("Created tag %s", tag.id)
        return tag

    def delete_tag(self, tag_id: str) -> None:
        data = self.load()
        index = _index_of(data.tags, tag_id)
        if index is None:
            raise NotFound("tag", tag_id)

        label = data.tags[index].name
        for bookmark in data.bookmarks:
            bookmark.tags = [name for name in bookmark.tags if name != label]
        del data.tags[index]
        self.save(data)
        log.info("Deleted tag %s", tag_id)

    # Backups

    def create_backup(self) -> str:
        content = self._read_raw()
        if content is None:
            raise NotFound("document", self.data_file)

        name = f"backup-{utcnow():%Y%m%dT%H%M%SZ}.json"
        self.file_store.write_file(self.credential, name, content, self.container_id)
        log.info("Created backup %s", name)
        return name

    def list_backups(self) -> list[RemoteFile]:
        files = self.file_store.list_files(self.credential, self.container_id)
        backups = [item for item in files if BACKUP_NAME_PATTERN.match(item.name)]
        backups.sort(key=lambda item: item.name, reverse=True)
        return backups

    def delete_backup(self, name: str) -> None:
        if not BACKUP_NAME_PATTERN.match(name or ""):
            raise NotFound("backup", name)
        if not self.file_store.delete_file(self.credential, name, self.container_id):
            raise NotFound("backup", name)
        log.info("Deleted backup %s", name)


def store_for_current_user() -> BookmarkStore:
    return BookmarkStore(
        current_app.extensions["drive_file_store"],
        current_drive_credential(),
        folder_name=current_app.config["DRIVE_FOLDER_NAME"],
        data_file=current_app.config["DRIVE_DATA_FILE"],
    )
