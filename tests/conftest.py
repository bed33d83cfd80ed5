import itertools
import re

import pytest

from app import create_app
from app.config import TestConfig
from app.extensions import db
from app.models import AuthorizedClient, User
from app.services.drive import FOLDER_MIME_TYPE, DriveCredential, DriveFileStore

_NAME = re.compile(r"name='((?:\\.|[^'\\])*)'")
_PARENT = re.compile(r"'((?:\\.|[^'\\])*)' in parents")
_MIME = re.compile(r"mimeType='([^']*)'")


def _unquote(value: str) -> str:
    return re.sub(r"\\(.)", r"\1", value)


class _Request:
    def __init__(self, drive, action):
        self._drive = drive
        self._action = action

    def execute(self):
        if self._drive.fail_with is not None:
            raise self._drive.fail_with
        return self._action()


class _Files:
    def __init__(self, drive):
        self._drive = drive

    def list(self, q, spaces=None, fields=None, pageToken=None):
        return _Request(self._drive, lambda: self._drive.search(q))

    def create(self, body, media_body=None, fields=None):
        return _Request(self._drive, lambda: self._drive.create(body, media_body))

    def update(self, fileId, body=None, media_body=None):
        return _Request(self._drive, lambda: self._drive.update(fileId, media_body))

    def get_media(self, fileId):
        return _Request(self._drive, lambda: self._drive.items[fileId]["content"])

    def delete(self, fileId):
        return _Request(self._drive, lambda: self._drive.remove(fileId))


class FakeDriveService:
    """In-memory stand-in for the Drive v3 service ``files()`` resource."""

    def __init__(self):
        self.items: dict[str, dict] = {}
        self.queries: list[str] = []
        self.uploads: list[str] = []
        self.credentials: list[DriveCredential] = []
        self.fail_with = None
        self._ids = itertools.count(1)

    def files(self):
        return _Files(self)

    def search(self, query: str) -> dict:
        self.queries.append(query)
        name = _NAME.search(query)
        parent = _PARENT.search(query)
        mime = _MIME.search(query)
        matches = []
        for item in self.items.values():
            if item["trashed"]:
                continue
            if name and item["name"] != _unquote(name.group(1)):
                continue
            if parent and _unquote(parent.group(1)) not in item["parents"]:
                continue
            if mime and item["mimeType"] != mime.group(1):
                continue
            matches.append(
                {
                    "id": item["id"],
                    "name": item["name"],
                    "createdTime": "2024-05-01T10:00:00.000Z",
                    "modifiedTime": "2024-05-02T11:30:00.000Z",
                    "size": str(len(item["content"])),
                }
            )
        return {"files": matches}

    def create(self, body: dict, media_body=None) -> dict:
        content = b""
        mime_type = body.get("mimeType", "")
        if media_body is not None:
            content = media_body.getbytes(0, media_body.size())
            mime_type = media_body.mimetype()
            self.uploads.append(body["name"])
        file_id = self._store(body["name"], content, body.get("parents"), mime_type)
        return {"id": file_id}

    def update(self, file_id: str, media_body) -> dict:
        item = self.items[file_id]
        item["content"] = media_body.getbytes(0, media_body.size())
        self.uploads.append(item["name"])
        return {"id": file_id}

    def remove(self, file_id: str):
        del self.items[file_id]
        return ""

    def _store(self, name, content, parents, mime_type) -> str:
        file_id = f"file-{next(self._ids)}"
        self.items[file_id] = {
            "id": file_id,
            "name": name,
            "mimeType": mime_type,
            "parents": list(parents or []),
            "content": content,
            "trashed": False,
        }
        return file_id

    def add_folder(self, name: str) -> str:
        return self._store(name, b"", None, FOLDER_MIME_TYPE)

    def add_file(self, name: str, content, parent_id: str) -> str:
        if isinstance(content, str):
            content = content.encode("utf-8")
        return self._store(name, content, [parent_id], "application/json")

    def find(self, name: str):
        for item in self.items.values():
            if item["name"] == name and not item["trashed"]:
                return item
        return None

    def factory(self, credential):
        self.credentials.append(credential)
        return self


@pytest.fixture
def drive():
    return FakeDriveService()


@pytest.fixture
def file_store(drive):
    return DriveFileStore(service_factory=drive.factory)


@pytest.fixture
def credential():
    return DriveCredential(access_token="ya29.test-token")


@pytest.fixture
def app(drive):
    app = create_app(TestConfig)
    app.extensions["drive_file_store"] = DriveFileStore(service_factory=drive.factory)
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def signed_in(app, client):
    with app.app_context():
        user = User(subject="google-1234", email="reader@example.com", name="Reader")
        user.authorized_client = AuthorizedClient(access_token="ya29.test-token")
        db.session.add(user)
        db.session.commit()
        user_id = user.id

    with client.session_transaction() as session:
        session["_user_id"] = str(user_id)
        session["_fresh"] = True
    return client
