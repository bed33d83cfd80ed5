import httplib2
from googleapiclient.errors import HttpError

from app.extensions import db
from app.models import User
from app.services.metadata import UrlMetadata


def _create_folder(client, name="Reading"):
    response = client.post("/api/folders", json={"name": name, "color": "#123456"})
    assert response.status_code == 201
    return response.get_json()


def _create_bookmark(client, **fields):
    payload = {"url": "https://example.com", "title": "Example", "tags": []}
    payload.update(fields)
    response = client.post("/api/bookmarks", json=payload)
    assert response.status_code == 201
    return response.get_json()


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_data_routes_require_sign_in(client):
    for method, path in [
        ("get", "/api/bookmarks"),
        ("post", "/api/bookmarks"),
        ("get", "/api/folders"),
        ("get", "/api/tags"),
        ("get", "/api/drive/init"),
        ("post", "/api/bookmarks/fetch-metadata"),
    ]:
        response = getattr(client, method)(path)
        assert response.status_code == 401, path


def test_bookmark_crud_flow(signed_in):
    assert signed_in.get("/api/bookmarks").get_json() == []

    created = _create_bookmark(
        signed_in, title="Python docs", url="https://docs.python.org", tags=["python"]
    )
    assert created["id"]
    assert created["createdAt"] == created["updatedAt"]
    assert created["metadata"]["visitCount"] == 0

    response = signed_in.get(f"/api/bookmarks/{created['id']}")
    assert response.status_code == 200
    assert response.get_json()["title"] == "Python docs"

    response = signed_in.put(
        f"/api/bookmarks/{created['id']}",
        json={"url": "https://docs.python.org/3/", "title": "Docs", "tags": []},
    )
    assert response.status_code == 200
    updated = response.get_json()
    assert updated["id"] == created["id"]
    assert updated["createdAt"] == created["createdAt"]
    assert updated["updatedAt"] > created["updatedAt"]

    response = signed_in.delete(f"/api/bookmarks/{created['id']}")
    assert response.status_code == 204
    assert response.data == b""
    assert signed_in.get("/api/bookmarks").get_json() == []


def test_missing_bookmark_is_empty_404(signed_in):
    for response in (
        signed_in.get("/api/bookmarks/nope"),
        signed_in.put("/api/bookmarks/nope", json={"url": "https://a.test"}),
        signed_in.delete("/api/bookmarks/nope"),
    ):
        assert response.status_code == 404
        assert response.data == b""


def test_invalid_bodies_are_rejected(signed_in):
    assert signed_in.post("/api/bookmarks", data="nope").status_code == 400
    assert signed_in.post("/api/bookmarks", json={"title": "no url"}).status_code == 400
    assert signed_in.post("/api/bookmarks", json={"url": "   "}).status_code == 400
    assert (
        signed_in.post(
            "/api/bookmarks", json={"url": "https://a.test", "tags": "python"}
        ).status_code
        == 400
    )
    assert signed_in.post("/api/folders", json={"color": "#fff"}).status_code == 400
    assert signed_in.post("/api/tags", json={}).status_code == 400


def test_search_and_filters(signed_in):
    folder = _create_folder(signed_in)
    match = _create_bookmark(
        signed_in, title="An EXAMPLE", folderId=folder["id"], tags=["python"]
    )
    _create_bookmark(signed_in, title="Other", url="https://other.test")

    response = signed_in.get("/api/bookmarks/search?q=exam")
    assert [item["id"] for item in response.get_json()] == [match["id"]]
    assert signed_in.get("/api/bookmarks/search").status_code == 400

    response = signed_in.get(f"/api/bookmarks/folder/{folder['id']}")
    assert [item["id"] for item in response.get_json()] == [match["id"]]

    response = signed_in.get("/api/bookmarks/tag/python")
    assert [item["id"] for item in response.get_json()] == [match["id"]]


def test_fetch_metadata(signed_in, monkeypatch):
    calls = []

    def fake_fetch(url, timeout, max_bytes):
        calls.append((url, timeout))
        return UrlMetadata(title="Example", og_image="https://example.com/i.png")

    monkeypatch.setattr("app.api.routes.fetch_metadata", fake_fetch)

    response = signed_in.post(
        "/api/bookmarks/fetch-metadata", json={"url": " https://example.com "}
    )

    assert response.status_code == 200
    body = response.get_json()
    assert body["title"] == "Example"
    assert body["ogImage"] == "https://example.com/i.png"
    assert body["siteName"] is None
    assert calls == [("https://example.com", 1.0)]


def test_fetch_metadata_requires_url(signed_in, monkeypatch):
    monkeypatch.setattr(
        "app.api.routes.fetch_metadata",
        lambda *args, **kwargs: UrlMetadata(title="unused"),
    )

    for payload in ({}, {"url": ""}, {"url": "  "}):
        response = signed_in.post("/api/bookmarks/fetch-metadata", json=payload)
        assert response.status_code == 400
        assert response.data == b""


def test_folder_routes(signed_in):
    signed_in.get("/api/drive/init")
    general, important = signed_in.get("/api/folders").get_json()
    bookmark = _create_bookmark(signed_in, folderId=important["id"])

    response = signed_in.put(
        f"/api/folders/{important['id']}", json={"name": "Starred", "order": 2}
    )
    assert response.status_code == 200
    assert signed_in.get(f"/api/folders/{important['id']}").get_json()["name"] == (
        "Starred"
    )

    response = signed_in.delete(f"/api/folders/{important['id']}")
    assert response.status_code == 204
    moved = signed_in.get(f"/api/bookmarks/{bookmark['id']}").get_json()
    assert moved["folderId"] == general["id"]

    assert signed_in.get("/api/folders/missing").status_code == 404


def test_deleting_last_folder_with_bookmarks_conflicts(signed_in):
    folder = _create_folder(signed_in, "Only")
    _create_bookmark(signed_in, folderId=folder["id"])

    response = signed_in.delete(f"/api/folders/{folder['id']}")

    assert response.status_code == 409
    assert "error" in response.get_json()


def test_folder_lock_and_unlock(signed_in):
    folder = _create_folder(signed_in, "Private")
    path = f"/api/folders/{folder['id']}"

    assert signed_in.put(f"{path}/lock", json={}).status_code == 400

    response = signed_in.put(f"{path}/lock", json={"password": "s3cret"})
    assert response.status_code == 200
    assert response.get_json()["isLocked"] is True

    response = signed_in.put(f"{path}/unlock", json={"password": "wrong"})
    assert response.status_code == 403

    response = signed_in.put(f"{path}/unlock", json={"password": "s3cret"})
    assert response.status_code == 200
    assert response.get_json()["isLocked"] is False


def test_tag_routes(signed_in):
    response = signed_in.post("/api/tags", json={"name": "python", "usageCount": 9})
    assert response.status_code == 201
    tag = response.get_json()
    assert tag["usageCount"] == 0

    bookmark = _create_bookmark(signed_in, tags=["python", "web"])

    assert [item["name"] for item in signed_in.get("/api/tags").get_json()] == [
        "python"
    ]
    assert signed_in.delete(f"/api/tags/{tag['id']}").status_code == 204
    assert signed_in.get("/api/tags").get_json() == []
    assert signed_in.get(f"/api/bookmarks/{bookmark['id']}").get_json()["tags"] == [
        "web"
    ]
    assert signed_in.delete(f"/api/tags/{tag['id']}").status_code == 404


def test_drive_init_creates_structure_once(signed_in, drive):
    response = signed_in.get("/api/drive/init")
    assert response.status_code == 200
    body = response.get_json()
    assert body["status"] == "success"
    assert body["created"] is True
    assert drive.find("BookmarkService") is not None
    assert drive.find("bookmarks.json") is not None

    assert signed_in.get("/api/drive/init").get_json()["created"] is False


def test_drive_init_reports_failures(signed_in, drive):
    drive.fail_with = HttpError(httplib2.Response({"status": 500}), b"boom")

    response = signed_in.get("/api/drive/init")

    assert response.status_code == 500
    assert response.get_json()["status"] == "error"


def test_store_failures_are_empty_500(signed_in, drive):
    drive.fail_with = HttpError(httplib2.Response({"status": 500}), b"boom")

    response = signed_in.get("/api/bookmarks")

    assert response.status_code == 500
    assert response.data == b""


def test_user_without_grant_cannot_reach_store(app, signed_in):
    with app.app_context():
        user = User.query.filter_by(subject="google-1234").first()
        user.authorized_client.access_token = None
        db.session.commit()

    assert signed_in.get("/api/bookmarks").status_code == 500


def test_drive_sync_is_acknowledged(signed_in):
    response = signed_in.post("/api/drive/sync")

    assert response.status_code == 200
    assert response.get_json()["status"] == "success"


def test_backup_routes(signed_in):
    assert signed_in.post("/api/backup").status_code == 404

    signed_in.get("/api/drive/init")
    response = signed_in.post("/api/backup")
    assert response.status_code == 201
    name = response.get_json()["name"]

    listed = signed_in.get("/api/backup").get_json()
    assert [item["name"] for item in listed] == [name]

    assert signed_in.delete(f"/api/backup/{name}").status_code == 204
    assert signed_in.get("/api/backup").get_json() == []
    assert signed_in.delete("/api/backup/bookmarks.json").status_code == 404
    assert signed_in.get("/api/drive/backups").status_code == 404


def test_unknown_api_path_is_json_404(client):
    response = client.get("/api/does-not-exist")

    assert response.status_code == 404
    assert response.get_json() == {"error": "not found"}


def test_cors_preflight_and_headers(client):
    response = client.options(
        "/api/bookmarks",
        headers={
            "Origin": "http://frontend.test",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Content-Type",
        },
    )

    assert response.status_code == 200
    assert response.headers["Access-Control-Allow-Origin"] == "http://frontend.test"
    assert response.headers["Access-Control-Allow-Credentials"] == "true"
    assert "DELETE" in response.headers["Access-Control-Allow-Methods"]
    assert response.headers["Access-Control-Allow-Headers"].lower() == "content-type"
    assert response.headers["Access-Control-Max-Age"] == "3600"

    response = client.get("/api/health", headers={"Origin": "http://frontend.test"})
    assert response.headers["Access-Control-Allow-Origin"] == "http://frontend.test"
    assert response.headers["Access-Control-Allow-Credentials"] == "true"

    response = client.get("/api/health", headers={"Origin": "http://evil.test"})
    assert "Access-Control-Allow-Origin" not in response.headers
