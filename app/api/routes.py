from __future__ import annotations

from flask import current_app, jsonify, request
from flask_login import current_user, logout_user

from app.api import api_bp
from app.services.bookmarks import store_for_current_user
from app.services.common import clean_text
from app.services.documents import Bookmark, Folder, Tag
from app.services.errors import (
    FolderFallbackMissing,
    InvalidFolderPassword,
    NotFound,
    StoreError,
)
from app.services.metadata import fetch_metadata
from app.services.security import api_auth_required


def _json_payload() -> dict | None:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return None
    return payload


def _bad_request(message: str):
    return jsonify({"error": message}), 400


def _parse_entity(factory, required_field: str):
    """Build an entity from the JSON body, or return a 400 response."""
    payload = _json_payload()
    if payload is None:
        return None, _bad_request("JSON object body is required")
    try:
        entity = factory(payload)
    except ValueError as exc:
        return None, _bad_request(str(exc))
    if not clean_text(getattr(entity, required_field)):
        return None, _bad_request(f"{required_field} is required")
    return entity, None


@api_bp.errorhandler(NotFound)
def handle_not_found(exc):
    return "", 404


@api_bp.errorhandler(FolderFallbackMissing)
def handle_folder_fallback_missing(exc):
    return jsonify({"error": str(exc)}), 409


@api_bp.errorhandler(InvalidFolderPassword)
def handle_invalid_folder_password(exc):
    return jsonify({"error": "invalid folder password"}), 403


@api_bp.errorhandler(StoreError)
def handle_store_error(exc):
    current_app.logger.exception(
        "Bookmark store failure on %s %s: %s", request.method, request.path, exc
    )
    return "", 500


@api_bp.route("/health")
def health():
    return jsonify({"status": "ok", "service": "DriveMarks"})


@api_bp.route("/auth/user", methods=["GET"])
def auth_user():
    if not current_user.is_authenticated:
        return jsonify(None)
    return jsonify(current_user.as_dict())


@api_bp.route("/auth/status", methods=["GET"])
def auth_status():
    return jsonify({"authenticated": bool(current_user.is_authenticated)})


@api_bp.route("/auth/logout", methods=["POST"])
def auth_logout():
    if current_user.is_authenticated:
        current_app.logger.info("User %s logged out", current_user.email)
        logout_user()
    return jsonify({"message": "Logout successful"})


@api_bp.route("/bookmarks", methods=["GET"])
@api_auth_required
def bookmarks_list():
    items = store_for_current_user().list_bookmarks()
    return jsonify([item.as_dict() for item in items])


@api_bp.route("/bookmarks", methods=["POST"])
@api_auth_required
def bookmarks_create():
    bookmark, error = _parse_entity(Bookmark.from_dict, "url")
    if error:
        return error
    created = store_for_current_user().create_bookmark(bookmark)
    return jsonify(created.as_dict()), 201


@api_bp.route("/bookmarks/search", methods=["GET"])
@api_auth_required
def bookmarks_search():
    query = request.args.get("q")
    if query is None:
        return _bad_request("q is required")
    items = store_for_current_user().search_bookmarks(query)
    return jsonify([item.as_dict() for item in items])


@api_bp.route("/bookmarks/folder/<folder_id>", methods=["GET"])
@api_auth_required
def bookmarks_by_folder(folder_id: str):
    items = store_for_current_user().bookmarks_by_folder(folder_id)
    return jsonify([item.as_dict() for item in items])


@api_bp.route("/bookmarks/tag/<tag>", methods=["GET"])
@api_auth_required
def bookmarks_by_tag(tag: str):
    items = store_for_current_user().bookmarks_by_tag(tag)
    return jsonify([item.as_dict() for item in items])


@api_bp.route("/bookmarks/fetch-metadata", methods=["POST"])
@api_auth_required
def bookmarks_fetch_metadata():
    payload = _json_payload() or {}
    url = payload.get("url")
    if not isinstance(url, str) or not url.strip():
        return "", 400

    metadata = fetch_metadata(
        url.strip(),
        timeout=current_app.config["METADATA_FETCH_TIMEOUT"],
        max_bytes=current_app.config["CONTENT_MAX_BYTES"],
    )
    return jsonify(metadata.as_dict())


@api_bp.route("/bookmarks/<bookmark_id>", methods=["GET"])
@api_auth_required
def bookmarks_get(bookmark_id: str):
    return jsonify(store_for_current_user().get_bookmark(bookmark_id).as_dict())


@api_bp.route("/bookmarks/<bookmark_id>", methods=["PUT"])
@api_auth_required
def bookmarks_update(bookmark_id: str):
    bookmark, error = _parse_entity(Bookmark.from_dict, "url")
    if error:
        return error
    updated = store_for_current_user().update_bookmark(bookmark_id, bookmark)
    return jsonify(updated.as_dict())


@api_bp.route("/bookmarks/<bookmark_id>", methods=["DELETE"])
@api_auth_required
def bookmarks_delete(bookmark_id: str):
    store_for_current_user().delete_bookmark(bookmark_id)
    return "", 204


@api_bp.route("/folders", methods=["GET"])
@api_auth_required
def folders_list():
    items = store_for_current_user().list_folders()
    return jsonify([item.as_dict() for item in items])


@api_bp.route("/folders", methods=["POST"])
@api_auth_required
def folders_create():
    folder, error = _parse_entity(Folder.from_dict, "name")
    if error:
        return error
    created = store_for_current_user().create_folder(folder)
    return jsonify(created.as_dict()), 201


@api_bp.route("/folders/<folder_id>", methods=["GET"])
@api_auth_required
def folders_get(folder_id: str):
    return jsonify(store_for_current_user().get_folder(folder_id).as_dict())


@api_bp.route("/folders/<folder_id>", methods=["PUT"])
@api_auth_required
def folders_update(folder_id: str):
    folder, error = _parse_entity(Folder.from_dict, "name")
    if error:
        return error
    updated = store_for_current_user().update_folder(folder_id, folder)
    return jsonify(updated.as_dict())


@api_bp.route("/folders/<folder_id>", methods=["DELETE"])
@api_auth_required
def folders_delete(folder_id: str):
    store_for_current_user().delete_folder(folder_id)
    return "", 204


def _folder_password():
    payload = _json_payload() or {}
    password = payload.get("password")
    if not isinstance(password, str) or not password:
        return None
    return password


@api_bp.route("/folders/<folder_id>/lock", methods=["PUT"])
@api_auth_required
def folders_lock(folder_id: str):
    password = _folder_password()
    if password is None:
        return _bad_request("password is required")
    folder = store_for_current_user().lock_folder(folder_id, password)
    return jsonify(folder.as_dict())


@api_bp.route("/folders/<folder_id>/unlock", methods=["PUT"])
@api_auth_required
def folders_unlock(folder_id: str):
    password = _folder_password()
    if password is None:
        return _bad_request("password is required")
    folder = store_for_current_user().unlock_folder(folder_id, password)
    return jsonify(folder.as_dict())


@api_bp.route("/tags", methods=["GET"])
@api_auth_required
def tags_list():
    items = store_for_current_user().list_tags()
    return jsonify([item.as_dict() for item in items])


@api_bp.route("/tags", methods=["POST"])
@api_auth_required
def tags_create():
    tag, error = _parse_entity(Tag.from_dict, "name")
    if error:
        return error
    created = store_for_current_user().create_tag(tag)
    return jsonify(created.as_dict()), 201


@api_bp.route("/tags/<tag_id>", methods=["DELETE"])
@api_auth_required
def tags_delete(tag_id: str):
    store_for_current_user().delete_tag(tag_id)
    return "", 204


@api_bp.route("/drive/init", methods=["GET"])
@api_auth_required
def drive_init():
    try:
        created = store_for_current_user().initialize()
    except StoreError as exc:
        current_app.logger.error("Failed to initialize Drive structure: %s", exc)
        return jsonify({"status": "error", "message": str(exc)}), 500
    return jsonify(
        {
            "status": "success",
            "message": "Google Drive structure initialized successfully",
            "created": created,
        }
    )


@api_bp.route("/drive/sync", methods=["POST"])
@api_auth_required
def drive_sync():
    # Every request already reads and writes Drive directly; nothing to merge.
    return jsonify({"status": "success", "message": "Synchronization completed"})


@api_bp.route("/backup", methods=["GET"])
@api_auth_required
def backups_list():
    items = store_for_current_user().list_backups()
    return jsonify([item.as_dict() for item in items])


@api_bp.route("/backup", methods=["POST"])
@api_auth_required
def backups_create():
    name = store_for_current_user().create_backup()
    return jsonify({"status": "created", "name": name}), 201


@api_bp.route("/backup/<name>", methods=["DELETE"])
@api_auth_required
def backups_delete(name: str):
    store_for_current_user().delete_backup(name)
    return "", 204
