from __future__ import annotations

import html
import json

from flask import Response, current_app, jsonify, redirect, request
from flask_login import current_user

from app.services.bookmarks import store_for_current_user
from app.services.errors import StoreError
from app.web import web_bp


def _frontend_url(path: str = "") -> str:
    return current_app.config["FRONTEND_URL"].rstrip("/") + path


def _replace_location_page(target: str) -> Response:
    # location.replace keeps the backend URL out of the browser history.
    page = (
        "<!DOCTYPE html>"
        "<html><head><title>Redirecting...</title></head>"
        f"<body><script>window.location.replace({json.dumps(target)});</script>"
        f"<noscript>Please <a href=\"{html.escape(target)}\">click here</a>"
        " to continue.</noscript>"
        "</body></html>"
    )
    return Response(page, mimetype="text/html")


@web_bp.route("/")
def home():
    return redirect(_frontend_url())


@web_bp.route("/login")
def login():
    return redirect(_frontend_url("/login"))


@web_bp.route("/drive/init-and-redirect")
def drive_init_and_redirect():
    if not current_user.is_authenticated:
        return redirect(_frontend_url("/login"))

    try:
        store_for_current_user().initialize()
    except StoreError as exc:
        current_app.logger.error("Failed to initialize Drive structure: %s", exc)
        return _replace_location_page(_frontend_url("/login?error=drive_init_failed"))

    current_app.logger.info("Drive structure ready, redirecting to frontend")
    return _replace_location_page(_frontend_url())


@web_bp.app_errorhandler(404)
def not_found(exc):
    if request.path.startswith("/api/"):
        return jsonify({"error": "not found"}), 404
    if "oauth2" in request.path or "login" in request.path:
        return redirect(_frontend_url("/login"))
    return redirect(_frontend_url())
