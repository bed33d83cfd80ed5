from functools import wraps

from flask import jsonify
from flask_login import current_user

from app.services.drive import DriveCredential


def current_drive_credential() -> DriveCredential | None:
    """Bearer credential of the signed-in user, or None without a grant."""
    if not current_user.is_authenticated:
        return None
    client = current_user.authorized_client
    if client is None or not client.access_token:
        return None
    return DriveCredential(access_token=client.access_token)


def api_auth_required(func):
    @wraps(func)
    def wrapped(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({"error": "authentication required"}), 401
        return func(*args, **kwargs)

    return wrapped
