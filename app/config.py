import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


def _split_csv(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "default-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'drivemarks.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    GOOGLE_CLIENT_ID = os.environ.get("GOOGLE_CLIENT_ID", "")
    GOOGLE_CLIENT_SECRET = os.environ.get("GOOGLE_CLIENT_SECRET", "")
    GOOGLE_SCOPES = os.environ.get(
        "GOOGLE_SCOPES",
        "openid email profile https://www.googleapis.com/auth/drive.file",
    )

    DRIVE_FOLDER_NAME = os.environ.get("DRIVE_FOLDER_NAME", "BookmarkService")
    DRIVE_DATA_FILE = os.environ.get("DRIVE_DATA_FILE", "bookmarks.json")

    METADATA_FETCH_TIMEOUT = float(os.environ.get("METADATA_FETCH_TIMEOUT", "5"))
    CONTENT_MAX_BYTES = int(os.environ.get("CONTENT_MAX_BYTES", "2500000"))

    FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:3000")
    CORS_ALLOWED_ORIGINS = _split_csv(
        os.environ.get("CORS_ALLOWED_ORIGINS", "http://localhost:3000")
    )
    CORS_ALLOWED_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    CORS_MAX_AGE = int(os.environ.get("CORS_MAX_AGE", "3600"))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    GOOGLE_CLIENT_ID = "test-client-id"
    GOOGLE_CLIENT_SECRET = "test-client-secret"
    METADATA_FETCH_TIMEOUT = 1.0
    FRONTEND_URL = "http://frontend.test"
    CORS_ALLOWED_ORIGINS = ["http://frontend.test"]
