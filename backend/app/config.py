# backend/app/config.py
from __future__ import annotations
import os


def _parse_file_size(value: str | None) -> int:
    """
    Parse a human file size ("5mb", "512kb", "1gb", "1048576") into bytes.

    Missing or empty values fall back to 5 MB.
    """
    if not value:
        return 5 * 1024 * 1024
    s = value.strip().lower()
    units = {"kb": 1024, "mb": 1024 ** 2, "gb": 1024 ** 3}
    for suffix, factor in units.items():
        if s.endswith(suffix):
            return int(float(s[: -len(suffix)]) * factor)
    return int(float(s))


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/docdesk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///docdesk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Edit policy (hours). Owners edit freely inside the initial window;
    # an approved edit request grants EDIT_GRANT_DURATION_HOURS more.
    INITIAL_EDIT_WINDOW_HOURS = float(os.environ.get("INITIAL_EDIT_WINDOW_HOURS", "24"))
    EDIT_GRANT_DURATION_HOURS = float(os.environ.get("EDIT_GRANT_DURATION_HOURS", "24"))

    # Attachments
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", "uploads")
    MAX_CONTENT_LENGTH = _parse_file_size(os.environ.get("MAX_FILE_SIZE"))
    ALLOWED_UPLOAD_EXTENSIONS = {
        "pdf", "jpg", "jpeg", "png", "gif",
        "doc", "docx", "xls", "xlsx", "txt", "csv",
    }

    # Real-time notifications: "null", "memory" or "redis"
    NOTIFIER_BACKEND = os.environ.get("NOTIFIER_BACKEND", "null")
    REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

    # Passwords and sessions
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
    SESSION_ABSOLUTE_TIMEOUT_HOURS = float(os.environ.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", "24"))
    SESSION_IDLE_TIMEOUT_HOURS = float(os.environ.get("SESSION_IDLE_TIMEOUT_HOURS", "2"))

    # Pagination
    DEFAULT_PAGE_SIZE = 10
    MAX_PAGE_SIZE = 100

    CORS_ALLOWED_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    }
