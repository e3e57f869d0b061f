# Overview: Local-disk storage for document attachments (save on upload, release after commit).

from __future__ import annotations

import os
import uuid
from pathlib import Path

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from ..validation import ValidationError


def _upload_root() -> Path:
    folder = Path(current_app.config.get("UPLOAD_FOLDER", "uploads"))
    if not folder.is_absolute():
        folder = Path(current_app.root_path).parent / folder
    return folder


def allowed_file(filename: str) -> bool:
    if "." not in filename:
        return False
    ext = filename.rsplit(".", 1)[1].lower()
    return ext in current_app.config.get("ALLOWED_UPLOAD_EXTENSIONS", set())


def save_upload(file: FileStorage | None, *, prefix: str) -> str | None:
    """
    Persist an uploaded file and return its stored path (relative to the
    upload folder's parent, forward slashes). None when nothing was sent.
    """
    if file is None or not file.filename:
        return None

    original = secure_filename(file.filename)
    if not original or not allowed_file(original):
        raise ValidationError(
            "Invalid file type. Allowed: " + ", ".join(sorted(current_app.config.get("ALLOWED_UPLOAD_EXTENSIONS", set())))
        )

    root = _upload_root()
    root.mkdir(parents=True, exist_ok=True)

    stored_name = f"{prefix}-{uuid.uuid4().hex[:12]}-{original}"
    file.save(root / stored_name)
    return f"{root.name}/{stored_name}"


def _resolve(stored_path: str) -> Path:
    root = _upload_root()
    return root / Path(stored_path).name


def release(stored_path: str | None) -> bool:
    """
    Delete a stored attachment. Missing files are ignored; other failures
    are logged and swallowed (the database is already committed).
    """
    if not stored_path:
        return False
    path = _resolve(stored_path)
    try:
        os.remove(path)
        return True
    except FileNotFoundError:
        return False
    except OSError:
        current_app.logger.warning("Failed to release attachment %s", stored_path, exc_info=True)
        return False
