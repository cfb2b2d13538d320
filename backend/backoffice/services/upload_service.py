# Overview: Service-layer operations for uploaded files; validation, storage paths and cleanup.

from __future__ import annotations

import os
import secrets
import time

from flask import current_app
from werkzeug.datastructures import FileStorage

from ..validation import DomainError

PRODUCTS_SUBDIR = "products"
SLIPS_SUBDIR = "slips"

ALLOWED_IMAGE_EXTENSIONS = {"jpeg", "jpg", "png", "gif", "webp"}
ALLOWED_IMAGE_MIMETYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}
MAX_UPLOAD_BYTES = 5 * 1024 * 1024


class UploadError(DomainError):
    code = "INVALID_FILE_TYPE"
    status = 400


def upload_root() -> str:
    return current_app.config["UPLOAD_FOLDER"]


def upload_dir(subdir: str) -> str:
    path = os.path.join(upload_root(), subdir)
    os.makedirs(path, exist_ok=True)
    return path


def public_path(subdir: str, filename: str) -> str:
    """URL path the frontend uses, e.g. /uploads/products/DRES00001.jpg"""
    return f"/uploads/{subdir}/{filename}"


def local_path_for(public: str | None) -> str | None:
    """Map /uploads/<subdir>/<file> back to a path on disk (None if not an upload path)."""
    if not public or not public.startswith("/uploads/"):
        return None
    relative = public[len("/uploads/"):]
    parts = [p for p in relative.split("/") if p]
    if len(parts) != 2 or any(p in (".", "..") for p in parts):
        return None
    return os.path.join(upload_root(), *parts)


def _extension_of(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lower().lstrip(".")


def validate_image(file: FileStorage | None) -> str:
    """Check an uploaded image; returns its lowercased extension (without dot)."""
    if file is None or not file.filename:
        raise UploadError("No file uploaded", code="NO_FILE")

    extension = _extension_of(file.filename)
    mimetype = (file.mimetype or "").lower()
    if extension not in ALLOWED_IMAGE_EXTENSIONS or mimetype not in ALLOWED_IMAGE_MIMETYPES:
        raise UploadError("Only image files are allowed (jpeg, jpg, png, gif, webp)")

    # Request-level MAX_CONTENT_LENGTH covers real uploads; this covers
    # streams that arrive without a content length.
    stream = file.stream
    if stream.seekable():
        stream.seek(0, os.SEEK_END)
        size = stream.tell()
        stream.seek(0)
        if size > MAX_UPLOAD_BYTES:
            raise UploadError("File too large (max 5MB)", code="FILE_TOO_LARGE", status=413)

    return extension


def save_temp_image(file: FileStorage, *, subdir: str, label: str) -> str:
    """
    Save an upload under a unique temporary name: <label>-<ms>-<random>.<ext>.

    Returns the absolute path of the saved file.
    """
    extension = validate_image(file)
    filename = f"{label}-{int(time.time() * 1000)}-{secrets.token_hex(4)}.{extension}"
    path = os.path.join(upload_dir(subdir), filename)
    file.save(path)
    return path


def remove_quietly(path: str | None) -> None:
    """Best-effort cleanup of a file left behind by a failed request (failures are logged)."""
    if not path:
        return
    try:
        if os.path.exists(path):
            os.remove(path)
    except OSError:
        current_app.logger.warning("Could not remove file %s during cleanup", path, exc_info=True)
