# Overview: Service-layer operations for SKU-based image file naming.

"""
Product images are stored as uploads/products/{SKU}{.ext}.

One image per product: renaming a new upload into place first removes any
older {SKU}.* image so a PNG replacing a JPG does not leave both behind.
"""

from __future__ import annotations

import os

from flask import current_app

from ..validation import DomainError

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")


class FileNamingError(DomainError):
    code = "FILE_NAMING_ERROR"
    status = 400


def generate_product_image_name(sku: str, original_filename: str) -> str:
    """
    generate_product_image_name("DRES00001", "photo.JPG") -> "DRES00001.jpg"
    """
    if not sku or not isinstance(sku, str):
        raise FileNamingError("Invalid SKU: SKU must be a non-empty string")

    if not original_filename or not isinstance(original_filename, str):
        raise FileNamingError("Invalid filename: original_filename must be a non-empty string")

    extension = os.path.splitext(original_filename)[1].lower()
    if not extension:
        raise FileNamingError("Invalid filename: No file extension found")

    return f"{sku}{extension}"


def delete_old_product_image(sku: str, uploads_dir: str) -> list[str]:
    """
    Delete any {sku}.<image ext> in uploads_dir.

    Returns the deleted file names. OSError from the filesystem propagates.
    """
    if not sku or not isinstance(sku, str):
        raise FileNamingError("Invalid SKU: SKU must be a non-empty string")

    if not uploads_dir or not isinstance(uploads_dir, str):
        raise FileNamingError("Invalid uploads_dir: uploads_dir must be a non-empty string")

    deleted = []
    for ext in IMAGE_EXTENSIONS:
        filename = f"{sku}{ext}"
        path = os.path.join(uploads_dir, filename)
        if os.path.exists(path):
            os.remove(path)
            deleted.append(filename)
            current_app.logger.info("Deleted old product image %s", filename)
    return deleted


def rename_to_sku_format(current_path: str, sku: str) -> str:
    """
    Move an uploaded temp file to {SKU}{.ext} in the same directory.

    Old images for the SKU are removed first. Returns the new file name.
    """
    if not current_path or not isinstance(current_path, str):
        raise FileNamingError("Invalid current_path: current_path must be a non-empty string")

    if not sku or not isinstance(sku, str):
        raise FileNamingError("Invalid SKU: SKU must be a non-empty string")

    if not os.path.exists(current_path):
        raise FileNamingError(f"File not found: {current_path}", code="FILE_NOT_FOUND", status=404)

    directory = os.path.dirname(current_path)
    new_filename = generate_product_image_name(sku, os.path.basename(current_path))
    new_path = os.path.join(directory, new_filename)

    delete_old_product_image(sku, directory)
    os.replace(current_path, new_path)

    current_app.logger.info("Renamed product image %s -> %s", os.path.basename(current_path), new_filename)
    return new_filename
