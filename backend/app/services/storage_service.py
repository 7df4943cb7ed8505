# Overview: Local media bucket store for payment proofs and product images.

"""
Media Storage

Buckets are directories under MEDIA_ROOT; every stored object gets a public
URL under MEDIA_BASE_URL (served by routes/media.py). Uploads are checked
server-side for type and size before anything touches the disk.
"""

from __future__ import annotations

import mimetypes
import os
import secrets
from dataclasses import dataclass
from pathlib import Path

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from app.time_utils import epoch_millis

BUCKET_PAYMENT_PROOFS = "payment_proofs"
BUCKET_QUOTATION_IMAGES = "quotation-images"

PRODUCT_IMAGES_PREFIX = "product-images"

ALLOWED_MIME_PREFIXES = ("image/",)
ALLOWED_MIME_TYPES = ("application/pdf",)


class StorageError(Exception):
    """Raised when an upload is rejected or cannot be stored."""
    pass


@dataclass(frozen=True)
class StoredObject:
    bucket: str
    key: str
    url: str
    size: int
    content_type: str


def _media_root() -> Path:
    return Path(current_app.config["MEDIA_ROOT"])


def _detect_content_type(file: FileStorage) -> str:
    content_type = (file.mimetype or "").lower()
    if not content_type or content_type == "application/octet-stream":
        guessed, _ = mimetypes.guess_type(file.filename or "")
        content_type = (guessed or "").lower()
    return content_type


def _file_size(file: FileStorage) -> int:
    stream = file.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def validate_upload(file: FileStorage | None) -> tuple[str, int]:
    """
    Check an uploaded file: images or PDF, at most MAX_UPLOAD_BYTES.
    Returns (content_type, size).
    """
    if file is None or not file.filename:
        raise StorageError("No file provided")

    content_type = _detect_content_type(file)
    allowed = content_type.startswith(ALLOWED_MIME_PREFIXES) or content_type in ALLOWED_MIME_TYPES
    if not allowed:
        raise StorageError("Please upload an image (JPG, PNG) or PDF file.")

    size = _file_size(file)
    if size == 0:
        raise StorageError("Uploaded file is empty")

    max_bytes = current_app.config["MAX_UPLOAD_BYTES"]
    if size > max_bytes:
        raise StorageError(f"File size should be less than {max_bytes // (1024 * 1024)}MB.")

    return content_type, size


def build_key(prefix: str, original_filename: str, *, folder: str | None = None) -> str:
    """
    Randomized object key: <prefix>_<epoch ms>_<random>.<ext>.
    """
    _, ext = os.path.splitext(secure_filename(original_filename or ""))
    name = f"{prefix}_{epoch_millis()}_{secrets.token_hex(4)}{ext.lower()}"
    return f"{folder}/{name}" if folder else name


def public_url(bucket: str, key: str) -> str:
    base = current_app.config["MEDIA_BASE_URL"].rstrip("/")
    return f"{base}/{bucket}/{key}"


def object_path(bucket: str, key: str) -> Path:
    """Filesystem path of an object; refuses keys escaping the bucket."""
    bucket_root = (_media_root() / bucket).resolve()
    path = (bucket_root / key).resolve()
    if bucket_root not in path.parents:
        raise StorageError("Invalid object key")
    return path


def save(bucket: str, key: str, file: FileStorage, *, content_type: str, size: int) -> StoredObject:
    """Write the upload to the bucket and return its public URL."""
    path = object_path(bucket, key)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        file.stream.seek(0)
        file.save(str(path))
    except OSError as exc:
        raise StorageError(f"Error uploading file: {exc}") from exc

    return StoredObject(
        bucket=bucket,
        key=key,
        url=public_url(bucket, key),
        size=size,
        content_type=content_type,
    )


def delete(bucket: str, key: str) -> bool:
    """Remove an object; False when it did not exist."""
    path = object_path(bucket, key)
    if not path.exists():
        return False
    path.unlink()
    return True
