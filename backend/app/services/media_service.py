# Overview: Image URL resolution for product, option and shipment images.

"""
Image URL Resolution

Stored image references come in several shapes: site-relative paths,
full storage URLs, bare filenames uploaded to the product-images bucket,
and external http(s) links. Everything is normalized here so list views
can render an <img> directly and know whether a real image exists.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app, has_app_context

from ..config import Config


@dataclass(frozen=True)
class ResolvedImage:
    url: str
    has_image: bool

    def to_dict(self) -> dict:
        return {"url": self.url, "has_image": self.has_image}


def _setting(key: str) -> str:
    if has_app_context():
        return current_app.config.get(key, getattr(Config, key))
    return getattr(Config, key)


def resolve_image_url(raw) -> ResolvedImage:
    """
    Classify a raw stored image reference.

    - starts with "/"                 -> unchanged
    - contains the storage host path  -> unchanged
    - http:// or https:// URL         -> unchanged
    - bare filename                   -> storage base path + filename
    - anything else (empty, other schemes, junk) -> placeholder, has_image=False
    """
    placeholder = ResolvedImage(_setting("DEFAULT_PRODUCT_IMAGE"), False)

    if not isinstance(raw, str):
        return placeholder
    value = raw.strip()
    if not value:
        return placeholder

    if value.startswith("/"):
        return ResolvedImage(value, True)

    if _setting("STORAGE_HOST_PATTERN") in value:
        return ResolvedImage(value, True)

    lowered = value.lower()
    if lowered.startswith("http://") or lowered.startswith("https://"):
        return ResolvedImage(value, True)

    if "://" in value or ":" in value.split("/")[0] or any(ch.isspace() for ch in value):
        return placeholder

    base = _setting("STORAGE_PUBLIC_BASE_URL")
    if not base.endswith("/"):
        base += "/"
    return ResolvedImage(base + value, True)


def resolve_quotation_image(quotation) -> ResolvedImage:
    """First usable image of a quotation: image_url, then image_urls, then product_images."""
    candidates = [quotation.image_url]
    candidates.extend(quotation.image_urls or [])
    candidates.extend(quotation.product_images or [])
    for candidate in candidates:
        resolved = resolve_image_url(candidate)
        if resolved.has_image:
            return resolved
    return resolve_image_url(None)
