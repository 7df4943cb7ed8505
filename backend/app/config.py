# backend/app/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/freightdesk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location (e.g. postgresql://...)
        "sqlite:///freightdesk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Media store (stands in for the hosted storage buckets)
    MEDIA_ROOT = os.environ.get("MEDIA_ROOT", os.path.join(os.getcwd(), "media"))
    MEDIA_BASE_URL = os.environ.get("MEDIA_BASE_URL", "/media")

    # Bare product-image filenames are prefixed with this public base path
    STORAGE_PUBLIC_BASE_URL = os.environ.get(
        "STORAGE_PUBLIC_BASE_URL",
        "/media/quotation-images/product-images/",
    )
    # Any URL containing this fragment is already a full storage URL
    STORAGE_HOST_PATTERN = os.environ.get("STORAGE_HOST_PATTERN", "/storage/v1/object/public/")

    DEFAULT_PRODUCT_IMAGE = "/images/product/product-01.jpg"

    # Upload limit for payment proofs and product images (5 MB)
    MAX_UPLOAD_BYTES = int(os.environ.get("MAX_UPLOAD_BYTES", 5 * 1024 * 1024))

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        ).split(",")
        if origin.strip()
    ]
