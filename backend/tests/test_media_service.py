"""
Image URL resolution tests.
"""

import pytest

from app.models import Quotation
from app.services.media_service import resolve_image_url, resolve_quotation_image


PLACEHOLDER = "/images/product/product-01.jpg"
BASE = "/media/quotation-images/product-images/"


class TestResolveImageUrl:

    def test_bare_filename_gets_storage_prefix(self, app):
        resolved = resolve_image_url("abc.jpg")
        assert resolved.url == BASE + "abc.jpg"
        assert resolved.has_image is True

    def test_site_relative_path_unchanged(self, app):
        resolved = resolve_image_url("/uploads/speaker.png")
        assert resolved.url == "/uploads/speaker.png"
        assert resolved.has_image is True

    def test_https_url_unchanged(self, app):
        url = "https://cdn.example.com/img/speaker.png"
        assert resolve_image_url(url).url == url

    def test_storage_url_unchanged(self, app):
        url = "xyz.storage.example.com/storage/v1/object/public/quotation-images/a.jpg"
        resolved = resolve_image_url(url)
        assert resolved.url == url
        assert resolved.has_image is True

    @pytest.mark.parametrize("raw", [None, "", "   ", 42, "ftp://host/a.jpg", "data:image/png;base64,AAAA", "my photo.jpg"])
    def test_unusable_values_fall_back_to_placeholder(self, app, raw):
        resolved = resolve_image_url(raw)
        assert resolved.url == PLACEHOLDER
        assert resolved.has_image is False

    def test_base_url_follows_config(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "STORAGE_PUBLIC_BASE_URL", "https://files.example.com/products")
        assert resolve_image_url("abc.jpg").url == "https://files.example.com/products/abc.jpg"


class TestResolveQuotationImage:

    def test_prefers_image_url(self, app):
        q = Quotation(image_url="main.jpg", image_urls=["/second.jpg"])
        assert resolve_quotation_image(q).url == BASE + "main.jpg"

    def test_falls_back_through_image_lists(self, app):
        q = Quotation(image_url="", image_urls=[], product_images=["https://cdn.example.com/legacy.jpg"])
        assert resolve_quotation_image(q).url == "https://cdn.example.com/legacy.jpg"

    def test_no_images(self, app):
        resolved = resolve_quotation_image(Quotation())
        assert resolved.url == PLACEHOLDER
        assert resolved.has_image is False
