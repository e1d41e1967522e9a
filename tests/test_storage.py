"""Unit tests for core/storage.py -- the minio client is replaced by a MagicMock."""

from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from core.config import Settings
from core.storage import StorageProvider


def _provider(expires: str = "1d") -> tuple[StorageProvider, MagicMock]:
    client = MagicMock()
    client.presigned_get_object.return_value = "https://signed.example/url"
    return StorageProvider("avatars", expires=expires, client=client), client


class TestStorageProvider:
    def test_initialize_creates_missing_bucket(self):
        provider, client = _provider()
        client.bucket_exists.return_value = False
        provider.initialize()
        client.make_bucket.assert_called_once_with("avatars")

    def test_initialize_keeps_existing_bucket(self):
        provider, client = _provider()
        client.bucket_exists.return_value = True
        provider.initialize()
        client.make_bucket.assert_not_called()

    def test_upload_returns_key_and_signed_url(self, tmp_path):
        provider, client = _provider()
        local = tmp_path / "pic.png"
        local.write_bytes(b"png")
        result = provider.upload_file(str(local), "/users/1/", content_type="image/png")
        assert result.key == "users/1/pic.png"
        assert result.signed_url == "https://signed.example/url"
        client.fput_object.assert_called_once_with("avatars", "users/1/pic.png", str(local), content_type="image/png")

    def test_upload_with_explicit_filename(self, tmp_path):
        provider, _client = _provider()
        local = tmp_path / "tmp123"
        local.write_bytes(b"x")
        assert provider.upload_file(str(local), "docs", filename="cv.pdf").key == "docs/cv.pdf"

    def test_presigned_url_uses_configured_expiry(self):
        provider, client = _provider("6h")
        provider.get_presigned_url("docs/cv.pdf")
        client.presigned_get_object.assert_called_once_with("avatars", "docs/cv.pdf", expires=timedelta(hours=6))

    def test_expires_object(self):
        provider, _client = _provider("1h")
        seconds, _at = provider.expires_object()
        assert seconds == 3600

    def test_expiry_over_seven_days_rejected(self):
        with pytest.raises(ValueError, match="7 days"):
            StorageProvider("avatars", expires="8d", client=MagicMock())

    def test_delete_and_list(self):
        provider, client = _provider()
        client.list_objects.return_value = [SimpleNamespace(object_name="a/1"), SimpleNamespace(object_name="a/2")]
        assert provider.list_objects("a/") == ["a/1", "a/2"]
        client.list_objects.assert_called_once_with("avatars", prefix="a/", recursive=True)
        provider.delete_file("a/1")
        client.remove_object.assert_called_once_with("avatars", "a/1")

    def test_from_settings(self):
        settings = Settings(
            _env_file=None,
            debug=True,
            s3_endpoint="localhost:9000",
            s3_access_key="ak",
            s3_secret_key="sk",
            s3_bucket="uploads",
            s3_secure=False,
            s3_expires="2d",
        )
        provider = StorageProvider.from_settings(settings)
        assert provider.bucket == "uploads"
        assert provider.expires_in == 2 * 86400
