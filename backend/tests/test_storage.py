"""Tests for the Supabase Storage (S3-compatible) helpers."""

import re
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from siterecap.config import settings
from siterecap.utils import storage
from siterecap.utils.errors import StorageError


@pytest.fixture
def mock_s3():
    client = MagicMock()
    with patch.object(storage, "_build_client", return_value=client):
        yield client


def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "Operation")


class TestPhotoKey:
    def test_layout(self):
        key = storage.photo_key("proj-1", "image/jpeg")
        assert re.fullmatch(r"photos/proj-1/\d{13}-[0-9a-f]{8}\.jpg", key)

    def test_extension_from_content_type(self):
        assert storage.photo_key("p", "image/png").endswith(".png")
        assert storage.photo_key("p", "image/webp").endswith(".webp")
        assert storage.photo_key("p", "image/heif").endswith(".heic")

    def test_unknown_type_defaults_to_jpg(self):
        assert storage.photo_key("p", "application/octet-stream").endswith(".jpg")

    def test_keys_are_unique(self):
        assert storage.photo_key("p", "image/jpeg") != storage.photo_key("p", "image/jpeg")


class TestPublicUrl:
    def test_uses_supabase_url(self, monkeypatch):
        monkeypatch.setattr(settings, "next_public_supabase_url", "https://abc.supabase.co/")
        assert storage.public_url("photos/p/1.jpg") == (
            "https://abc.supabase.co/storage/v1/object/public/photos/photos/p/1.jpg"
        )

    def test_falls_back_to_base_url(self):
        assert storage.public_url("k.jpg").startswith(
            "https://siterecap.com/storage/v1/object/public/photos/"
        )


class TestUpload:
    def test_puts_object(self, mock_s3):
        assert storage.upload_object("photos/p/1.jpg", b"data", "image/png") == "photos/p/1.jpg"
        mock_s3.put_object.assert_called_once_with(
            Bucket="photos", Key="photos/p/1.jpg", Body=b"data", ContentType="image/png"
        )

    def test_failure_raises_storage_error(self, mock_s3):
        mock_s3.put_object.side_effect = _client_error("AccessDenied")
        with pytest.raises(StorageError, match="Upload failed"):
            storage.upload_object("k", b"data")


class TestDelete:
    def test_deletes_object(self, mock_s3):
        storage.delete_object("photos/p/1.jpg")
        mock_s3.delete_object.assert_called_once_with(Bucket="photos", Key="photos/p/1.jpg")

    @pytest.mark.parametrize("code", ["404", "NoSuchKey"])
    def test_missing_object_ignored(self, mock_s3, code):
        mock_s3.delete_object.side_effect = _client_error(code)
        storage.delete_object("gone.jpg")

    def test_other_errors_raise(self, mock_s3):
        mock_s3.delete_object.side_effect = _client_error("AccessDenied")
        with pytest.raises(StorageError, match="Delete failed"):
            storage.delete_object("k")


class TestClient:
    def test_singleton(self, mock_s3):
        assert storage._get_client() is storage._get_client()

    def test_endpoint_and_path_addressing(self, monkeypatch):
        monkeypatch.setattr(settings, "next_public_supabase_url", "https://abc.supabase.co")
        with patch("boto3.client") as boto_client:
            storage._build_client()
        kwargs = boto_client.call_args.kwargs
        assert kwargs["endpoint_url"] == "https://abc.supabase.co/storage/v1/s3"
        assert kwargs["config"].s3 == {"addressing_style": "path"}
        assert kwargs["config"].retries == {"max_attempts": 3, "mode": "standard"}
        assert kwargs["config"].connect_timeout == 5
