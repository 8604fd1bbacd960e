"""
Unit tests for S3LinkIssuer.
"""

import pytest
from unittest.mock import MagicMock
from botocore.exceptions import NoCredentialsError

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_media.app.media.links import S3LinkIssuer
from shared.errors import DependencyError


class TestS3LinkIssuer:
    """Test cases for S3LinkIssuer."""

    @pytest.fixture
    def s3_client(self):
        client = MagicMock()
        client.generate_presigned_url.return_value = "https://media-uploads.s3.amazonaws.com/signed"
        return client

    @pytest.fixture
    def issuer(self, s3_client):
        return S3LinkIssuer("media-uploads", client=s3_client)

    def test_upload_link(self, issuer, s3_client):
        url = issuer.issue_upload("user-1/v1/clip.mp4", "video/mp4")

        assert url == "https://media-uploads.s3.amazonaws.com/signed"
        s3_client.generate_presigned_url.assert_called_once_with(
            "put_object",
            Params={"Bucket": "media-uploads", "Key": "user-1/v1/clip.mp4", "ContentType": "video/mp4"},
            ExpiresIn=900,
        )

    def test_download_link(self, issuer, s3_client):
        issuer.issue_download("user-1/v1/clip.mp4")

        s3_client.generate_presigned_url.assert_called_once_with(
            "get_object",
            Params={"Bucket": "media-uploads", "Key": "user-1/v1/clip.mp4"},
            ExpiresIn=900,
        )

    def test_windows_are_equal(self, s3_client):
        issuer = S3LinkIssuer("media-uploads", expires_in=300, client=s3_client)
        issuer.issue_upload("k", "video/mp4")
        issuer.issue_download("k")

        windows = [call.kwargs["ExpiresIn"] for call in s3_client.generate_presigned_url.call_args_list]
        assert windows == [300, 300]
        assert issuer.expires_in == 300

    def test_signing_failure(self, issuer, s3_client):
        s3_client.generate_presigned_url.side_effect = NoCredentialsError()

        with pytest.raises(DependencyError) as exc_info:
            issuer.issue_download("k")
        assert exc_info.value.service == "s3"

    def test_real_client_signs_locally(self, monkeypatch):
        """boto3 presigning needs credentials but no network."""
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
        issuer = S3LinkIssuer("media-uploads", expires_in=120, region="ap-southeast-2")

        url = issuer.issue_download("user-1/v1/clip.mp4")

        assert "media-uploads" in url
        assert "user-1/v1/clip.mp4" in url
        assert "X-Amz-Expires=120" in url
