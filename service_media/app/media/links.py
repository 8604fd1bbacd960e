"""
Time-limited object store links.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from shared.errors import DependencyError
from shared.logging import get_logger


class LinkIssuer(ABC):
    """Issues upload and download links that share one validity window."""

    def __init__(self, expires_in: int = 900):
        self.expires_in = expires_in

    @abstractmethod
    def issue_upload(self, object_key: str, content_type: str) -> str:
        """URL a client can ``PUT`` the object to."""

    @abstractmethod
    def issue_download(self, object_key: str) -> str:
        """URL a client can ``GET`` the object from."""


class S3LinkIssuer(LinkIssuer):
    """Pre-signed S3 URLs for one bucket."""

    def __init__(self, bucket: str, expires_in: int = 900, region: Optional[str] = None, client: Any = None):
        super().__init__(expires_in)
        self.bucket = bucket
        self.logger = get_logger("media.links")
        self._s3 = client or boto3.client(
            "s3",
            region_name=region,
            config=Config(signature_version="s3v4", s3={"addressing_style": "virtual"}),
        )

    def issue_upload(self, object_key: str, content_type: str) -> str:
        return self._presign("put_object", {"Key": object_key, "ContentType": content_type})

    def issue_download(self, object_key: str) -> str:
        return self._presign("get_object", {"Key": object_key})

    def _presign(self, operation: str, params: Dict[str, Any]) -> str:
        params = {"Bucket": self.bucket, **params}
        try:
            url = self._s3.generate_presigned_url(operation, Params=params, ExpiresIn=self.expires_in)
        except (BotoCoreError, ClientError) as e:
            self.logger.error("Failed to presign URL", operation=operation, key=params["Key"], error=str(e))
            raise DependencyError("s3", "Unable to create link", details={"operation": operation})

        self.logger.debug("Presigned URL issued", operation=operation, key=params["Key"], expires_in=self.expires_in)
        return url
