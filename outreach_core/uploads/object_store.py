"""
Object Store

Binary blob storage for uploaded files: an abstract interface plus an S3
implementation and an in-memory implementation.

Storage Structure:
    {bucket}/{user_id}/{timestamp_ms}-{sanitized_filename}
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote

from botocore.exceptions import BotoCoreError, ClientError

from outreach_core.constants import UPLOADS_BUCKET
from outreach_core.exceptions import StoreError


class IObjectStore(ABC):
    """
    Abstract interface for binary object storage.

    Implementations must provide methods for:
    - Uploading an object under a path
    - Resolving the public URL of a path
    - Removing objects
    """

    @abstractmethod
    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        """
        Store an object.

        Raises:
            StoreError: If the object could not be stored
        """
        pass

    @abstractmethod
    def public_url(self, path: str) -> str:
        """Public URL of a stored object."""
        pass

    @abstractmethod
    async def remove(self, paths: List[str]) -> None:
        """
        Remove objects. Missing paths are ignored.

        Raises:
            StoreError: If the store rejected the removal
        """
        pass


class S3ObjectStore(IObjectStore):
    """
    AWS S3-based object storage.

    Usage:
        store = S3ObjectStore(bucket_name="uploads", region="us-west-2")
        await store.upload("user-1/1700000000000-deck.pdf", data, "application/pdf")
        url = store.public_url("user-1/1700000000000-deck.pdf")

    Environment Variables:
        AWS_ACCESS_KEY_ID: AWS access key
        AWS_SECRET_ACCESS_KEY: AWS secret key
    """

    def __init__(
        self,
        bucket_name: str = UPLOADS_BUCKET,
        region: str = "us-west-2",
        endpoint_url: Optional[str] = None,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        public_base_url: Optional[str] = None,
    ):
        """
        Initialize S3 storage.

        Args:
            bucket_name: S3 bucket name
            region: AWS region
            endpoint_url: Custom endpoint URL (for LocalStack/testing)
            aws_access_key_id: Optional AWS access key (prefer env vars or IAM)
            aws_secret_access_key: Optional AWS secret key
            public_base_url: Base URL for public links (CDN); derived from the
                bucket and region when not given
        """
        self._bucket_name = bucket_name
        self._region = region
        self._endpoint_url = endpoint_url
        self._aws_access_key_id = aws_access_key_id
        self._aws_secret_access_key = aws_secret_access_key
        self._public_base_url = public_base_url
        self._client = None

    def _get_client(self):
        """Get or create boto3 S3 client."""
        if self._client is None:
            import boto3

            kwargs = {
                "region_name": self._region,
            }

            if self._endpoint_url:
                kwargs["endpoint_url"] = self._endpoint_url

            if self._aws_access_key_id and self._aws_secret_access_key:
                kwargs["aws_access_key_id"] = self._aws_access_key_id
                kwargs["aws_secret_access_key"] = self._aws_secret_access_key

            self._client = boto3.client("s3", **kwargs)

        return self._client

    def _base_url(self) -> str:
        if self._public_base_url:
            return self._public_base_url.rstrip("/")
        if self._endpoint_url:
            return f"{self._endpoint_url.rstrip('/')}/{self._bucket_name}"
        return f"https://{self._bucket_name}.s3.{self._region}.amazonaws.com"

    def public_url(self, path: str) -> str:
        return f"{self._base_url()}/{quote(path)}"

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        client = self._get_client()

        def _put_object():
            client.put_object(
                Bucket=self._bucket_name,
                Key=path,
                Body=data,
                ContentType=content_type,
            )

        try:
            await asyncio.to_thread(_put_object)
        except (BotoCoreError, ClientError) as e:
            raise StoreError(f"Upload of {path} failed: {e}", details={"bucket": self._bucket_name}) from e

    async def remove(self, paths: List[str]) -> None:
        if not paths:
            return
        client = self._get_client()

        def _delete_objects():
            return client.delete_objects(
                Bucket=self._bucket_name,
                Delete={"Objects": [{"Key": path} for path in paths], "Quiet": True},
            )

        try:
            response = await asyncio.to_thread(_delete_objects)
        except (BotoCoreError, ClientError) as e:
            raise StoreError(f"Removal failed: {e}", details={"bucket": self._bucket_name}) from e

        errors = response.get("Errors") or []
        if errors:
            raise StoreError(
                f"Removal failed for {len(errors)} object(s): {errors[0].get('Message', '')}",
                details={"bucket": self._bucket_name, "errors": errors},
            )


class InMemoryObjectStore(IObjectStore):
    """Dictionary-backed object store for local development and tests."""

    def __init__(self, base_url: str = "memory://uploads"):
        self.base_url = base_url.rstrip("/")
        self.objects: Dict[str, Tuple[bytes, str]] = {}

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/{quote(path)}"

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        if path in self.objects:
            raise StoreError(f"Object already exists: {path}")
        self.objects[path] = (bytes(data), content_type)

    async def remove(self, paths: List[str]) -> None:
        for path in paths:
            self.objects.pop(path, None)
