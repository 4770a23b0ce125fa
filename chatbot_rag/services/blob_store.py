"""S3 blob store for uploaded document bytes."""

import asyncio
import logging
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from chatbot_rag.core.config import settings
from chatbot_rag.core.exceptions import BlobNotFoundError, BlobStoreError

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}


class BlobStoreService:
    """Reads and deletes raw document bytes in an S3 bucket."""

    def __init__(self, client=None, bucket: Optional[str] = None) -> None:
        """
        Initialize the blob store.

        Args:
            client: boto3 S3 client, built from settings when omitted.
            bucket: Bucket holding uploaded documents.
        """
        self.client = client or boto3.client(
            "s3",
            region_name=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
        )
        self.bucket = bucket or settings.s3_bucket

    def _error_code(self, error: ClientError) -> str:
        return str(error.response.get("Error", {}).get("Code", ""))

    def _read(self, key: str) -> bytes:
        response = self.client.get_object(Bucket=self.bucket, Key=key)
        body = response.get("Body")
        if body is None:
            raise BlobStoreError(f"No body in storage response for {key}")
        try:
            return body.read()
        finally:
            body.close()

    async def get_bytes(self, key: str) -> bytes:
        """
        Read the raw bytes stored under a key.

        Args:
            key: Storage key.

        Returns:
            Object bytes.

        Raises:
            BlobNotFoundError: If the key does not exist (yet).
            BlobStoreError: For any other read failure.
        """
        try:
            return await asyncio.to_thread(self._read, key)
        except ClientError as e:
            if self._error_code(e) in NOT_FOUND_CODES:
                raise BlobNotFoundError(f"Object not found: {key}") from e
            raise BlobStoreError(f"Failed to read {key}: {str(e)}") from e
        except BotoCoreError as e:
            raise BlobStoreError(f"Failed to read {key}: {str(e)}") from e

    async def delete(self, key: str) -> None:
        """
        Delete the object stored under a key.

        Args:
            key: Storage key.
        """
        try:
            await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise BlobStoreError(f"Failed to delete {key}: {str(e)}") from e

    async def ping(self) -> None:
        """Verify the bucket is reachable."""
        try:
            await asyncio.to_thread(self.client.head_bucket, Bucket=self.bucket)
        except (ClientError, BotoCoreError) as e:
            raise BlobStoreError(f"Bucket {self.bucket} unreachable: {str(e)}") from e
