from __future__ import annotations

import asyncio
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from core.exceptions import ObjectNotFoundError, StorageError
from core.sniff import guess_mime_type

_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


class S3Provider:
    """Stores objects in a single bucket of an S3-compatible object store.

    Every object is written with a ``public-read`` ACL so it can be served by
    URL, and with a content type sniffed from its leading bytes.
    """

    def __init__(
        self,
        bucket: str,
        access_key: str,
        secret_key: str,
        region: str,
        *,
        endpoint_url: str | None = None,
        connect_timeout: float = 8.0,
        read_timeout: float = 30.0,
        max_attempts: int = 3,
    ) -> None:
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        session = boto3.session.Session(
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
        )
        # boto3 clients are safe to share between threads
        self.client = session.client(
            "s3",
            endpoint_url=endpoint_url,
            config=Config(
                connect_timeout=connect_timeout,
                read_timeout=read_timeout,
                retries={"max_attempts": max_attempts, "mode": "standard"},
            ),
        )

    def _error(self, action: str, key: str, exc: Exception) -> StorageError:
        details = {"key": key, "backend": "s3", "bucket": self.bucket}
        if isinstance(exc, ClientError):
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_CODES:
                return ObjectNotFoundError(f"No object found at {key}", details)
        logger.error("S3 {action} failed for {key}: {error}", action=action, key=key, error=str(exc))
        return StorageError(f"Unable to {action} {key}: {exc}", details)

    def _put_sync(self, key: str, data: bytes) -> None:
        params: dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": data,
            "ACL": "public-read",
        }
        content_type = guess_mime_type(data)
        if content_type:
            params["ContentType"] = content_type
        self.client.put_object(**params)

    def _get_sync(self, key: str) -> bytes:
        response = self.client.get_object(Bucket=self.bucket, Key=key)
        body = response.get("Body")
        if body is None:
            raise StorageError(f"No file stream found on {key}", {"key": key, "backend": "s3", "bucket": self.bucket})
        try:
            return body.read()
        finally:
            body.close()

    async def put_object(self, key: str, data: bytes) -> None:
        try:
            await asyncio.to_thread(self._put_sync, key, data)
        except (BotoCoreError, ClientError) as exc:
            raise self._error("put", key, exc) from exc

    async def get_object(self, key: str) -> bytes:
        try:
            return await asyncio.to_thread(self._get_sync, key)
        except (BotoCoreError, ClientError) as exc:
            raise self._error("get", key, exc) from exc

    async def delete_object(self, key: str) -> None:
        # S3 deletes are idempotent, a missing key returns 204 as well
        try:
            await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise self._error("delete", key, exc) from exc

    def public_url(self, key: str) -> str:
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"


__all__ = ["S3Provider"]
