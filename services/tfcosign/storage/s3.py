"""
AWS S3 (and S3-compatible) storage backend.

Uses aioboto3 for async I/O. Auth relies on the SDK credential chain
(env vars, profile, instance role). Every call runs under a deadline.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import Any

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from tfcosign.logging_config import get_logger
from tfcosign.storage.protocol import (
    ObjectMeta,
    ObjectNotFoundError,
    ObjectStoreError,
    ObjectStorePermissionError,
    ObjectStoreTimeoutError,
)

logger = get_logger(__name__)


class S3Store:
    """Object store bound to a single S3 bucket."""

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        endpoint_url: str = "",
        timeout_seconds: float = 300.0,
    ) -> None:
        self._bucket = bucket
        self._region = region
        self._endpoint_url = endpoint_url or None
        self._timeout = timeout_seconds

        self._session = aioboto3.Session()
        self._client: Any = None

    @property
    def bucket(self) -> str:
        return self._bucket

    async def _get_client(self) -> Any:
        if self._client is None:
            self._client = await self._session.client(
                "s3",
                region_name=self._region,
                endpoint_url=self._endpoint_url,
            ).__aenter__()
            logger.debug(
                "S3 client initialized",
                bucket=self._bucket,
                region=self._region,
                endpoint_url=self._endpoint_url,
            )
        return self._client

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> ObjectMeta:
        try:
            client = await self._get_client()
            async with asyncio.timeout(self._timeout):
                response = await client.put_object(
                    Bucket=self._bucket,
                    Key=key,
                    Body=data,
                    ContentType=content_type,
                )
        except TimeoutError as e:
            raise ObjectStoreTimeoutError(key, self._timeout) from e
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code in ("AccessDenied", "403"):
                raise ObjectStorePermissionError(str(e)) from e
            raise ObjectStoreError(str(e)) from e
        except (BotoCoreError, ValueError) as e:
            raise ObjectStoreError(str(e)) from e

        etag = response.get("ETag", "").strip('"')

        return ObjectMeta(
            key=key,
            size_bytes=len(data),
            content_type=content_type,
            etag=etag,
            last_modified=datetime.now(UTC),
        )

    async def get(self, key: str, version_id: str = "") -> bytes:
        get_kwargs: dict[str, Any] = {"Bucket": self._bucket, "Key": key}
        if version_id:
            get_kwargs["VersionId"] = version_id

        try:
            client = await self._get_client()
            async with asyncio.timeout(self._timeout):
                response = await client.get_object(**get_kwargs)
                return await response["Body"].read()
        except TimeoutError as e:
            raise ObjectStoreTimeoutError(key, self._timeout) from e
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code in ("NoSuchKey", "NoSuchVersion", "404"):
                raise ObjectNotFoundError(key) from e
            if error_code in ("AccessDenied", "403"):
                raise ObjectStorePermissionError(str(e)) from e
            raise ObjectStoreError(str(e)) from e
        except (BotoCoreError, ValueError) as e:
            raise ObjectStoreError(str(e)) from e

    async def close(self) -> None:
        if self._client is not None:
            await self._client.__aexit__(None, None, None)
            self._client = None
            logger.debug("S3 client closed", bucket=self._bucket)
