"""S3ObjectStore — S3-compatible ObjectStore (AWS, MinIO, R2) via aiobotocore."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from typing import IO, TYPE_CHECKING, Any

from aiobotocore.session import get_session
from botocore.config import Config
from botocore.exceptions import ClientError

from .exceptions import PathNotFoundError, StorageFailure
from .types import ObjectInfo, ObjectListing
from .utils import key_to_path

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

_DELETE_BATCH_SIZE = 1000
_CHUNK_SIZE = 64 * 1024
_NOT_FOUND_CODES = {"404", "NoSuchKey", "NoSuchBucket", "NotFound"}
_DEFAULT_REGION = "us-east-1"


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class S3ObjectStore:
    """Object store backed by one S3 bucket.

    Holds a single long-lived client between ``open()`` and ``close()``.
    ``open()`` also checks that the bucket exists and creates it when it
    does not; a failure there is logged and start-up continues.

    Usage::

        store = S3ObjectStore(
            bucket="files",
            endpoint_url="http://localhost:9000",
            access_key="minio",
            secret_key="minio123",
        )
        await store.open()
        listing = await store.list_objects("reports/")
        await store.close()
    """

    def __init__(
        self,
        *,
        bucket: str,
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        region: str = _DEFAULT_REGION,
        create_bucket: bool = True,
    ) -> None:
        self._bucket = bucket
        self._endpoint_url = endpoint_url or None
        self._access_key = access_key
        self._secret_key = secret_key
        self._region = region or _DEFAULT_REGION
        self._create_bucket = create_bucket
        self._exit_stack: AsyncExitStack | None = None
        self._client: Any = None

    @property
    def bucket(self) -> str:
        return self._bucket

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        if self._client is not None:
            return
        stack = AsyncExitStack()
        config = Config(signature_version="s3v4", s3={"addressing_style": "path"})
        session = get_session()
        self._client = await stack.enter_async_context(
            session.create_client(
                "s3",
                region_name=self._region,
                endpoint_url=self._endpoint_url,
                aws_access_key_id=self._access_key,
                aws_secret_access_key=self._secret_key,
                config=config,
            )
        )
        self._exit_stack = stack
        if self._create_bucket:
            await self._ensure_bucket()

    async def close(self) -> None:
        if self._exit_stack is not None:
            await self._exit_stack.aclose()
        self._exit_stack = None
        self._client = None

    async def _ensure_bucket(self) -> None:
        client = self._require_client()
        try:
            await client.head_bucket(Bucket=self._bucket)
            logger.info("Bucket '%s' exists and is accessible", self._bucket)
            return
        except ClientError as e:
            if _error_code(e) not in _NOT_FOUND_CODES:
                logger.warning("Could not verify bucket '%s'", self._bucket, exc_info=True)
                return
        except Exception:
            logger.warning("Could not verify bucket '%s'", self._bucket, exc_info=True)
            return

        logger.info("Bucket '%s' does not exist; creating it", self._bucket)
        kwargs: dict[str, Any] = {"Bucket": self._bucket}
        if self._region != _DEFAULT_REGION:
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self._region}
        try:
            await client.create_bucket(**kwargs)
            logger.info("Bucket '%s' created", self._bucket)
        except Exception:
            logger.warning(
                "Could not create bucket '%s'; file operations may fail",
                self._bucket,
                exc_info=True,
            )

    def _require_client(self) -> Any:
        if self._client is None:
            raise StorageFailure("S3 store is not open; call open() first")
        return self._client

    # ------------------------------------------------------------------
    # ObjectStore protocol
    # ------------------------------------------------------------------

    async def list_objects(self, prefix: str, delimiter: str = "/") -> ObjectListing:
        client = self._require_client()
        listing = ObjectListing(prefix=prefix)
        paginator = client.get_paginator("list_objects_v2")
        async for page in paginator.paginate(
            Bucket=self._bucket, Prefix=prefix, Delimiter=delimiter
        ):
            for common in page.get("CommonPrefixes", []):
                listing.common_prefixes.append(common["Prefix"])
            for obj in page.get("Contents", []):
                listing.objects.append(
                    ObjectInfo(
                        key=obj["Key"],
                        size=obj.get("Size", 0),
                        last_modified=obj.get("LastModified"),
                    )
                )
        return listing

    async def list_keys(self, prefix: str) -> list[str]:
        client = self._require_client()
        keys: list[str] = []
        paginator = client.get_paginator("list_objects_v2")
        async for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
            keys.extend(obj["Key"] for obj in page.get("Contents", []))
        return keys

    async def put_object(
        self,
        key: str,
        body: IO[bytes],
        content_length: int,
        content_type: str | None = None,
    ) -> None:
        client = self._require_client()
        kwargs: dict[str, Any] = {
            "Bucket": self._bucket,
            "Key": key,
            "Body": body,
            "ContentLength": content_length,
        }
        if content_type:
            kwargs["ContentType"] = content_type
        await client.put_object(**kwargs)

    async def copy_object(self, source_key: str, dest_key: str) -> None:
        client = self._require_client()
        try:
            await client.copy_object(
                Bucket=self._bucket,
                CopySource={"Bucket": self._bucket, "Key": source_key},
                Key=dest_key,
            )
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise PathNotFoundError(source_key) from e
            raise

    async def delete_object(self, key: str) -> None:
        client = self._require_client()
        try:
            await client.delete_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise PathNotFoundError(key) from e
            raise

    async def delete_objects(self, keys: list[str]) -> None:
        """Batch delete; raises on the first per-key error S3 reports."""
        client = self._require_client()
        for i in range(0, len(keys), _DELETE_BATCH_SIZE):
            batch = keys[i : i + _DELETE_BATCH_SIZE]
            resp = await client.delete_objects(
                Bucket=self._bucket,
                Delete={"Objects": [{"Key": k} for k in batch], "Quiet": True},
            )
            errors = resp.get("Errors", [])
            if errors:
                first = errors[0]
                raise StorageFailure(
                    f"Failed to delete {first.get('Key')}: {first.get('Code')}",
                    paths=[key_to_path(first.get("Key", ""))],
                )

    async def get_object(self, key: str) -> AsyncIterator[bytes]:
        client = self._require_client()
        try:
            resp = await client.get_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise PathNotFoundError(key) from e
            raise
        return _stream_body(resp["Body"])


async def _stream_body(body: Any) -> AsyncIterator[bytes]:
    try:
        async for chunk in body.iter_chunks(_CHUNK_SIZE):
            yield chunk
    finally:
        body.close()
