# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
S3 Storage - Object store primitives for backup artifacts.

Thin wrapper over an aiobotocore S3 client: list, upload, download and
delete keys under the configured prefix. Use as an async context manager
so a single client serves the whole run:

    async with S3Storage(config.s3) as storage:
        keys = await storage.list_keys()
"""

from pathlib import Path
from typing import Any, List

import aiofiles
import structlog

from s3backup.config import S3Settings
from s3backup.exceptions import ListingUnavailableError, StorageError

logger = structlog.get_logger()

DOWNLOAD_CHUNK_SIZE = 1024 * 1024

# Files above this size are uploaded in parts
MULTIPART_THRESHOLD = 64 * 1024 * 1024

# S3 requires at least 5 MiB for every part but the last
MULTIPART_PART_SIZE = 8 * 1024 * 1024
MAX_UPLOAD_PARTS = 10_000


class S3Storage:
    """Backup artifact storage in one bucket/prefix."""

    def __init__(
        self,
        settings: S3Settings,
        session: Any = None,
        multipart_threshold: int = MULTIPART_THRESHOLD,
        part_size: int = MULTIPART_PART_SIZE,
    ):
        self.settings = settings
        self.multipart_threshold = multipart_threshold
        self.part_size = part_size
        self._session = session
        self._client_cm: Any = None
        self._client: Any = None

    @property
    def prefix(self) -> str:
        return self.settings.prefix.strip("/")

    def key_for(self, filename: str) -> str:
        """Object key under the configured prefix."""
        return f"{self.prefix}/{filename}" if self.prefix else filename

    async def __aenter__(self) -> "S3Storage":
        if self._session is None:
            from aiobotocore.session import get_session

            self._session = get_session()

        client_kwargs: dict = {"region_name": self.settings.region}
        if self.settings.endpoint:
            from aiobotocore.config import AioConfig

            client_kwargs["endpoint_url"] = self.settings.endpoint
            client_kwargs["config"] = AioConfig(s3={"addressing_style": "path"})
        if self.settings.access_key_id:
            client_kwargs["aws_access_key_id"] = self.settings.access_key_id
            client_kwargs["aws_secret_access_key"] = self.settings.secret_access_key

        self._client_cm = self._session.create_client("s3", **client_kwargs)
        self._client = await self._client_cm.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._client_cm is not None:
            await self._client_cm.__aexit__(exc_type, exc, tb)
        self._client_cm = None
        self._client = None

    @property
    def client(self) -> Any:
        if self._client is None:
            raise StorageError("S3Storage used outside of 'async with'")
        return self._client

    async def list_keys(self) -> List[str]:
        """
        List all keys under the prefix.

        Raises:
            ListingUnavailableError: If the listing cannot be fetched
        """
        keys: List[str] = []
        params: dict = {"Bucket": self.settings.bucket}
        if self.prefix:
            params["Prefix"] = f"{self.prefix}/"

        try:
            paginator = self.client.get_paginator("list_objects_v2")
            async for page in paginator.paginate(**params):
                for obj in page.get("Contents", []):
                    keys.append(obj["Key"])
        except StorageError:
            raise
        except Exception as e:
            raise ListingUnavailableError(
                f"Failed to list S3 objects: {e}",
                details={"bucket": self.settings.bucket, "prefix": self.prefix},
            ) from e

        logger.debug("objects_listed", total=len(keys), prefix=self.prefix)
        return keys

    async def upload(self, local_path: Path) -> str:
        """
        Upload a local file; the key is the prefix plus the file name.

        Files larger than multipart_threshold are streamed in parts so
        that at most one part is held in memory.

        Returns:
            The object key written
        """
        local_path = Path(local_path)
        key = self.key_for(local_path.name)

        try:
            size = local_path.stat().st_size
            if size > self.multipart_threshold:
                await self._upload_multipart(local_path, key, size)
            else:
                async with aiofiles.open(local_path, "rb") as f:
                    body = await f.read()
                await self.client.put_object(
                    Bucket=self.settings.bucket,
                    Key=key,
                    Body=body,
                )
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(
                f"Failed to upload to S3: {e}",
                details={"key": key, "path": str(local_path)},
            ) from e

        logger.info("artifact_uploaded", key=key, size=size)
        return key

    async def _upload_multipart(self, local_path: Path, key: str, size: int) -> None:
        bucket = self.settings.bucket
        part_size = max(self.part_size, -(-size // MAX_UPLOAD_PARTS))

        created = await self.client.create_multipart_upload(Bucket=bucket, Key=key)
        upload_id = created["UploadId"]
        parts: List[dict] = []

        try:
            async with aiofiles.open(local_path, "rb") as f:
                while True:
                    chunk = await f.read(part_size)
                    if not chunk:
                        break
                    part_number = len(parts) + 1
                    response = await self.client.upload_part(
                        Bucket=bucket,
                        Key=key,
                        UploadId=upload_id,
                        PartNumber=part_number,
                        Body=chunk,
                    )
                    parts.append({"ETag": response["ETag"], "PartNumber": part_number})

            await self.client.complete_multipart_upload(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": parts},
            )
        except BaseException:
            try:
                await self.client.abort_multipart_upload(
                    Bucket=bucket, Key=key, UploadId=upload_id
                )
            except Exception as e:
                logger.warning("multipart_abort_failed", key=key, error=str(e))
            raise

        logger.debug("multipart_upload_completed", key=key, parts=len(parts))

    async def download(self, key: str, local_path: Path) -> Path:
        """Stream an object to a local file."""
        local_path = Path(local_path)
        size = 0

        try:
            response = await self.client.get_object(Bucket=self.settings.bucket, Key=key)
            async with response["Body"] as stream:
                async with aiofiles.open(local_path, "wb") as f:
                    while True:
                        chunk = await stream.read(DOWNLOAD_CHUNK_SIZE)
                        if not chunk:
                            break
                        await f.write(chunk)
                        size += len(chunk)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(
                f"Failed to download from S3: {e}",
                details={"key": key, "path": str(local_path)},
            ) from e

        logger.info("artifact_downloaded", key=key, path=str(local_path), size=size)
        return local_path

    async def delete(self, key: str) -> None:
        """Delete one object."""
        try:
            await self.client.delete_object(Bucket=self.settings.bucket, Key=key)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(
                f"Failed to delete S3 object: {e}",
                details={"key": key},
            ) from e

        logger.debug("artifact_deleted", key=key)
