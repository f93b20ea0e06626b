"""S3 storage gateway for raw captures and archived takes."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool

from app.application.interfaces import ObjectStorageInterface
from app.config.settings import settings
from app.domain.errors import UploadIOError
from app.services.aws import create_boto3_client

logger = logging.getLogger(__name__)


class S3StorageGateway(ObjectStorageInterface):
    """Presigned URLs plus put/get/copy against a single bucket.

    Every call is a blocking boto3 round-trip pushed to the threadpool.
    Failures surface as ``UploadIOError`` so callers can retry them.
    """

    def __init__(
        self,
        *,
        client: Any | None = None,
        bucket: str | None = None,
        expires_in: int | None = None,
    ) -> None:
        self._bucket = bucket or settings.s3.bucket_name
        if not self._bucket:
            raise UploadIOError("S3 bucket name is not configured.")
        self._client = client or create_boto3_client(
            "s3",
            region_name=settings.s3.region,
            endpoint_url=settings.s3.endpoint_url,
            signature_version="s3v4",
        )
        self._expires_in = expires_in or settings.s3.presign_expiry_seconds

    @property
    def bucket(self) -> str:
        return self._bucket

    async def presign_upload(
        self,
        key: str,
        content_type: str,
        metadata: Mapping[str, str],
    ) -> str:
        params = {
            "Bucket": self._bucket,
            "Key": key,
            "ContentType": content_type,
            "Metadata": {name: str(value) for name, value in metadata.items()},
        }
        return await self._call(
            "presign upload",
            key,
            self._client.generate_presigned_url,
            "put_object",
            Params=params,
            ExpiresIn=self._expires_in,
        )

    async def presign_download(self, key: str) -> str:
        return await self._call(
            "presign download",
            key,
            self._client.generate_presigned_url,
            "get_object",
            Params={"Bucket": self._bucket, "Key": key},
            ExpiresIn=self._expires_in,
        )

    async def get_bytes(self, key: str) -> bytes:
        def _download() -> bytes:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
            return response["Body"].read()

        data = await self._call("download", key, _download)
        logger.info("Downloaded %d bytes from s3://%s/%s", len(data), self._bucket, key)
        return data

    async def put_bytes(self, key: str, data: bytes, content_type: str) -> None:
        if not data:
            raise UploadIOError(f"Refusing to upload an empty payload to {key}.")
        await self._call(
            "upload",
            key,
            self._client.put_object,
            Bucket=self._bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
        )
        logger.info("Uploaded %d bytes to s3://%s/%s", len(data), self._bucket, key)

    async def copy(self, src_key: str, dst_key: str) -> None:
        await self._call(
            "copy",
            f"{src_key} -> {dst_key}",
            self._client.copy_object,
            Bucket=self._bucket,
            CopySource={"Bucket": self._bucket, "Key": src_key},
            Key=dst_key,
        )
        logger.info("Copied s3://%s/%s to %s", self._bucket, src_key, dst_key)

    async def _call(
        self,
        operation: str,
        target: str,
        func: Any,
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        try:
            return await run_in_threadpool(func, *args, **kwargs)
        except (BotoCoreError, ClientError) as exc:
            raise UploadIOError(f"S3 {operation} failed for {target}: {exc}") from exc


_DEFAULT_GATEWAY: S3StorageGateway | None = None


def get_storage_gateway() -> S3StorageGateway:
    """Return the lazily-instantiated storage gateway singleton."""

    global _DEFAULT_GATEWAY
    if _DEFAULT_GATEWAY is None:
        _DEFAULT_GATEWAY = S3StorageGateway()
    return _DEFAULT_GATEWAY


__all__ = ["S3StorageGateway", "get_storage_gateway"]
