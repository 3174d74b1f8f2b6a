"""
Blob storage for encrypted file contents.

Two backends share the BlobStore interface: S3 (or any S3 compatible
service such as MinIO) and the local filesystem. Only ciphertext is ever
handed to a backend.

Object keys follow ``{owner_id}/{file_id}/{file_name}.enc``; later versions
use ``{file_id}_v{n}`` as the middle segment.
"""

import asyncio
import json
from pathlib import Path
from typing import Dict, Optional

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from paperflow.config import Settings
from paperflow.kernel.errors import NotFoundError, StorageError
from paperflow.logging_config import get_logger

logger = get_logger(__name__)

CONTENT_TYPE = "application/octet-stream"
_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


def build_blob_path(owner_id, file_id, file_name: str, version: int = 1) -> str:
    """Object key for one version of a file."""
    safe_name = file_name.replace("/", "_").replace("\\", "_")
    segment = str(file_id) if version <= 1 else f"{file_id}_v{version}"
    return f"{owner_id}/{segment}/{safe_name}.enc"


class BlobStore:
    """Interface all blob backends implement. All methods are async."""

    async def put(self, path: str, data: bytes, metadata: Optional[Dict[str, str]] = None) -> str:
        """Store data at path and return the location to fetch it from."""
        raise NotImplementedError

    async def get(self, path: str) -> bytes:
        raise NotImplementedError

    async def delete(self, path: str) -> None:
        """Best-effort delete. A missing object is not an error."""
        raise NotImplementedError


class S3BlobStore(BlobStore):
    """Backed by S3 or MinIO through boto3. Calls run in a worker thread."""

    def __init__(
        self,
        bucket: str,
        endpoint: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        region: Optional[str] = None,
        client=None,
    ):
        self.bucket = bucket
        self.client = client or boto3.client(
            "s3",
            endpoint_url=endpoint or None,
            aws_access_key_id=access_key or None,
            aws_secret_access_key=secret_key or None,
            region_name=region or None,
            config=Config(signature_version="s3v4"),
        )

    async def put(self, path: str, data: bytes, metadata: Optional[Dict[str, str]] = None) -> str:
        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.bucket,
                Key=path,
                Body=data,
                ContentType=CONTENT_TYPE,
                Metadata=metadata or {},
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(
                "Blob upload failed",
                extra={"storage_path": path, "error": str(e)},
            )
            raise StorageError(f"Failed to store encrypted file: {e}") from e
        return path

    async def get(self, path: str) -> bytes:
        try:
            response = await asyncio.to_thread(
                self.client.get_object, Bucket=self.bucket, Key=path
            )
            return await asyncio.to_thread(response["Body"].read)
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                raise NotFoundError("Encrypted file not found in storage") from e
            raise StorageError(f"Failed to fetch encrypted file: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to fetch encrypted file: {e}") from e

    async def delete(self, path: str) -> None:
        try:
            await asyncio.to_thread(
                self.client.delete_object, Bucket=self.bucket, Key=path
            )
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                logger.info("Blob already absent", extra={"storage_path": path})
                return
            raise StorageError(f"Failed to delete encrypted file: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to delete encrypted file: {e}") from e


class LocalBlobStore(BlobStore):
    """Filesystem backend; metadata is kept in a JSON sidecar file."""

    def __init__(self, base_path: str):
        self.base_path = Path(base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _full_path(self, path: str) -> Path:
        full = (self.base_path / path).resolve()
        if self.base_path not in full.parents:
            raise StorageError(f"Invalid storage path: {path}")
        return full

    def _write(self, path: str, data: bytes, metadata: Dict[str, str]) -> None:
        full = self._full_path(path)
        full.parent.mkdir(parents=True, exist_ok=True)
        full.write_bytes(data)
        sidecar = full.with_name(full.name + ".meta.json")
        sidecar.write_text(json.dumps({"contentType": CONTENT_TYPE, "metadata": metadata}))

    def _remove(self, path: str) -> None:
        full = self._full_path(path)
        for target in (full, full.with_name(full.name + ".meta.json")):
            target.unlink(missing_ok=True)

    async def put(self, path: str, data: bytes, metadata: Optional[Dict[str, str]] = None) -> str:
        try:
            await asyncio.to_thread(self._write, path, data, metadata or {})
        except OSError as e:
            raise StorageError(f"Failed to store encrypted file: {e}") from e
        return path

    async def get(self, path: str) -> bytes:
        full = self._full_path(path)
        try:
            return await asyncio.to_thread(full.read_bytes)
        except FileNotFoundError as e:
            raise NotFoundError("Encrypted file not found in storage") from e
        except OSError as e:
            raise StorageError(f"Failed to fetch encrypted file: {e}") from e

    async def delete(self, path: str) -> None:
        try:
            await asyncio.to_thread(self._remove, path)
        except OSError as e:
            raise StorageError(f"Failed to delete encrypted file: {e}") from e


def _error_code(error: ClientError) -> Optional[str]:
    return error.response.get("Error", {}).get("Code")


def create_blob_store(settings: Settings) -> BlobStore:
    """Build the configured backend."""
    backend = settings.storage_backend.lower()
    if backend == "s3":
        return S3BlobStore(
            bucket=settings.s3_bucket,
            endpoint=settings.s3_endpoint,
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key,
            region=settings.s3_region,
        )
    if backend == "local":
        return LocalBlobStore(settings.local_storage_path)
    raise ValueError(f"Unknown storage backend: {settings.storage_backend}")
