"""
Blob storage backends for encrypted file contents.
"""

from paperflow.kernel.storage.blob_store import (
    BlobStore,
    LocalBlobStore,
    S3BlobStore,
    build_blob_path,
    create_blob_store,
)

__all__ = [
    "BlobStore",
    "LocalBlobStore",
    "S3BlobStore",
    "build_blob_path",
    "create_blob_store",
]
