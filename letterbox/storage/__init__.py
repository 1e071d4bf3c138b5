"""Blob storage backends."""

from letterbox.storage.base import (
    BlobStore,
    S3BlobStore,
    MemoryBlobStore,
    BlobStoreFactory,
)

__all__ = [
    "BlobStore",
    "S3BlobStore",
    "MemoryBlobStore",
    "BlobStoreFactory",
]
