"""
Blob store abstraction for letter assets.

Backends implement put/sign_url over named buckets. S3 (or any S3-compatible
endpoint) is the production backend; the in-memory backend serves local
development and tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Set, Tuple
from urllib.parse import quote
import asyncio
import time
import uuid

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from circuitbreaker import circuit
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from letterbox.core.config import settings
from letterbox.core.exceptions import StorageReadError, StorageWriteError
from letterbox.core.observability import get_logger, trace_operation


logger = get_logger(__name__)


class BlobStore(ABC):
    """Abstract base class for blob stores."""

    name: str = "abstract"

    @abstractmethod
    async def put(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        """Store bytes under bucket/path and return the path. Raises StorageWriteError."""
        pass

    @abstractmethod
    async def sign_url(self, bucket: str, path: str, ttl_seconds: int) -> str:
        """Return a time-limited read URL. Raises StorageReadError."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        pass

    async def close(self):
        """Release client resources."""
        return None


class S3BlobStore(BlobStore):
    """S3-compatible blob store backed by boto3."""

    name = "s3"

    def __init__(self, client=None):
        self.client = client or boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            region_name=settings.s3_region,
            use_ssl=settings.s3_use_ssl,
        )
        self._checked_buckets: Set[str] = set()

    def _ensure_bucket(self, bucket: str) -> None:
        if bucket in self._checked_buckets:
            return
        try:
            self.client.head_bucket(Bucket=bucket)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code not in {"404", "NoSuchBucket", "NotFound"}:
                raise
            kwargs: dict = {"Bucket": bucket}
            if settings.s3_region and settings.s3_region != "us-east-1":
                kwargs["CreateBucketConfiguration"] = {"LocationConstraint": settings.s3_region}
            try:
                self.client.create_bucket(**kwargs)
            except ClientError as create_exc:
                create_code = str(create_exc.response.get("Error", {}).get("Code", ""))
                if create_code not in {"BucketAlreadyOwnedByYou", "BucketAlreadyExists"}:
                    raise
        self._checked_buckets.add(bucket)

    # Transport failures are retried; ClientError (denied, quota) is not
    @retry(
        stop=stop_after_attempt(settings.storage_max_retries),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(BotoCoreError),
        reraise=True,
    )
    @circuit(failure_threshold=5, recovery_timeout=60)
    def _put_object(self, bucket: str, path: str, data: bytes, content_type: str) -> None:
        self._ensure_bucket(bucket)
        self.client.put_object(Bucket=bucket, Key=path, Body=data, ContentType=content_type)

    @trace_operation("s3_put")
    async def put(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        try:
            await asyncio.to_thread(self._put_object, bucket, path, data, content_type)
        except Exception as e:
            logger.error("S3 put failed", bucket=bucket, path=path, error=str(e))
            raise StorageWriteError(bucket, path, e) from e
        return path

    @trace_operation("s3_sign_url")
    async def sign_url(self, bucket: str, path: str, ttl_seconds: int) -> str:
        try:
            return await asyncio.to_thread(
                self.client.generate_presigned_url,
                "get_object",
                Params={"Bucket": bucket, "Key": path},
                ExpiresIn=ttl_seconds,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageReadError(bucket, path, e) from e

    async def health_check(self) -> bool:
        try:
            await asyncio.to_thread(self._ensure_bucket, settings.attachments_bucket)
            return True
        except Exception as e:
            logger.warning("S3 health check failed", error=str(e))
            return False


@dataclass(frozen=True)
class StoredObject:
    data: bytes
    content_type: str
    stored_at: float


class MemoryBlobStore(BlobStore):
    """
    Process-local blob store.

    Objects are never overwritten: a put to an existing path fails the same
    way a conditional write would on a real store.
    """

    name = "memory"

    def __init__(self, base_url: str = "memory://"):
        self.base_url = base_url
        self.objects: Dict[Tuple[str, str], StoredObject] = {}

    async def put(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        key = (bucket, path)
        if key in self.objects:
            raise StorageWriteError(bucket, path, FileExistsError(path))
        # Yield like a network call would
        await asyncio.sleep(0)
        self.objects[key] = StoredObject(data=data, content_type=content_type, stored_at=time.time())
        return path

    async def sign_url(self, bucket: str, path: str, ttl_seconds: int) -> str:
        await asyncio.sleep(0)
        if (bucket, path) not in self.objects:
            raise StorageReadError(bucket, path, FileNotFoundError(path))
        expires = int(time.time()) + ttl_seconds
        return (
            f"{self.base_url}{bucket}/{quote(path)}"
            f"?expires={expires}&token={uuid.uuid4().hex}"
        )

    def exists(self, bucket: str, path: str) -> bool:
        return (bucket, path) in self.objects

    async def health_check(self) -> bool:
        return True


class BlobStoreFactory:
    """Builds and holds the configured blob store for the process."""

    _store: Optional[BlobStore] = None

    @classmethod
    def create(cls, backend: str) -> BlobStore:
        if backend == "s3":
            return S3BlobStore()
        if backend == "memory":
            return MemoryBlobStore()
        raise ValueError(f"Unknown storage backend: {backend}")

    @classmethod
    async def init_store(cls, store: Optional[BlobStore] = None) -> BlobStore:
        cls._store = store or cls.create(settings.storage_backend)
        logger.info("Blob store initialized", backend=cls._store.name)
        return cls._store

    @classmethod
    def get_store(cls) -> BlobStore:
        if cls._store is None:
            raise RuntimeError("Blob store not initialized")
        return cls._store

    @classmethod
    async def close_store(cls):
        if cls._store is not None:
            await cls._store.close()
            logger.info("Blob store closed", backend=cls._store.name)
            cls._store = None
