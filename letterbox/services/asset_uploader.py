"""
Uploads single assets into owner-scoped paths.
"""

from datetime import datetime, timezone
from typing import Callable, Optional
import uuid

from letterbox.core.observability import get_logger, MetricsCollector
from letterbox.models.assets import AssetFile, AssetKind
from letterbox.storage.base import BlobStore


logger = get_logger(__name__)


def build_asset_path(owner_id: str, file: AssetFile, now: Optional[datetime] = None) -> str:
    """
    ``<owner>/<epoch ms>-<random hex>.<ext>``

    The owner prefix keeps principals apart; the random part makes two uploads
    in the same millisecond distinct.
    """
    now = now or datetime.now(timezone.utc)
    stamp = int(now.timestamp() * 1000)
    return f"{owner_id}/{stamp}-{uuid.uuid4().hex}.{file.extension}"


class AssetUploader:
    """Writes one asset to a bucket; every call is independent of its siblings."""

    def __init__(
        self,
        store: BlobStore,
        path_builder: Callable[[str, AssetFile], str] = build_asset_path,
    ):
        self.store = store
        self.path_builder = path_builder

    async def upload(
        self,
        owner_id: str,
        bucket: str,
        file: AssetFile,
        kind: AssetKind = AssetKind.ATTACHMENT,
    ) -> str:
        """
        Store ``file`` and return its reference path.

        Raises:
            StorageWriteError: the blob store rejected the write.
        """
        path = self.path_builder(owner_id, file)
        try:
            with MetricsCollector.track_upload_duration(kind.value):
                stored_path = await self.store.put(bucket, path, file.data, file.content_type)
        except Exception:
            MetricsCollector.track_upload(kind.value, "failed")
            raise

        MetricsCollector.track_upload(kind.value, "stored")
        logger.debug("Asset stored", bucket=bucket, path=stored_path, size=file.size)
        return stored_path
