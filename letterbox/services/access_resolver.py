"""
Turns stored asset paths into short-lived signed URLs at render time.
"""

from typing import Dict, List, Optional, Tuple
import asyncio

from letterbox.core.config import settings
from letterbox.core.observability import get_logger, MetricsCollector, trace_operation
from letterbox.models.database import Letter
from letterbox.storage.base import BlobStore


logger = get_logger(__name__)


class SignedAccessResolver:
    """
    Resolves each asset independently; an asset that cannot be signed maps to
    None and never blocks its siblings. Nothing is cached, so callers resolve
    again on each render or once the TTL has passed.
    """

    def __init__(
        self,
        store: BlobStore,
        ttl_seconds: Optional[int] = None,
        attachments_bucket: Optional[str] = None,
        voice_bucket: Optional[str] = None,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds or settings.signed_url_ttl_seconds
        self.attachments_bucket = attachments_bucket or settings.attachments_bucket
        self.voice_bucket = voice_bucket or settings.voice_bucket

    async def resolve(self, bucket: str, path: str, ttl_seconds: Optional[int] = None) -> Optional[str]:
        try:
            url = await self.store.sign_url(bucket, path, ttl_seconds or self.ttl_seconds)
        except Exception as e:
            MetricsCollector.track_resolution(False)
            logger.warning("Asset URL unavailable", bucket=bucket, path=path, error=str(e))
            return None
        MetricsCollector.track_resolution(True)
        return url

    def _targets(self, letter: Letter) -> List[Tuple[str, str]]:
        targets = [(self.attachments_bucket, item["path"]) for item in (letter.attachments or [])]
        if letter.voice_path:
            targets.append((self.voice_bucket, letter.voice_path))
        return targets

    @trace_operation("resolve_asset_urls")
    async def resolve_letter(self, letter: Letter) -> Dict[str, Optional[str]]:
        """Map every asset path of ``letter`` to a signed URL or None."""
        targets = self._targets(letter)
        if not targets:
            return {}
        urls = await asyncio.gather(*(self.resolve(bucket, path) for bucket, path in targets))
        return {path: url for (_, path), url in zip(targets, urls)}
