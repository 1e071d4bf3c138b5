"""
Type and size policy for candidate assets, applied before any I/O.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple
import enum

from letterbox.core.config import settings
from letterbox.core.observability import get_logger, MetricsCollector
from letterbox.models.assets import AssetFile


logger = get_logger(__name__)


class RejectionReason(str, enum.Enum):
    UNSUPPORTED_TYPE = "unsupported_type"
    TOO_LARGE = "too_large"


@dataclass(frozen=True)
class ValidationResult:
    file: AssetFile
    reason: Optional[RejectionReason] = None
    # Policy the file was checked against, for user-facing messages
    allowed_types: Tuple[str, ...] = ()
    max_bytes: Optional[int] = None

    @property
    def accepted(self) -> bool:
        return self.reason is None


@dataclass
class ValidatedBatch:
    accepted: List[AssetFile] = field(default_factory=list)
    rejected: List[ValidationResult] = field(default_factory=list)


class AssetValidator:
    """Accepts or rejects files against an allow-list and a size ceiling."""

    def __init__(
        self,
        allowed_types: Optional[Sequence[str]] = None,
        max_bytes: Optional[int] = None,
    ):
        types = allowed_types if allowed_types is not None else settings.allowed_attachment_types
        self.allowed_types = tuple(dict.fromkeys(t.strip().lower() for t in types))
        self.max_bytes = max_bytes if max_bytes is not None else settings.max_asset_bytes

    @classmethod
    def for_attachments(cls) -> "AssetValidator":
        return cls(settings.allowed_attachment_types, settings.max_asset_bytes)

    @classmethod
    def for_voice(cls) -> "AssetValidator":
        return cls(settings.allowed_voice_types, settings.max_asset_bytes)

    def check(self, file: AssetFile) -> ValidationResult:
        # Content type may carry parameters, e.g. "audio/webm;codecs=opus"
        content_type = file.content_type.split(";", 1)[0].strip().lower()
        if content_type not in self.allowed_types:
            return self._reject(file, RejectionReason.UNSUPPORTED_TYPE)
        if file.size > self.max_bytes:
            return self._reject(file, RejectionReason.TOO_LARGE)
        return ValidationResult(file)

    def _reject(self, file: AssetFile, reason: RejectionReason) -> ValidationResult:
        return ValidationResult(file, reason, self.allowed_types, self.max_bytes)

    def partition(self, files: Iterable[AssetFile]) -> ValidatedBatch:
        """Split files into accepted and rejected, keeping submission order."""
        batch = ValidatedBatch()
        for file in files:
            result = self.check(file)
            if result.accepted:
                batch.accepted.append(file)
                continue
            batch.rejected.append(result)
            MetricsCollector.track_rejection(result.reason.value)
            logger.info(
                "Asset rejected",
                name=file.name,
                content_type=file.content_type,
                size=file.size,
                reason=result.reason.value,
            )
        return batch


def describe_rejection(result: ValidationResult) -> str:
    """User-facing explanation for a rejected file, built from the policy that rejected it."""
    if result.reason is RejectionReason.UNSUPPORTED_TYPE:
        if not result.allowed_types:
            return f"Files of type {result.file.content_type} are not allowed"
        return f"Only {', '.join(result.allowed_types)} files are allowed"
    max_bytes = result.max_bytes if result.max_bytes is not None else settings.max_asset_bytes
    return f"Files must be smaller than {_format_size(max_bytes)}"


def _format_size(num_bytes: int) -> str:
    if num_bytes >= 1024 * 1024 and num_bytes % (1024 * 1024) == 0:
        return f"{num_bytes // (1024 * 1024)}MB"
    if num_bytes >= 1024 and num_bytes % 1024 == 0:
        return f"{num_bytes // 1024}KB"
    return f"{num_bytes} bytes"
