"""
In-flight asset types: candidate files handed to the pipeline and the
attachment records written into a letter once their upload committed.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
import enum


class AssetKind(str, enum.Enum):
    """What an asset is for; selects the bucket it goes to."""
    ATTACHMENT = "attachment"
    VOICE = "voice"


@dataclass(frozen=True)
class AssetFile:
    """A candidate file as submitted by the sender."""

    name: str
    content_type: str
    data: bytes
    declared_size: Optional[int] = None

    @property
    def size(self) -> int:
        if self.declared_size is not None:
            return self.declared_size
        return len(self.data)

    @property
    def extension(self) -> str:
        _, dot, ext = self.name.rpartition(".")
        ext = ext.strip().lower() if dot else ""
        return ext or "bin"


@dataclass(frozen=True)
class Attachment:
    """An attachment whose upload completed."""

    name: str
    path: str
    content_type: str
    size: int

    @property
    def preview_kind(self) -> str:
        if self.content_type.startswith("image/"):
            return "image"
        if self.content_type.startswith("video/"):
            return "video"
        return "document"

    def to_record(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "type": self.content_type,
            "size": self.size,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Attachment":
        return cls(
            name=record["name"],
            path=record["path"],
            content_type=record["type"],
            size=int(record["size"]),
        )
