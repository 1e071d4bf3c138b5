"""Database models package."""

from letterbox.models.database import (
    Base,
    Letter,
    Participant,
    Mood,
    MOOD_EMOJIS,
)
from letterbox.models.assets import AssetFile, AssetKind, Attachment

__all__ = [
    "Base",
    "Letter",
    "Participant",
    "Mood",
    "MOOD_EMOJIS",
    "AssetFile",
    "AssetKind",
    "Attachment",
]
