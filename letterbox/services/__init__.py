"""Business logic services."""

from letterbox.services.asset_validator import AssetValidator, RejectionReason, ValidationResult
from letterbox.services.asset_uploader import AssetUploader, build_asset_path
from letterbox.services.participant_directory import ParticipantDirectory
from letterbox.services.letter_store import LetterStore, LetterCounts
from letterbox.services.read_state import ReadStateTracker, ReadState, ReadOutcome
from letterbox.services.access_resolver import SignedAccessResolver
from letterbox.services.letter_service import LetterService, ComposeResult, AssetFailure, LetterView
from letterbox.services.voice_capture import VoiceCaptureSession, AudioInputDevice, CaptureState

__all__ = [
    "AssetValidator",
    "RejectionReason",
    "ValidationResult",
    "AssetUploader",
    "build_asset_path",
    "ParticipantDirectory",
    "LetterStore",
    "LetterCounts",
    "ReadStateTracker",
    "ReadState",
    "ReadOutcome",
    "SignedAccessResolver",
    "LetterService",
    "ComposeResult",
    "AssetFailure",
    "LetterView",
    "VoiceCaptureSession",
    "AudioInputDevice",
    "CaptureState",
]
