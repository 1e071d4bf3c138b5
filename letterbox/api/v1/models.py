"""
Pydantic models for API requests and responses.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime

from letterbox.models.assets import Attachment
from letterbox.models.database import Mood
from letterbox.services.asset_validator import describe_rejection
from letterbox.services.letter_service import ComposeResult, LetterView


class AttachmentResponse(BaseModel):
    """An attachment stored with a letter."""
    name: str = Field(..., description="Original file name")
    path: str = Field(..., description="Storage reference path")
    type: str = Field(..., description="Declared content type")
    size: int = Field(..., description="Size in bytes")
    preview: str = Field(..., description="image, video or document")


class LetterResponse(BaseModel):
    """Response model for a letter."""
    id: str = Field(..., description="Letter ID")
    sender_id: str = Field(..., description="Sender principal")
    sender_name: str = Field(..., description="Sender display name")
    recipient_id: str = Field(..., description="Recipient principal")
    recipient_name: str = Field(..., description="Recipient display name")
    subject: Optional[str] = Field(None, description="Subject")
    body: str = Field(..., description="Letter body")
    mood: Mood = Field(Mood.FORMAL, description="Mood tag")
    mood_emoji: str = Field(..., description="Emoji for the mood")
    voice_path: Optional[str] = Field(None, description="Voice clip reference path")
    attachments: List[AttachmentResponse] = Field(default=[], description="Stored attachments")
    is_read: bool = Field(False, description="Read by the recipient")
    read_at: Optional[datetime] = Field(None, description="When the recipient read it")
    created_at: datetime = Field(..., description="Creation timestamp")

    @classmethod
    def from_view(cls, view: LetterView) -> "LetterResponse":
        letter = view.letter
        attachments = [Attachment.from_record(item) for item in (letter.attachments or [])]
        return cls(
            id=str(letter.id),
            sender_id=letter.sender_id,
            sender_name=view.sender_name,
            recipient_id=letter.recipient_id,
            recipient_name=view.recipient_name,
            subject=letter.subject,
            body=letter.body,
            mood=letter.mood,
            mood_emoji=letter.mood.emoji,
            voice_path=letter.voice_path,
            attachments=[
                AttachmentResponse(
                    name=item.name,
                    path=item.path,
                    type=item.content_type,
                    size=item.size,
                    preview=item.preview_kind,
                )
                for item in attachments
            ],
            is_read=letter.is_read,
            read_at=letter.read_at,
            created_at=letter.created_at,
        )


class OmittedAsset(BaseModel):
    """An asset that was submitted but is not part of the letter."""
    name: str = Field(..., description="Original file name")
    reason: str = Field(..., description="unsupported_type, too_large or upload_failed")
    detail: Optional[str] = Field(None, description="Human readable explanation")


class ComposeResponse(BaseModel):
    """Response model for a sent letter."""
    letter: LetterResponse
    rejected: List[OmittedAsset] = Field(default=[], description="Assets refused by policy")
    failed: List[OmittedAsset] = Field(default=[], description="Assets whose upload failed")

    @classmethod
    def from_result(cls, result: ComposeResult, view: LetterView) -> "ComposeResponse":
        return cls(
            letter=LetterResponse.from_view(view),
            rejected=[
                OmittedAsset(
                    name=item.file.name,
                    reason=item.reason.value,
                    detail=describe_rejection(item),
                )
                for item in result.rejected
            ],
            failed=[
                OmittedAsset(name=item.name, reason="upload_failed", detail=item.error)
                for item in result.failed
            ],
        )


class LetterListResponse(BaseModel):
    """Response model for a principal's letters."""
    letters: List[LetterResponse] = Field(..., description="Letters, newest first")
    total: int = Field(..., description="Number of letters")


class LetterStatsResponse(BaseModel):
    sent: int
    received: int
    unread: int


class AssetUrlsResponse(BaseModel):
    """Signed URLs keyed by asset path; null when an asset is unavailable."""
    urls: Dict[str, Optional[str]] = Field(default={}, description="Path to URL mapping")
    expires_in: int = Field(..., description="URL lifetime in seconds")


class ErrorResponse(BaseModel):
    """Response model for errors."""
    error: str = Field(..., description="Error code")
    message: str = Field(..., description="Error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")


class HealthResponse(BaseModel):
    """Response model for health check."""
    status: str = Field(..., description="Health status")
    timestamp: datetime = Field(..., description="Check timestamp")
    checks: Dict[str, Dict[str, Any]] = Field(..., description="Individual check results")
