"""
API endpoints for letter operations.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Path, UploadFile

from letterbox.api.deps import get_letter_service, get_principal
from letterbox.api.v1.models import (
    AssetUrlsResponse, ComposeResponse, LetterListResponse, LetterResponse, LetterStatsResponse
)
from letterbox.core.observability import get_logger
from letterbox.models.assets import AssetFile
from letterbox.models.database import Mood
from letterbox.services.letter_service import LetterService


logger = get_logger(__name__)
router = APIRouter()


def _describe_upload(upload: UploadFile) -> AssetFile:
    """Name, type and size of an upload, without its bytes."""
    return AssetFile(
        name=upload.filename or "file",
        content_type=upload.content_type or "application/octet-stream",
        data=b"",
        declared_size=upload.size,
    )


async def _read_upload(upload: UploadFile, described: AssetFile) -> AssetFile:
    # Size comes from the bytes actually read so compose re-checks the real length
    return AssetFile(
        name=described.name,
        content_type=described.content_type,
        data=await upload.read(),
    )


@router.post("/", response_model=ComposeResponse, status_code=201)
async def compose_letter(
    body: str = Form(""),
    subject: Optional[str] = Form(None),
    mood: Mood = Form(Mood.FORMAL),
    recipient_id: Optional[str] = Form(None),
    voice: Optional[UploadFile] = File(None),
    attachments: List[UploadFile] = File(default=[]),
    principal: str = Depends(get_principal),
    service: LetterService = Depends(get_letter_service),
):
    """
    Compose and send a letter.

    Files that fail the type/size policy or fail to upload are reported in
    ``rejected`` / ``failed`` and the letter is sent without them.
    """
    described = [(_describe_upload(item), item) for item in attachments]
    voice_described = _describe_upload(voice) if voice is not None else None

    # Only files that pass the type/size policy are read into memory
    screened = service.screen([file for file, _ in described], voice_described)
    accepted = {id(file) for file in screened.attachments}
    attachment_files = [
        await _read_upload(upload, file) for file, upload in described if id(file) in accepted
    ]
    voice_file = None
    if screened.voice is not None:
        voice_file = await _read_upload(voice, voice_described)

    result = await service.compose(
        sender_id=principal,
        body=body,
        subject=subject,
        mood=mood,
        voice=voice_file,
        attachments=attachment_files,
        recipient_id=recipient_id,
        rejected=screened.rejected,
    )
    view = await service.get_letter(result.letter.id, principal)
    return ComposeResponse.from_result(result, view)


@router.get("/", response_model=LetterListResponse)
async def list_letters(
    principal: str = Depends(get_principal),
    service: LetterService = Depends(get_letter_service),
):
    """Letters the caller sent or received, newest first."""
    views = await service.list_letters_for(principal)
    return LetterListResponse(
        letters=[LetterResponse.from_view(view) for view in views],
        total=len(views),
    )


@router.get("/stats", response_model=LetterStatsResponse)
async def letter_stats(
    principal: str = Depends(get_principal),
    service: LetterService = Depends(get_letter_service),
):
    counts = await service.letter_counts(principal)
    return LetterStatsResponse(sent=counts.sent, received=counts.received, unread=counts.unread)


@router.get("/{letter_id}", response_model=LetterResponse)
async def get_letter(
    letter_id: UUID = Path(..., description="Letter ID"),
    principal: str = Depends(get_principal),
    service: LetterService = Depends(get_letter_service),
):
    view = await service.get_letter(letter_id, principal)
    return LetterResponse.from_view(view)


@router.post("/{letter_id}/read", response_model=LetterResponse)
async def mark_letter_read(
    letter_id: UUID = Path(..., description="Letter ID"),
    principal: str = Depends(get_principal),
    service: LetterService = Depends(get_letter_service),
):
    """
    Mark a letter read.

    Only the recipient's first call changes anything; repeat calls and calls
    by the sender return the letter as it is.
    """
    await service.mark_read(letter_id, principal)
    view = await service.get_letter(letter_id, principal)
    return LetterResponse.from_view(view)


@router.get("/{letter_id}/assets", response_model=AssetUrlsResponse)
async def letter_asset_urls(
    letter_id: UUID = Path(..., description="Letter ID"),
    principal: str = Depends(get_principal),
    service: LetterService = Depends(get_letter_service),
):
    """Signed URLs for the letter's attachments and voice clip."""
    view = await service.get_letter(letter_id, principal)
    urls = await service.resolve_asset_urls(view.letter)
    return AssetUrlsResponse(urls=urls, expires_in=service.resolver.ttl_seconds)
