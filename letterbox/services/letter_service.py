"""
Letter service: composition-to-delivery on the send side, listing, read
state and asset URL resolution on the read side.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union
import asyncio

from sqlalchemy.ext.asyncio import AsyncSession

from letterbox.core.config import settings
from letterbox.core.exceptions import EmptyBodyError, NoRecipientError, PersistenceError
from letterbox.core.observability import get_logger, MetricsCollector, trace_operation, monitor_performance
from letterbox.models.assets import AssetFile, AssetKind, Attachment
from letterbox.models.database import Letter, Mood
from letterbox.services.access_resolver import SignedAccessResolver
from letterbox.services.asset_uploader import AssetUploader
from letterbox.services.asset_validator import AssetValidator, ValidationResult
from letterbox.services.letter_store import LetterCounts, LetterId, LetterStore
from letterbox.services.participant_directory import ParticipantDirectory, UNKNOWN_DISPLAY_NAME
from letterbox.services.read_state import ReadOutcome, ReadStateTracker
from letterbox.storage.base import BlobStore


logger = get_logger(__name__)


@dataclass(frozen=True)
class AssetFailure:
    """An accepted asset whose upload failed and was left out of the letter."""
    name: str
    kind: AssetKind
    error: str


@dataclass
class ComposeResult:
    letter: Letter
    rejected: List[ValidationResult] = field(default_factory=list)
    failed: List[AssetFailure] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        """True when every submitted asset made it into the letter."""
        return not self.rejected and not self.failed


@dataclass
class ScreenedAssets:
    """Assets that passed policy, plus the ones that did not."""
    attachments: List[AssetFile] = field(default_factory=list)
    voice: Optional[AssetFile] = None
    rejected: List[ValidationResult] = field(default_factory=list)


@dataclass(frozen=True)
class LetterView:
    letter: Letter
    sender_name: str
    recipient_name: str


class LetterService:
    """Service for handling letter operations."""

    def __init__(
        self,
        db_session: AsyncSession,
        blob_store: BlobStore,
        directory: Optional[ParticipantDirectory] = None,
    ):
        """
        Initialize letter service.

        Args:
            db_session: Database session
            blob_store: Store holding attachments and voice clips
            directory: Participant lookup; defaults to the database-backed one
        """
        self.letters = LetterStore(db_session)
        self.directory = directory or ParticipantDirectory(db_session)
        self.uploader = AssetUploader(blob_store)
        self.resolver = SignedAccessResolver(blob_store)
        self.read_state = ReadStateTracker(self.letters)
        self.attachment_validator = AssetValidator.for_attachments()
        self.voice_validator = AssetValidator.for_voice()

    @trace_operation("compose_letter")
    @monitor_performance("compose_letter")
    async def compose(
        self,
        sender_id: str,
        body: str,
        subject: Optional[str] = None,
        mood: Union[Mood, str] = Mood.FORMAL,
        voice: Optional[AssetFile] = None,
        attachments: Sequence[AssetFile] = (),
        recipient_id: Optional[str] = None,
        rejected: Sequence[ValidationResult] = (),
    ) -> ComposeResult:
        """
        Validate, upload and persist a letter.

        Attachments and the voice clip that fail validation or upload are
        left out; the send goes ahead with whatever was stored. ``rejected``
        carries files the caller already screened out with ``screen()`` so
        they are reported alongside the rest.

        Returns:
            ComposeResult with the stored letter and anything omitted

        Raises:
            EmptyBodyError: body is blank; nothing was uploaded
            NoRecipientError: no counterpart for the sender
            PersistenceError: the insert failed; uploaded blobs are orphaned
        """
        body = (body or "").strip()
        if not body:
            MetricsCollector.track_compose(EmptyBodyError.code)
            raise EmptyBodyError()

        mood = Mood(mood)

        try:
            recipient = await self.directory.resolve_recipient(sender_id, recipient_id)
        except NoRecipientError:
            MetricsCollector.track_compose(NoRecipientError.code)
            raise

        screened = self.screen(attachments, voice)
        rejected = list(rejected) + screened.rejected

        stored, voice_path, failed = await self._upload_assets(
            sender_id, screened.attachments, screened.voice
        )

        letter = Letter(
            sender_id=sender_id,
            recipient_id=recipient,
            subject=(subject or "").strip() or None,
            body=body,
            mood=mood,
            voice_path=voice_path,
            attachments=[item.to_record() for item in stored],
            is_read=False,
        )

        try:
            letter = await self.letters.append(letter)
        except PersistenceError:
            MetricsCollector.track_compose(PersistenceError.code)
            orphaned = [item.path for item in stored] + ([voice_path] if voice_path else [])
            if orphaned:
                logger.warning("Uploaded assets left without a letter", sender_id=sender_id, paths=orphaned)
            raise

        MetricsCollector.track_compose("sent")
        return ComposeResult(letter=letter, rejected=rejected, failed=failed)

    def screen(
        self,
        attachments: Sequence[AssetFile] = (),
        voice: Optional[AssetFile] = None,
    ) -> ScreenedAssets:
        """Apply the attachment and voice policies; no I/O."""
        batch = self.attachment_validator.partition(attachments)
        screened = ScreenedAssets(attachments=batch.accepted, rejected=list(batch.rejected))
        if voice is not None:
            voice_batch = self.voice_validator.partition([voice])
            if voice_batch.rejected:
                screened.rejected.extend(voice_batch.rejected)
            else:
                screened.voice = voice
        return screened

    async def _upload_assets(
        self,
        owner_id: str,
        attachments: Sequence[AssetFile],
        voice: Optional[AssetFile],
    ):
        """Upload everything concurrently; results come back in submission order."""

        async def attempt(file: AssetFile, bucket: str, kind: AssetKind):
            try:
                return await self.uploader.upload(owner_id, bucket, file, kind)
            except Exception as e:
                logger.warning(
                    "Asset upload failed, leaving it out",
                    owner_id=owner_id,
                    name=file.name,
                    kind=kind.value,
                    error=str(e),
                )
                return AssetFailure(name=file.name, kind=kind, error=str(e))

        jobs = [attempt(file, settings.attachments_bucket, AssetKind.ATTACHMENT) for file in attachments]
        if voice is not None:
            jobs.append(attempt(voice, settings.voice_bucket, AssetKind.VOICE))

        outcomes = await asyncio.gather(*jobs)

        stored: List[Attachment] = []
        failed: List[AssetFailure] = []
        for file, outcome in zip(attachments, outcomes):
            if isinstance(outcome, AssetFailure):
                failed.append(outcome)
            else:
                stored.append(Attachment(
                    name=file.name,
                    path=outcome,
                    content_type=file.content_type,
                    size=file.size,
                ))

        voice_path = None
        if voice is not None:
            outcome = outcomes[-1]
            if isinstance(outcome, AssetFailure):
                failed.append(outcome)
            else:
                voice_path = outcome

        return stored, voice_path, failed

    async def list_letters_for(self, principal_id: str) -> List[LetterView]:
        """Letters the principal sent or received, newest first, with names attached."""
        letters = await self.letters.list_for(principal_id)
        names = await self.directory.display_names()
        return [self._view(letter, names) for letter in letters]

    async def get_letter(self, letter_id: LetterId, principal_id: str) -> LetterView:
        letter = await self.letters.get_for(letter_id, principal_id)
        names = await self.directory.display_names()
        return self._view(letter, names)

    async def mark_read(self, letter_id: LetterId, principal_id: str) -> ReadOutcome:
        return await self.read_state.mark_read(letter_id, principal_id)

    async def resolve_asset_urls(self, letter: Letter) -> Dict[str, Optional[str]]:
        return await self.resolver.resolve_letter(letter)

    async def letter_counts(self, principal_id: str) -> LetterCounts:
        return await self.letters.counts_for(principal_id)

    @staticmethod
    def _view(letter: Letter, names: Dict[str, str]) -> LetterView:
        return LetterView(
            letter=letter,
            sender_name=names.get(letter.sender_id, UNKNOWN_DISPLAY_NAME),
            recipient_name=names.get(letter.recipient_id, UNKNOWN_DISPLAY_NAME),
        )
