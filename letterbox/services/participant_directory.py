"""
Read-only view over participants and recipient resolution.
"""

from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from letterbox.core.config import settings
from letterbox.core.exceptions import NoRecipientError, PersistenceError
from letterbox.core.observability import get_logger
from letterbox.models.database import Participant


logger = get_logger(__name__)

UNKNOWN_DISPLAY_NAME = "Unknown"


class ParticipantDirectory:
    """Lists participants and picks the counterpart for a sender."""

    def __init__(self, db_session: AsyncSession, legacy_two_party: Optional[bool] = None):
        self.db = db_session
        self.legacy_two_party = (
            settings.legacy_two_party_recipient if legacy_two_party is None else legacy_two_party
        )

    async def list_participants(self) -> List[Participant]:
        try:
            result = await self.db.execute(
                select(Participant).order_by(Participant.created_at, Participant.principal_id)
            )
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to list participants", e) from e
        return list(result.scalars().all())

    async def display_names(self, principal_ids: Optional[Iterable[str]] = None) -> Dict[str, str]:
        """Map principal id to display name; ids without a profile map to "Unknown"."""
        names = {p.principal_id: p.display_name for p in await self.list_participants()}
        if principal_ids is None:
            return names
        return {pid: names.get(pid, UNKNOWN_DISPLAY_NAME) for pid in principal_ids}

    async def resolve_recipient(self, sender_id: str, recipient_id: Optional[str] = None) -> str:
        """
        Return the recipient principal for a letter from ``sender_id``.

        With an explicit ``recipient_id`` it must be a known participant other
        than the sender. Without one, legacy mode picks the first participant
        that is not the sender.

        Raises:
            NoRecipientError: no valid counterpart.
        """
        participants = await self.list_participants()

        if recipient_id:
            if recipient_id == sender_id or all(p.principal_id != recipient_id for p in participants):
                raise NoRecipientError(sender_id, recipient_id)
            return recipient_id

        if not self.legacy_two_party:
            raise NoRecipientError(sender_id)

        candidates = [p for p in participants if p.principal_id != sender_id]
        if not candidates:
            raise NoRecipientError(sender_id)
        if len(candidates) > 1:
            logger.warning(
                "Several possible recipients, picking the first",
                sender_id=sender_id,
                candidates=len(candidates),
                picked=candidates[0].principal_id,
            )
        return candidates[0].principal_id
