"""
Persistence for letters: append-only inserts plus the read flag.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Union
import uuid

from sqlalchemy import select, update, or_, and_, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from letterbox.core.exceptions import LetterNotFoundError, PersistenceError
from letterbox.core.observability import get_logger, trace_operation
from letterbox.models.database import Letter


logger = get_logger(__name__)

LetterId = Union[str, uuid.UUID]


def parse_letter_id(letter_id: LetterId) -> uuid.UUID:
    if isinstance(letter_id, uuid.UUID):
        return letter_id
    try:
        return uuid.UUID(str(letter_id))
    except ValueError as e:
        raise LetterNotFoundError(str(letter_id)) from e


@dataclass(frozen=True)
class LetterCounts:
    sent: int
    received: int
    unread: int


class LetterStore:
    """Letter table access. Every write is a single statement followed by commit."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    @trace_operation("letter_store_append")
    async def append(self, letter: Letter) -> Letter:
        """
        Insert ``letter`` and return it with id and timestamp assigned.

        Raises:
            PersistenceError: the insert failed; nothing was written.
        """
        try:
            self.db.add(letter)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Letter insert failed", sender_id=letter.sender_id, error=str(e))
            raise PersistenceError("Failed to store letter", e) from e

        logger.info(
            "Letter stored",
            letter_id=str(letter.id),
            sender_id=letter.sender_id,
            recipient_id=letter.recipient_id,
            attachments=len(letter.attachments or []),
        )
        return letter

    async def get(self, letter_id: LetterId) -> Optional[Letter]:
        try:
            return await self.db.get(Letter, parse_letter_id(letter_id), populate_existing=True)
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to load letter", e) from e

    async def get_for(self, letter_id: LetterId, principal_id: str) -> Letter:
        """Fetch a letter the principal sent or received."""
        letter = await self.get(letter_id)
        if letter is None or not letter.involves(principal_id):
            raise LetterNotFoundError(str(letter_id))
        return letter

    async def list_for(self, principal_id: str) -> List[Letter]:
        """Letters where the principal is sender or recipient, newest first."""
        query = (
            select(Letter)
            .where(or_(Letter.sender_id == principal_id, Letter.recipient_id == principal_id))
            .order_by(Letter.created_at.desc())
        )
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to list letters", e) from e
        return list(result.scalars().all())

    async def mark_read(self, letter_id: LetterId, acting_principal: str) -> bool:
        """
        Flip ``is_read`` to true if ``acting_principal`` is the recipient and the
        letter is unread. Returns True only when this call made the transition.
        """
        stmt = (
            update(Letter)
            .where(
                Letter.id == parse_letter_id(letter_id),
                Letter.recipient_id == acting_principal,
                Letter.is_read.is_(False),
            )
            .values(is_read=True, read_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError("Failed to update read flag", e) from e
        return result.rowcount == 1

    async def counts_for(self, principal_id: str) -> LetterCounts:
        """Sent, received and unread-received totals for a principal."""
        query = select(
            func.count().filter(Letter.sender_id == principal_id),
            func.count().filter(Letter.recipient_id == principal_id),
            func.count().filter(
                and_(Letter.recipient_id == principal_id, Letter.is_read.is_(False))
            ),
        ).where(or_(Letter.sender_id == principal_id, Letter.recipient_id == principal_id))
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to count letters", e) from e
        sent, received, unread = result.one()
        return LetterCounts(sent=sent or 0, received=received or 0, unread=unread or 0)
