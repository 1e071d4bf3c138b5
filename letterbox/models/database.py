"""
Database models for the letter service.
Defines the persisted entities: Letter and Participant.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import (
    Column, String, DateTime, Text, JSON, Enum, Index, Boolean, CheckConstraint, TypeDecorator
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.types import CHAR
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func
import enum
import uuid


Base = declarative_base()


# UUID type compatible with both PostgreSQL and SQLite
class UUID(TypeDecorator):
    """Platform-independent UUID type.

    Uses PostgreSQL's UUID type if available, otherwise uses
    CHAR(36), storing UUIDs as strings.
    """
    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID())
        else:
            return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        elif dialect.name == "postgresql":
            return str(value)
        else:
            if isinstance(value, uuid.UUID):
                return str(value)
            else:
                return str(uuid.UUID(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        else:
            if isinstance(value, uuid.UUID):
                return value
            else:
                return uuid.UUID(value)


class Mood(str, enum.Enum):
    """Tone tag a sender picks for a letter."""
    FORMAL = "formal"
    INFORMATIVE = "informative"
    APPRECIATION = "appreciation"
    REMINDER = "reminder"
    ANNOUNCEMENT = "announcement"
    GENERAL = "general"

    @property
    def emoji(self) -> str:
        return MOOD_EMOJIS[self]


MOOD_EMOJIS = {
    Mood.FORMAL: "📄",
    Mood.INFORMATIVE: "💡",
    Mood.APPRECIATION: "🙏",
    Mood.REMINDER: "⏰",
    Mood.ANNOUNCEMENT: "📢",
    Mood.GENERAL: "✉️",
}


_last_created_at: Optional[datetime] = None


def next_created_at() -> datetime:
    """Return a UTC timestamp strictly greater than any previously issued one."""
    global _last_created_at
    now = datetime.now(timezone.utc)
    if _last_created_at is not None and now <= _last_created_at:
        now = _last_created_at + timedelta(microseconds=1)
    _last_created_at = now
    return now


class Participant(Base):
    """
    A party that can send and receive letters.

    Rows are owned by the external profile service; this service only reads them.
    """
    __tablename__ = "participants"

    principal_id = Column(String(255), primary_key=True)
    display_name = Column(String(255), nullable=False)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    def __repr__(self):
        return f"<Participant(id={self.principal_id}, name={self.display_name})>"


class Letter(Base):
    """
    A letter exchanged between two participants.

    Immutable after insert except for ``is_read`` / ``read_at``.
    """
    __tablename__ = "letters"

    id = Column(UUID, primary_key=True, default=uuid.uuid4)

    sender_id = Column(String(255), nullable=False)
    recipient_id = Column(String(255), nullable=False)

    # Content
    subject = Column(Text)
    body = Column(Text, nullable=False)
    mood = Column(
        Enum(Mood, values_callable=lambda x: [e.value for e in x]),
        default=Mood.FORMAL,
        nullable=False
    )

    # Asset references (storage paths, never URLs)
    voice_path = Column(String(500))
    attachments = Column(JSON, default=list, nullable=False)

    # Read state
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime(timezone=True))

    created_at = Column(
        DateTime(timezone=True),
        default=next_created_at,
        nullable=False
    )

    __table_args__ = (
        Index("idx_letter_sender_created", "sender_id", "created_at"),
        Index("idx_letter_recipient_created", "recipient_id", "created_at"),
        CheckConstraint("length(trim(body)) > 0", name="check_letter_body_not_empty"),
    )

    def involves(self, principal_id: str) -> bool:
        return principal_id in (self.sender_id, self.recipient_id)

    def __repr__(self):
        return f"<Letter(id={self.id}, from={self.sender_id}, to={self.recipient_id}, read={self.is_read})>"
