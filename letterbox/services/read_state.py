"""
Unread -> Read transition for letters, scoped to the recipient.
"""

from dataclasses import dataclass
import enum

from letterbox.core.observability import get_logger, MetricsCollector, trace_operation
from letterbox.models.database import Letter
from letterbox.services.letter_store import LetterId, LetterStore


logger = get_logger(__name__)


class ReadState(str, enum.Enum):
    UNREAD = "unread"
    READ = "read"  # terminal

    @classmethod
    def of(cls, letter: Letter) -> "ReadState":
        return cls.READ if letter.is_read else cls.UNREAD


@dataclass(frozen=True)
class ReadOutcome:
    letter: Letter
    transitioned: bool

    @property
    def state(self) -> ReadState:
        return ReadState.of(self.letter)


class ReadStateTracker:
    """
    Applies the read transition. Calls by the sender, by outsiders, or on an
    already-read letter are no-ops that return the current state.
    """

    def __init__(self, store: LetterStore):
        self.store = store

    @trace_operation("mark_read")
    async def mark_read(self, letter_id: LetterId, acting_principal: str) -> ReadOutcome:
        letter = await self.store.get_for(letter_id, acting_principal)

        transitioned = False
        if letter.recipient_id == acting_principal and not letter.is_read:
            transitioned = await self.store.mark_read(letter.id, acting_principal)
            letter = await self.store.get(letter.id)

        if transitioned:
            MetricsCollector.track_read_transition()
            logger.info("Letter marked read", letter_id=str(letter.id), recipient_id=acting_principal)

        return ReadOutcome(letter=letter, transitioned=transitioned)
