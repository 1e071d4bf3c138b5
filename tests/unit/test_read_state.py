"""Tests for the unread -> read transition."""

import pytest

from letterbox.core.exceptions import LetterNotFoundError
from letterbox.models.database import Letter
from letterbox.services.letter_store import LetterStore
from letterbox.services.read_state import ReadState, ReadStateTracker


@pytest.fixture
async def letter(async_db):
    store = LetterStore(async_db)
    return await store.append(Letter(sender_id="alice", recipient_id="bob", body="Hi", attachments=[]))


@pytest.mark.asyncio
async def test_recipient_reads_once(async_db, letter):
    tracker = ReadStateTracker(LetterStore(async_db))

    first = await tracker.mark_read(letter.id, "bob")
    assert first.transitioned is True
    assert first.state is ReadState.READ

    again = await tracker.mark_read(letter.id, "bob")
    assert again.transitioned is False
    assert again.state is ReadState.READ
    assert again.letter.read_at == first.letter.read_at


@pytest.mark.asyncio
async def test_sender_cannot_mark_read(async_db, letter):
    tracker = ReadStateTracker(LetterStore(async_db))

    outcome = await tracker.mark_read(letter.id, "alice")

    assert outcome.transitioned is False
    assert outcome.state is ReadState.UNREAD
    assert outcome.letter.read_at is None


@pytest.mark.asyncio
async def test_outsider_gets_not_found(async_db, letter):
    tracker = ReadStateTracker(LetterStore(async_db))

    with pytest.raises(LetterNotFoundError):
        await tracker.mark_read(letter.id, "mallory")
