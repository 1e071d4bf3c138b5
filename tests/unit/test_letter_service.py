"""Tests for the letter service: compose pipeline and read side."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from letterbox.core.config import settings
from letterbox.core.exceptions import (
    EmptyBodyError, NoRecipientError, PersistenceError, StorageWriteError
)
from letterbox.models.assets import AssetFile, AssetKind
from letterbox.models.database import Mood
from letterbox.services.asset_validator import RejectionReason
from letterbox.services.letter_service import LetterService
from letterbox.services.participant_directory import ParticipantDirectory
from letterbox.services.read_state import ReadState
from letterbox.storage.base import MemoryBlobStore


class FailingBlobStore(MemoryBlobStore):
    """Refuses writes whose payload is in ``poisoned``."""

    def __init__(self, poisoned):
        super().__init__()
        self.poisoned = set(poisoned)
        self.attempts = []

    async def put(self, bucket, path, data, content_type):
        self.attempts.append((bucket, path))
        if data in self.poisoned:
            raise StorageWriteError(bucket, path, OSError("quota exceeded"))
        return await super().put(bucket, path, data, content_type)


class SlowBlobStore(MemoryBlobStore):
    """Delays each write by ``delays[data]`` seconds and records completion order."""

    def __init__(self, delays):
        super().__init__()
        self.delays = delays
        self.completed = []

    async def put(self, bucket, path, data, content_type):
        await asyncio.sleep(self.delays.get(data, 0))
        stored = await super().put(bucket, path, data, content_type)
        self.completed.append(data)
        return stored


def image(name, data=None):
    return AssetFile(name=name, content_type="image/png", data=data or name.encode())


@pytest.fixture
def service(async_db, participants, blob_store):
    return LetterService(async_db, blob_store)


@pytest.mark.asyncio
async def test_plain_letter_gets_defaults(service, blob_store):
    result = await service.compose("alice", "Hello")

    letter = result.letter
    assert letter.sender_id == "alice"
    assert letter.recipient_id == "bob"
    assert letter.body == "Hello"
    assert letter.attachments == []
    assert letter.voice_path is None
    assert letter.mood == Mood.FORMAL
    assert letter.is_read is False
    assert result.complete
    assert blob_store.objects == {}


@pytest.mark.asyncio
@pytest.mark.parametrize("body", ["", "   ", "\n\t "])
async def test_blank_body_fails_without_io(async_db, participants, body, png_file):
    store = AsyncMock()
    service = LetterService(async_db, store)

    with pytest.raises(EmptyBodyError):
        await service.compose("alice", body, attachments=[png_file])

    store.put.assert_not_called()
    assert await service.letters.list_for("alice") == []


@pytest.mark.asyncio
async def test_blank_body_is_checked_before_recipient(async_db, blob_store):
    service = LetterService(async_db, blob_store)

    with pytest.raises(EmptyBodyError):
        await service.compose("alice", "  ")


@pytest.mark.asyncio
async def test_body_and_subject_are_trimmed(service):
    result = await service.compose("alice", "  Hello there \n", subject="   ")

    assert result.letter.body == "Hello there"
    assert result.letter.subject is None


@pytest.mark.asyncio
async def test_mood_accepts_string_values(service):
    result = await service.compose("alice", "Thanks!", subject="Note", mood="appreciation")

    assert result.letter.mood is Mood.APPRECIATION
    assert result.letter.subject == "Note"


@pytest.mark.asyncio
async def test_oversized_attachment_is_left_out(service, blob_store, png_file):
    big = AssetFile(
        name="huge.png",
        content_type="image/png",
        data=b"",
        declared_size=settings.max_asset_bytes + 1,
    )

    result = await service.compose("alice", "See attached", attachments=[png_file, big])

    assert [a["name"] for a in result.letter.attachments] == ["photo.png"]
    assert [r.file.name for r in result.rejected] == ["huge.png"]
    assert result.rejected[0].reason is RejectionReason.TOO_LARGE
    assert len(blob_store.objects) == 1


@pytest.mark.asyncio
async def test_invalid_attachment_never_reaches_uploader(service, png_file, pdf_file):
    wrong = AssetFile(name="notes.txt", content_type="text/plain", data=b"notes")

    with patch.object(service.uploader, "upload", wraps=service.uploader.upload) as upload:
        result = await service.compose("alice", "Files", attachments=[png_file, wrong, pdf_file])

    uploaded = [c.args[2].name for c in upload.call_args_list]
    assert uploaded == ["photo.png", "Report.PDF"]
    assert len(result.letter.attachments) == 2
    assert result.rejected[0].reason is RejectionReason.UNSUPPORTED_TYPE


@pytest.mark.asyncio
@pytest.mark.parametrize("failing", [0, 1, 2])
async def test_failed_upload_is_omitted_and_send_succeeds(async_db, participants, failing):
    files = [image("a.png"), image("b.png"), image("c.png")]
    store = FailingBlobStore([files[failing].data])
    service = LetterService(async_db, store)

    result = await service.compose("alice", "Three pictures", attachments=files)

    expected = [f.name for i, f in enumerate(files) if i != failing]
    assert [a["name"] for a in result.letter.attachments] == expected
    assert [f.name for f in result.failed] == [files[failing].name]
    assert result.failed[0].kind is AssetKind.ATTACHMENT
    assert not result.complete
    # every upload was attempted even though a sibling failed
    assert len(store.attempts) == 3


@pytest.mark.asyncio
async def test_attachment_order_follows_submission(service):
    files = [image(f"{i}.png") for i in range(6)]

    result = await service.compose("alice", "Album", attachments=files)

    assert [a["name"] for a in result.letter.attachments] == [f.name for f in files]
    paths = [a["path"] for a in result.letter.attachments]
    assert len(set(paths)) == len(paths)
    assert all(p.startswith("alice/") for p in paths)


@pytest.mark.asyncio
async def test_voice_clip_goes_to_voice_bucket(service, blob_store, voice_clip):
    result = await service.compose("alice", "Listen", voice=voice_clip)

    assert result.letter.voice_path.startswith("alice/")
    assert result.letter.voice_path.endswith(".wav")
    assert blob_store.exists(settings.voice_bucket, result.letter.voice_path)


@pytest.mark.asyncio
async def test_failed_voice_upload_still_sends(async_db, participants, voice_clip, png_file):
    store = FailingBlobStore([voice_clip.data])
    service = LetterService(async_db, store)

    result = await service.compose("alice", "Listen", voice=voice_clip, attachments=[png_file])

    assert result.letter.voice_path is None
    assert len(result.letter.attachments) == 1
    assert [(f.name, f.kind) for f in result.failed] == [(voice_clip.name, AssetKind.VOICE)]


@pytest.mark.asyncio
async def test_voice_clip_with_wrong_type_is_rejected(service, blob_store):
    clip = AssetFile(name="voice.png", content_type="image/png", data=b"not audio")

    result = await service.compose("alice", "Listen", voice=clip)

    assert result.letter.voice_path is None
    assert result.rejected[0].reason is RejectionReason.UNSUPPORTED_TYPE
    assert blob_store.objects == {}


@pytest.mark.asyncio
async def test_persistence_failure_leaves_orphaned_blob(service, async_db, blob_store, png_file):
    failure = OperationalError("INSERT", {}, Exception("database unavailable"))

    with patch.object(async_db, "commit", side_effect=failure):
        with pytest.raises(PersistenceError):
            await service.compose("alice", "Hello", attachments=[png_file])

    assert len(blob_store.objects) == 1
    (bucket, path), = blob_store.objects.keys()
    assert bucket == settings.attachments_bucket
    assert path.startswith("alice/")
    assert await service.letters.list_for("alice") == []


@pytest.mark.asyncio
async def test_no_recipient_aborts_before_upload(async_db, png_file):
    store = AsyncMock()
    service = LetterService(async_db, store)

    with pytest.raises(NoRecipientError):
        await service.compose("alice", "Hello?", attachments=[png_file])

    store.put.assert_not_called()


@pytest.mark.asyncio
async def test_explicit_recipient(async_db, participants, blob_store):
    directory = ParticipantDirectory(async_db, legacy_two_party=False)
    service = LetterService(async_db, blob_store, directory=directory)

    result = await service.compose("bob", "Hi Alice", recipient_id="alice")
    assert result.letter.recipient_id == "alice"

    with pytest.raises(NoRecipientError):
        await service.compose("bob", "Hi?")


@pytest.mark.asyncio
async def test_list_letters_annotates_names(service):
    await service.compose("alice", "First")
    await service.compose("bob", "Reply")

    views = await service.list_letters_for("alice")

    assert [v.letter.body for v in views] == ["Reply", "First"]
    assert views[0].sender_name == "Bob"
    assert views[0].recipient_name == "Alice"


@pytest.mark.asyncio
async def test_recipient_reads_then_sender_tries(service):
    letter = (await service.compose("alice", "Hello")).letter

    read = await service.mark_read(letter.id, "bob")
    assert read.transitioned is True
    assert read.state is ReadState.READ

    with patch("letterbox.services.read_state.MetricsCollector.track_read_transition") as track:
        again = await service.mark_read(letter.id, "alice")

    assert again.transitioned is False
    assert again.state is ReadState.READ
    track.assert_not_called()


@pytest.mark.asyncio
async def test_mark_read_twice_is_idempotent(service):
    letter = (await service.compose("alice", "Hello")).letter

    first = await service.mark_read(letter.id, "bob")
    second = await service.mark_read(letter.id, "bob")

    assert first.state is second.state is ReadState.READ
    assert second.transitioned is False


@pytest.mark.asyncio
async def test_resolve_asset_urls(service, png_file, voice_clip):
    plain = (await service.compose("alice", "No files")).letter
    assert await service.resolve_asset_urls(plain) == {}

    rich = (await service.compose("alice", "Files", voice=voice_clip, attachments=[png_file])).letter
    urls = await service.resolve_asset_urls(rich)

    assert set(urls) == {rich.attachments[0]["path"], rich.voice_path}
    assert all(url is not None for url in urls.values())


@pytest.mark.asyncio
async def test_letter_counts(service):
    letter = (await service.compose("alice", "One")).letter
    await service.compose("alice", "Two")
    await service.mark_read(letter.id, "bob")

    counts = await service.letter_counts("bob")
    assert (counts.sent, counts.received, counts.unread) == (0, 2, 1)


@pytest.mark.asyncio
async def test_attachment_order_survives_out_of_order_uploads(async_db, participants):
    files = [image(f"{i}.png") for i in range(5)]
    # earlier files take longer, so uploads finish in reverse
    store = SlowBlobStore({f.data: 0.01 * (len(files) - i) for i, f in enumerate(files)})
    service = LetterService(async_db, store)

    result = await service.compose("alice", "Album", attachments=files)

    assert store.completed == [f.data for f in reversed(files)]
    assert [a["name"] for a in result.letter.attachments] == [f.name for f in files]
    for record, file in zip(result.letter.attachments, files):
        assert store.objects[(settings.attachments_bucket, record["path"])].data == file.data


@pytest.mark.asyncio
async def test_long_subject_is_stored_whole(service):
    subject = "Re: " + "minutes of the quarterly review " * 40

    result = await service.compose("alice", "Notes attached", subject=subject)

    assert len(result.letter.subject) > 255
    stored = await service.letters.get(result.letter.id)
    assert stored.subject == subject.strip()


def test_screen_splits_by_policy(service, png_file, voice_clip):
    wrong = AssetFile(name="notes.txt", content_type="text/plain", data=b"notes")
    bad_voice = AssetFile(name="clip.txt", content_type="text/plain", data=b"hello")

    screened = service.screen([png_file, wrong], voice_clip)
    assert screened.attachments == [png_file]
    assert screened.voice is voice_clip
    assert [r.file.name for r in screened.rejected] == ["notes.txt"]

    screened = service.screen([], bad_voice)
    assert screened.voice is None
    assert screened.rejected[0].allowed_types == tuple(settings.allowed_voice_types)


@pytest.mark.asyncio
async def test_prescreened_rejections_are_reported(service, png_file):
    wrong = AssetFile(name="notes.txt", content_type="text/plain", data=b"", declared_size=5)
    screened = service.screen([png_file, wrong])

    result = await service.compose(
        "alice", "Hello", attachments=screened.attachments, rejected=screened.rejected
    )

    assert [a["name"] for a in result.letter.attachments] == ["photo.png"]
    assert [r.file.name for r in result.rejected] == ["notes.txt"]
