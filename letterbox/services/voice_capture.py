"""
Voice clip capture as a scoped resource.

A session moves idle -> capturing -> captured. The audio device is opened
by ``start()`` and closed by ``stop()``; leaving the ``async with`` block
closes it on every other path, including errors and cancellation.

    async with VoiceCaptureSession(device) as session:
        await session.start()
        ...
        clip = await session.stop()
"""

from abc import ABC, abstractmethod
from typing import List, Optional
import asyncio
import enum

from letterbox.core.observability import get_logger
from letterbox.models.assets import AssetFile


logger = get_logger(__name__)

VOICE_FILE_NAME = "voice-message.wav"
VOICE_CONTENT_TYPE = "audio/wav"


class CaptureState(str, enum.Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    CAPTURED = "captured"


class CaptureStateError(RuntimeError):
    """Operation not allowed in the session's current state."""


class AudioInputDevice(ABC):
    """Source of encoded audio chunks, e.g. a microphone handle."""

    @abstractmethod
    async def open(self) -> None:
        pass

    @abstractmethod
    async def read_chunk(self) -> Optional[bytes]:
        """Next chunk, or None once the device has nothing more to give."""
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


class VoiceCaptureSession:
    """Records one voice clip from an AudioInputDevice."""

    def __init__(
        self,
        device: AudioInputDevice,
        file_name: str = VOICE_FILE_NAME,
        content_type: str = VOICE_CONTENT_TYPE,
    ):
        self.device = device
        self.file_name = file_name
        self.content_type = content_type
        self.state = CaptureState.IDLE
        self._chunks: List[bytes] = []
        self._reader: Optional[asyncio.Task] = None
        self._device_open = False
        self._clip: Optional[AssetFile] = None

    @property
    def clip(self) -> Optional[AssetFile]:
        return self._clip

    async def __aenter__(self) -> "VoiceCaptureSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self._release()

    async def start(self) -> None:
        if self.state is not CaptureState.IDLE:
            raise CaptureStateError(f"Cannot start capture while {self.state.value}")
        await self.device.open()
        self._device_open = True
        self.state = CaptureState.CAPTURING
        self._reader = asyncio.create_task(self._read_loop())
        logger.debug("Voice capture started")

    async def stop(self) -> AssetFile:
        """Stop capturing, release the device and return the recorded clip."""
        if self.state is not CaptureState.CAPTURING:
            raise CaptureStateError(f"Cannot stop capture while {self.state.value}")

        reader_error = await self._stop_reader()
        await self._close_device()
        if reader_error is not None:
            self.state = CaptureState.IDLE
            self._chunks.clear()
            raise reader_error

        self._clip = AssetFile(
            name=self.file_name,
            content_type=self.content_type,
            data=b"".join(self._chunks),
        )
        self.state = CaptureState.CAPTURED
        logger.debug("Voice capture finished", size=self._clip.size)
        return self._clip

    def discard(self) -> None:
        """Drop a captured clip and return to idle."""
        if self.state is CaptureState.CAPTURING:
            raise CaptureStateError("Stop the capture before discarding it")
        self._chunks.clear()
        self._clip = None
        self.state = CaptureState.IDLE

    async def _read_loop(self) -> None:
        while True:
            chunk = await self.device.read_chunk()
            if chunk is None:
                return
            if chunk:
                self._chunks.append(chunk)

    async def _stop_reader(self) -> Optional[BaseException]:
        reader, self._reader = self._reader, None
        if reader is None:
            return None
        if not reader.done():
            reader.cancel()
        try:
            await reader
        except asyncio.CancelledError:
            return None
        except Exception as e:
            return e
        return None

    async def _close_device(self) -> None:
        if not self._device_open:
            return
        self._device_open = False
        await self.device.close()

    async def _release(self) -> None:
        try:
            await self._stop_reader()
        finally:
            await self._close_device()
            if self.state is CaptureState.CAPTURING:
                self.state = CaptureState.IDLE
                self._chunks.clear()
