"""Recorder primitives that buffer one live audio track."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, List, Optional, Protocol

logger = logging.getLogger(__name__)


class CaptureError(RuntimeError):
    """The device refused access or a recorder failed; the take is discarded."""


class TrackSource(Protocol):
    """A live track: the microphone, or the partner's audio from the room."""

    label: str

    def chunks(self) -> AsyncIterator[bytes]:
        """Encoded audio chunks; ends after the final chunk once closed."""
        ...

    async def close(self) -> None:
        """Ask the device to flush its last chunk and end the stream."""
        ...


class TrackRecorder(Protocol):
    def start(self) -> None: ...

    async def stop(self) -> bytes: ...

    def abort(self) -> None: ...


class BufferedTrackRecorder:
    """Drains a :class:`TrackSource` into memory from a background task.

    ``start`` does not await, so two recorders started back to back begin
    on the same loop iteration.
    """

    def __init__(self, source: TrackSource):
        self.source = source
        self._chunks: List[bytes] = []
        self._task: Optional[asyncio.Task] = None
        self._aborted = False

    @property
    def label(self) -> str:
        return self.source.label

    def start(self) -> None:
        if self._task is not None:
            raise CaptureError(f"Recorder '{self.label}' already started")
        try:
            iterator = self.source.chunks()
        except CaptureError:
            raise
        except OSError as exc:
            raise CaptureError(f"Cannot open track '{self.label}': {exc}") from exc
        self._task = asyncio.get_running_loop().create_task(self._drain(iterator))

    async def _drain(self, iterator: AsyncIterator[bytes]) -> None:
        async for chunk in iterator:
            if chunk:
                self._chunks.append(chunk)

    async def stop(self) -> bytes:
        """Close the source and wait for its final chunk to land."""

        if self._task is None:
            raise CaptureError(f"Recorder '{self.label}' was never started")
        await self.source.close()
        try:
            await self._task
        except asyncio.CancelledError:
            # abort() cancels the drain; any other cancellation is the caller's
            if not self._aborted:
                raise
            raise CaptureError(f"Recorder '{self.label}' was aborted") from None
        except CaptureError:
            raise
        except Exception as exc:
            raise CaptureError(f"Recorder '{self.label}' failed: {exc}") from exc
        data = b"".join(self._chunks)
        logger.debug("Recorder %s flushed %d bytes", self.label, len(data))
        return data

    def abort(self) -> None:
        """Drop everything buffered so far without waiting for a flush."""

        self._aborted = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._chunks.clear()


__all__ = ["BufferedTrackRecorder", "CaptureError", "TrackRecorder", "TrackSource"]
