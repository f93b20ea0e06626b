"""ffmpeg wrapper producing the canonical archival WAV."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from fastapi.concurrency import run_in_threadpool

from app.application.interfaces import TranscoderInterface
from app.config.settings import settings
from app.domain.errors import TranscodeFailed

logger = logging.getLogger(__name__)

STDERR_TAIL_CHARS = 500


class FfmpegTranscoder(TranscoderInterface):
    """Decode any browser capture into 48 kHz mono 16-bit PCM WAV."""

    def __init__(
        self,
        *,
        binary: str | None = None,
        sample_rate: int | None = None,
        channels: int | None = None,
        codec: str | None = None,
    ) -> None:
        processing = settings.processing
        self._binary = binary or processing.ffmpeg_binary
        self._sample_rate = sample_rate or processing.sample_rate
        self._channels = channels or processing.channels
        self._codec = codec or processing.codec

    def build_command(self, source: Path, destination: Path) -> list[str]:
        return [
            self._binary,
            "-y",
            "-i", str(source),
            "-ar", str(self._sample_rate),
            "-ac", str(self._channels),
            "-c:a", self._codec,
            str(destination),
        ]

    async def to_canonical_wav(self, source: Path, destination: Path) -> None:
        await run_in_threadpool(self._transcode_sync, source, destination)

    def _transcode_sync(self, source: Path, destination: Path) -> None:
        command = self.build_command(source, destination)
        logger.info("Transcoding %s -> %s", source.name, destination.name)
        try:
            process = subprocess.run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=False,
            )
        except FileNotFoundError as exc:
            raise TranscodeFailed(
                f"ffmpeg binary '{self._binary}' was not found",
                exit_code=None,
                stderr_tail="",
            ) from exc

        stderr = process.stderr.decode("utf-8", errors="replace") if process.stderr else ""
        tail = stderr[-STDERR_TAIL_CHARS:]
        if process.returncode != 0:
            logger.error("ffmpeg exited with %s. stderr: %s", process.returncode, tail)
            raise TranscodeFailed(
                f"ffmpeg exited with code {process.returncode}",
                exit_code=process.returncode,
                stderr_tail=tail,
            )
        if not destination.exists() or destination.stat().st_size == 0:
            raise TranscodeFailed(
                "ffmpeg produced no output",
                exit_code=process.returncode,
                stderr_tail=tail,
            )


__all__ = ["FfmpegTranscoder", "STDERR_TAIL_CHARS"]
