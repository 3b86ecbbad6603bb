from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import TYPE_CHECKING

from voicerecap.services.voice_capture.buffer import SessionBuffer
from voicerecap.services.voice_capture.decoder import FrameDecoder

if TYPE_CHECKING:
    from voicerecap.services.manager import BaseAsyncLoggingService

logger = logging.getLogger(__name__)

DecoderFactory = Callable[[], FrameDecoder]

# How long close() waits for in-flight turns to drain before cancelling them
CLOSE_GRACE_SECONDS = 2.0

# -------------------------------------------------------------- #
# Capture Coordinator
# -------------------------------------------------------------- #


class CaptureCoordinator:
    """
    Drives every speaking turn of one session into its SessionBuffer.

    Each speaker-start notification becomes its own task that owns one
    FrameDecoder and one frame stream:

    1. Create a fresh decoder for the turn
    2. Decode every inbound frame (bad frames are skipped by the decoder)
    3. Append non-empty PCM to the session buffer in arrival order
    4. Release the decoder when the stream ends

    A failure inside one turn is logged and contained; it never reaches
    other turns or the session. Concurrent speakers are not separated,
    their chunks interleave in the order they were decoded.
    """

    def __init__(
        self,
        buffer: SessionBuffer,
        logging_service: BaseAsyncLoggingService,
        session_label: str = "",
        decoder_factory: DecoderFactory = FrameDecoder,
    ):
        self.buffer = buffer
        self.logging_service = logging_service
        self.session_label = session_label
        self._decoder_factory = decoder_factory
        self._tasks: set[asyncio.Task] = set()
        self._closed = False
        self.turns_started = 0
        self.turns_failed = 0

    @property
    def active_turns(self) -> int:
        return len(self._tasks)

    # -------------------------------------------------------------- #
    # Subscription
    # -------------------------------------------------------------- #

    def handle_speaker_start(self, speaker_id: int, stream: AsyncIterator[bytes]) -> None:
        """Speaker-start handler: spawn a capture task for this turn."""
        if self._closed:
            return

        self.turns_started += 1
        task = asyncio.create_task(
            self.capture_turn(speaker_id, stream),
            name=f"capture-{self.session_label}-{speaker_id}-{self.turns_started}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def capture_turn(self, speaker_id: int, stream: AsyncIterator[bytes]) -> int:
        """Consume one speaking turn.

        Returns:
            Number of PCM bytes appended to the buffer for this turn
        """
        appended = 0
        try:
            await self.logging_service.debug(
                f"[{self.session_label}] Starting audio stream for speaker {speaker_id}"
            )
            with self._decoder_factory() as decoder:
                async for frame in stream:
                    pcm = decoder.decode(frame)
                    if not pcm:
                        continue

                    self.buffer.append(pcm)
                    appended += len(pcm)
                    logger.debug(
                        f"[{self.session_label}] Frame {len(frame)} bytes -> {len(pcm)} PCM bytes, "
                        f"total {self.buffer.total_size() / 1024:.1f} KB"
                    )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.turns_failed += 1
            await self.logging_service.error(
                f"[{self.session_label}] Error in audio stream for speaker {speaker_id}: "
                f"{type(e).__name__}: {e}"
            )
            return appended

        await self.logging_service.debug(
            f"[{self.session_label}] Audio stream for speaker {speaker_id} ended, "
            f"{appended} bytes captured (session total {self.buffer.total_size() / 1024:.1f} KB)"
        )
        return appended

    # -------------------------------------------------------------- #
    # Lifecycle
    # -------------------------------------------------------------- #

    async def close(self, grace_seconds: float = CLOSE_GRACE_SECONDS) -> None:
        """Stop accepting turns and wait for in-flight turns, cancelling stragglers."""
        self._closed = True
        if not self._tasks:
            return

        pending = set(self._tasks)
        _, still_running = await asyncio.wait(pending, timeout=grace_seconds)

        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            await self.logging_service.warning(
                f"[{self.session_label}] Cancelled {len(still_running)} audio stream(s) on close"
            )
