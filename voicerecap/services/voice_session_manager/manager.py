from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from voicerecap.context import Context

from voicerecap.services.manager import BaseVoiceSessionManager, ServicesManager
from voicerecap.services.summarization.manager import SummaryResult
from voicerecap.services.voice_capture import wav
from voicerecap.services.voice_capture.buffer import SessionBuffer
from voicerecap.services.voice_capture.connection import VoiceConnection, connect_capture
from voicerecap.services.voice_capture.coordinator import CaptureCoordinator, DecoderFactory
from voicerecap.services.voice_capture.decoder import FrameDecoder
from voicerecap.utils import generate_16_char_uuid, get_current_timestamp

Connector = Callable[[Any], Awaitable[VoiceConnection]]

# -------------------------------------------------------------- #
# Results
# -------------------------------------------------------------- #


class JoinResult(Enum):
    JOINED = "joined"
    NOT_IN_CHANNEL = "not_in_channel"
    ALREADY_ACTIVE = "already_active"
    SHUTTING_DOWN = "shutting_down"


class RecapOutcome(Enum):
    NOT_ACTIVE = "not_active"
    NO_AUDIO = "no_audio"
    NO_SPEECH = "no_speech"
    SUMMARY = "summary"


@dataclass
class LeaveResult:
    outcome: RecapOutcome
    summary: SummaryResult | None = None
    recorded_bytes: int = 0


# -------------------------------------------------------------- #
# Voice Session
# -------------------------------------------------------------- #


@dataclass
class VoiceSession:
    """One active recording: a voice connection and the audio captured on it."""

    key: int
    channel_id: int
    connection: VoiceConnection
    coordinator: CaptureCoordinator
    buffer: SessionBuffer = field(default_factory=SessionBuffer)
    started_at: datetime = field(default_factory=get_current_timestamp)
    session_id: str = field(default_factory=generate_16_char_uuid)

    @property
    def recording_filename(self) -> str:
        # Unique per session so a new session cannot clash with a recap still in progress
        return f"recording_{self.key}_{self.session_id}.wav"


# -------------------------------------------------------------- #
# Voice Session Manager Service
# -------------------------------------------------------------- #


class VoiceSessionManagerService(BaseVoiceSessionManager):
    """
    Registry of active voice sessions, one per guild.

    A key is either absent or active:
    - join: absent -> active (opens the connection, subscribes capture)
    - leave: active -> absent (closes the connection, then serializes,
      transcribes and summarizes the recording)

    leave always removes the entry, even when a downstream step fails.
    A join for a key that is already active is rejected and leaves the
    existing session untouched.
    """

    def __init__(
        self,
        context: Context,
        connector: Connector = connect_capture,
        decoder_factory: DecoderFactory = FrameDecoder,
    ):
        super().__init__(context)
        self._connector = connector
        self._decoder_factory = decoder_factory
        self.sessions: dict[int, VoiceSession] = {}

    # -------------------------------------------------------------- #
    # Manager Methods
    # -------------------------------------------------------------- #

    async def on_start(self, services: ServicesManager) -> None:
        await super().on_start(services)
        await self.services.logging_service.info("VoiceSessionManagerService initialized")

    async def on_close(self) -> None:
        """Close every remaining session without producing a recap."""
        for key in list(self.sessions):
            session = self.sessions.pop(key)
            try:
                await self._stop_capture(session)
            except Exception as e:
                await self.services.logging_service.error(
                    f"Error closing voice session {key} during shutdown: {e}"
                )
            else:
                await self.services.logging_service.info(
                    f"Closed voice session {key} during shutdown "
                    f"({session.buffer.total_size()} bytes discarded)"
                )

    # -------------------------------------------------------------- #
    # Queries
    # -------------------------------------------------------------- #

    def get_session(self, key: int) -> VoiceSession | None:
        return self.sessions.get(key)

    def active_keys(self) -> list[int]:
        return list(self.sessions)

    # -------------------------------------------------------------- #
    # Join
    # -------------------------------------------------------------- #

    async def join(self, key: int, voice_channel: Any) -> JoinResult:
        """Start recording voice_channel under key.

        Raises:
            Exception: Whatever the connector raises when the connection fails;
                       no session is stored in that case
        """
        logger = self.services.logging_service

        if voice_channel is None:
            return JoinResult.NOT_IN_CHANNEL
        if self.context.is_shutting_down():
            return JoinResult.SHUTTING_DOWN
        if key in self.sessions:
            await logger.warning(f"Join requested for {key} while a session is already active")
            return JoinResult.ALREADY_ACTIVE

        connection = await self._connector(voice_channel)

        # The connection may have been slow; another join could have won the race
        if key in self.sessions:
            await connection.close()
            return JoinResult.ALREADY_ACTIVE

        buffer = SessionBuffer()
        coordinator = CaptureCoordinator(
            buffer,
            logging_service=logger,
            session_label=str(key),
            decoder_factory=self._decoder_factory,
        )
        session = VoiceSession(
            key=key,
            channel_id=voice_channel.id,
            connection=connection,
            coordinator=coordinator,
            buffer=buffer,
        )

        try:
            connection.on_speaker_start(coordinator.handle_speaker_start)
            await connection.start()
        except Exception:
            await connection.close()
            raise

        self.sessions[key] = session
        await logger.info(f"Started voice session {key} in channel {voice_channel.id}")
        return JoinResult.JOINED

    # -------------------------------------------------------------- #
    # Leave
    # -------------------------------------------------------------- #

    async def leave(self, key: int) -> LeaveResult:
        """Stop recording under key and produce the recap.

        Returns:
            LeaveResult with NOT_ACTIVE if no session exists for key
        """
        # Unregister before the first await so a concurrent leave sees NOT_ACTIVE
        session = self.sessions.pop(key, None)
        if session is None:
            return LeaveResult(outcome=RecapOutcome.NOT_ACTIVE)
        await self.services.logging_service.info(f"Removed voice session {key}")

        await self._stop_capture(session)
        pcm = session.buffer.drain()
        return await self._recap(session, pcm)

    async def _stop_capture(self, session: VoiceSession) -> None:
        """Close the connection, then let in-flight turns finish writing to the buffer."""
        try:
            await session.connection.close()
        except Exception as e:
            await self.services.logging_service.error(
                f"Error closing voice connection for session {session.key}: {e}"
            )
        await session.coordinator.close()

    async def _recap(self, session: VoiceSession, pcm: bytes) -> LeaveResult:
        logger = self.services.logging_service
        duration_ms = wav.DISCORD_PCM_FORMAT.duration_ms(len(pcm))
        await logger.info(
            f"Voice session {session.key} captured {len(pcm)} bytes "
            f"({duration_ms / 1000:.1f}s) in {session.coordinator.turns_started} turn(s)"
        )

        if not pcm:
            return LeaveResult(outcome=RecapOutcome.NO_AUDIO)

        container = wav.serialize(pcm)
        filename = session.recording_filename
        file_path = await self.services.recording_file_service_manager.save_to_temp_file(
            filename, container
        )

        try:
            transcription = await self.services.transcription_service.transcribe(file_path)
            if not transcription.has_speech:
                return LeaveResult(outcome=RecapOutcome.NO_SPEECH, recorded_bytes=len(pcm))

            summary = await self.services.summarization_service.summarize(transcription.text)
            return LeaveResult(
                outcome=RecapOutcome.SUMMARY, summary=summary, recorded_bytes=len(pcm)
            )
        finally:
            try:
                await self.services.recording_file_service_manager.delete_temp_file(filename)
            except Exception as e:
                await logger.error(f"Failed to clean up recording {filename}: {e}")
