from __future__ import annotations

import asyncio
import contextlib
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from voicerecap.context import Context

# Share of the shutdown timeout each phase may use
VOICE_SESSION_CLOSE_BUDGET = 0.5
SERVICE_CLOSE_BUDGET = 0.1
LOGGING_CLOSE_TIMEOUT = 5.0


# -------------------------------------------------------------- #
# Services Manager Class
# -------------------------------------------------------------- #


class ServicesManager:
    """Owns every service and drives their start and shutdown order."""

    def __init__(
        self,
        context: Context,
        logging_service: BaseAsyncLoggingService,
        recording_file_service_manager: BaseRecordingFileServiceManager,
        transcription_service: BaseTranscriptionService,
        summarization_service: BaseSummarizationService,
        voice_session_manager: BaseVoiceSessionManager | None = None,
    ):
        self.context = context
        self.logging_service = logging_service
        self.recording_file_service_manager = recording_file_service_manager
        self.transcription_service = transcription_service
        self.summarization_service = summarization_service
        self.voice_session_manager = voice_session_manager

    def startup_order(self) -> list[Manager]:
        """Logging first so every later service can log its own start."""
        order: list[Manager] = [
            self.logging_service,
            self.recording_file_service_manager,
            self.transcription_service,
            self.summarization_service,
        ]
        if self.voice_session_manager:
            order.append(self.voice_session_manager)
        return order

    async def initialize_all(self) -> None:
        for service in self.startup_order():
            await service.on_start(self)

    async def shutdown_all(self, timeout: float = 30.0) -> None:
        """
        Close every service, newest dependents first:

        1. Refuse new sessions
        2. Close active voice sessions (recordings are discarded)
        3. Release the language model clients
        4. Remove leftover temporary recordings
        5. Flush and close logging, even if an earlier phase failed

        Args:
            timeout: Total seconds the phases before logging may take
        """
        logger = self.logging_service
        await logger.info("=" * 60)
        await logger.info("Starting graceful shutdown of all services...")

        self.context.mark_shutdown_started()
        await logger.info("✓ Shutdown flag set - no new sessions will start")

        phases: list[tuple[str, list[Manager], float]] = [
            (
                "voice sessions",
                [self.voice_session_manager] if self.voice_session_manager else [],
                VOICE_SESSION_CLOSE_BUDGET,
            ),
            (
                "language model services",
                [self.transcription_service, self.summarization_service],
                SERVICE_CLOSE_BUDGET,
            ),
            ("recording file manager", [self.recording_file_service_manager], SERVICE_CLOSE_BUDGET),
        ]

        try:
            for number, (name, services, budget) in enumerate(phases, start=1):
                await logger.info(f"Phase {number}: Closing {name}...")
                for service in services:
                    await asyncio.wait_for(service.on_close(), timeout=timeout * budget)
                await logger.info(f"✓ Closed {name}")

            await logger.info("✓ Graceful shutdown completed successfully")
            await logger.info("=" * 60)
        except asyncio.TimeoutError:
            await logger.error(f"⚠️  Shutdown timeout exceeded ({timeout}s) - forcing shutdown")
        except Exception as e:
            await logger.error(f"⚠️  Error during shutdown: {type(e).__name__}: {e}")

        with contextlib.suppress(Exception):
            await asyncio.wait_for(logger.on_close(), timeout=LOGGING_CLOSE_TIMEOUT)


# -------------------------------------------------------------- #
# Base Service Manager Class
# -------------------------------------------------------------- #


class Manager(ABC):
    """Base class for all services: bound to the context, started by ServicesManager."""

    def __init__(self, context: Context):
        self.context = context
        self.services: ServicesManager | None = None

    async def on_start(self, services: ServicesManager) -> None:
        self.services = services

    async def on_close(self) -> None:
        pass


# -------------------------------------------------------------- #
# Service Interfaces
# -------------------------------------------------------------- #


class BaseAsyncLoggingService(Manager):
    """Async logging; implementations only provide log()."""

    @abstractmethod
    async def log(self, message: str, level: str = "INFO") -> None:
        pass

    async def debug(self, message: str) -> None:
        await self.log(message, "DEBUG")

    async def info(self, message: str) -> None:
        await self.log(message, "INFO")

    async def warning(self, message: str) -> None:
        await self.log(message, "WARNING")

    async def error(self, message: str) -> None:
        await self.log(message, "ERROR")

    async def critical(self, message: str) -> None:
        await self.log(message, "CRITICAL")


class BaseRecordingFileServiceManager(Manager):
    """Temporary storage for WAV files awaiting transcription."""

    @abstractmethod
    def get_temporary_storage_path(self) -> str:
        pass

    @abstractmethod
    async def save_to_temp_file(self, filename: str, data: bytes) -> str:
        """Write data under filename and return the file's absolute path."""
        pass

    @abstractmethod
    async def delete_temp_file(self, filename: str) -> None:
        pass


class BaseTranscriptionService(Manager):
    @abstractmethod
    async def transcribe(self, file_path: str) -> Any:
        """Transcribe an audio file into a TranscriptionResult."""
        pass


class BaseSummarizationService(Manager):
    @abstractmethod
    async def summarize(self, text: str) -> Any:
        """Summarize a transcript into a SummaryResult."""
        pass


class BaseVoiceSessionManager(Manager):
    """Registry of voice recording sessions keyed by guild."""

    @abstractmethod
    async def join(self, key: int, voice_channel: Any) -> Any:
        pass

    @abstractmethod
    async def leave(self, key: int) -> Any:
        pass
