"""
Speech-to-text for finished recordings.

Sends a WAV file to the OpenAI transcription endpoint, retrying with
exponential backoff, and reports the outcome as a TranscriptionResult
instead of raising.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import aiofiles
import aiofiles.os
from openai import AsyncOpenAI

if TYPE_CHECKING:
    from voicerecap.context import Context

from voicerecap.config import DEFAULT_TRANSCRIPTION_MODEL
from voicerecap.services.manager import BaseTranscriptionService

MAX_TRANSCRIPTION_ATTEMPTS = 3

# -------------------------------------------------------------- #
# Result Types
# -------------------------------------------------------------- #


class TranscriptionStatus(Enum):
    OK = "ok"
    EMPTY_AUDIO = "empty_audio"
    FAILED = "failed"


@dataclass
class TranscriptionResult:
    """Outcome of a transcription request."""

    status: TranscriptionStatus
    text: str = ""
    attempts: int = 0
    error: Exception | None = None

    @property
    def has_speech(self) -> bool:
        return self.status == TranscriptionStatus.OK and bool(self.text.strip())


# -------------------------------------------------------------- #
# Transcription Service
# -------------------------------------------------------------- #


class TranscriptionService(BaseTranscriptionService):
    """OpenAI-backed speech-to-text with bounded retries."""

    def __init__(
        self,
        context: Context,
        client: AsyncOpenAI,
        model: str = DEFAULT_TRANSCRIPTION_MODEL,
        max_attempts: int = MAX_TRANSCRIPTION_ATTEMPTS,
        retry_backoff: float = 1.0,
    ):
        """
        Args:
            context: Application context
            client: Shared AsyncOpenAI client
            model: Transcription model name
            max_attempts: Total number of API calls before giving up
            retry_backoff: Base delay in seconds; attempt n waits retry_backoff * 2**n
        """
        super().__init__(context)
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self._client = client
        self.model = model
        self.max_attempts = max_attempts
        self.retry_backoff = retry_backoff

    async def on_start(self, services) -> None:
        await super().on_start(services)
        await self.services.logging_service.info(
            f"TranscriptionService initialized (model={self.model}, "
            f"max_attempts={self.max_attempts})"
        )

    # -------------------------------------------------------------- #
    # Transcription
    # -------------------------------------------------------------- #

    async def transcribe(self, file_path: str) -> TranscriptionResult:
        """Transcribe an audio file.

        Args:
            file_path: Path to the WAV file

        Returns:
            TranscriptionResult; FAILED after max_attempts failed calls,
            EMPTY_AUDIO if the file has no content
        """
        logger = self.services.logging_service

        try:
            size = (await aiofiles.os.stat(file_path)).st_size
            if size == 0:
                await logger.warning(f"Recording {file_path} is empty, skipping transcription")
                return TranscriptionResult(status=TranscriptionStatus.EMPTY_AUDIO)

            async with aiofiles.open(file_path, mode="rb") as f:
                audio = await f.read()
        except OSError as e:
            await logger.error(f"Error reading recording {file_path} for transcription: {e}")
            return TranscriptionResult(status=TranscriptionStatus.FAILED, error=e)

        filename = os.path.basename(file_path)
        last_error: Exception | None = None

        for attempt in range(self.max_attempts):
            try:
                response = await self._client.audio.transcriptions.create(
                    model=self.model,
                    file=(filename, audio),
                )
                await logger.info(
                    f"Transcribed {filename} on attempt {attempt + 1} "
                    f"({len(response.text)} characters)"
                )
                return TranscriptionResult(
                    status=TranscriptionStatus.OK, text=response.text, attempts=attempt + 1
                )
            except Exception as e:
                last_error = e
                await logger.warning(
                    f"Transcription error (attempt {attempt + 1}/{self.max_attempts}): {e}"
                )

            # Exponential backoff
            if attempt < self.max_attempts - 1:
                await asyncio.sleep(self.retry_backoff * (2**attempt))

        await logger.error(
            f"Transcription failed after {self.max_attempts} attempts: {last_error}"
        )
        return TranscriptionResult(
            status=TranscriptionStatus.FAILED, attempts=self.max_attempts, error=last_error
        )
