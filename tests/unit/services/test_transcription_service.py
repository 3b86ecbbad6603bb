"""
Unit tests for TranscriptionService.

Tests cover:
- Successful transcription
- Bounded retries with exponential backoff
- Empty and unreadable recordings
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from voicerecap.services.transcription.manager import (
    MAX_TRANSCRIPTION_ATTEMPTS,
    TranscriptionService,
    TranscriptionStatus,
)
from voicerecap.services.voice_capture.wav import serialize


@pytest.fixture
def recording(tmp_path) -> str:
    path = tmp_path / "recording_1.wav"
    path.write_bytes(serialize(b"\x00\x01" * 480))
    return str(path)


@pytest.fixture
async def service(context, mock_services, mock_openai_client):
    service = TranscriptionService(
        context, client=mock_openai_client, model="whisper-1", retry_backoff=0
    )
    await service.on_start(mock_services)
    return service


@pytest.mark.unit
class TestTranscribe:
    """Test transcription requests against a mocked OpenAI client."""

    async def test_returns_transcript(self, service, recording, mock_openai_client):
        result = await service.transcribe(recording)

        assert result.status == TranscriptionStatus.OK
        assert result.text == "hello from the call"
        assert result.attempts == 1
        assert result.has_speech

        kwargs = mock_openai_client.audio.transcriptions.create.await_args.kwargs
        assert kwargs["model"] == "whisper-1"
        filename, payload = kwargs["file"]
        assert filename == "recording_1.wav"
        assert payload[:4] == b"RIFF"

    async def test_gives_up_after_three_attempts(self, service, recording, mock_openai_client):
        error = RuntimeError("service unavailable")
        mock_openai_client.audio.transcriptions.create.side_effect = error

        result = await service.transcribe(recording)

        assert result.status == TranscriptionStatus.FAILED
        assert result.attempts == MAX_TRANSCRIPTION_ATTEMPTS == 3
        assert result.error is error
        assert not result.has_speech
        assert mock_openai_client.audio.transcriptions.create.await_count == 3

    async def test_succeeds_on_retry(self, service, recording, mock_openai_client):
        mock_openai_client.audio.transcriptions.create.side_effect = [
            RuntimeError("rate limited"),
            SimpleNamespace(text="second time lucky"),
        ]

        result = await service.transcribe(recording)

        assert result.status == TranscriptionStatus.OK
        assert result.text == "second time lucky"
        assert result.attempts == 2

    async def test_backoff_doubles_between_attempts(
        self, context, mock_services, mock_openai_client, recording
    ):
        mock_openai_client.audio.transcriptions.create.side_effect = RuntimeError("down")
        service = TranscriptionService(context, client=mock_openai_client, retry_backoff=1.0)
        await service.on_start(mock_services)

        with patch(
            "voicerecap.services.transcription.manager.asyncio.sleep", new=AsyncMock()
        ) as sleep:
            await service.transcribe(recording)

        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    async def test_empty_file_skips_api(self, service, tmp_path, mock_openai_client):
        path = tmp_path / "empty.wav"
        path.write_bytes(b"")

        result = await service.transcribe(str(path))

        assert result.status == TranscriptionStatus.EMPTY_AUDIO
        mock_openai_client.audio.transcriptions.create.assert_not_awaited()

    async def test_missing_file_fails(self, service, tmp_path, mock_openai_client):
        result = await service.transcribe(str(tmp_path / "missing.wav"))

        assert result.status == TranscriptionStatus.FAILED
        assert isinstance(result.error, OSError)
        mock_openai_client.audio.transcriptions.create.assert_not_awaited()


@pytest.mark.unit
def test_rejects_zero_attempts(context, mock_openai_client):
    with pytest.raises(ValueError):
        TranscriptionService(context, client=mock_openai_client, max_attempts=0)
