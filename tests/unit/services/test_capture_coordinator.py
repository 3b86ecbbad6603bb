"""
Unit tests for CaptureCoordinator.

Tests cover:
- Decoding speaking turns into the session buffer
- Containment of failures inside a single turn
- Decoder release on every exit path
- Cancellation of stuck turns on close
"""

import asyncio

import pytest

from voicerecap.services.voice_capture.buffer import SessionBuffer
from voicerecap.services.voice_capture.connection import SpeakerStream
from voicerecap.services.voice_capture.coordinator import CaptureCoordinator


async def frames(*items: bytes):
    for item in items:
        yield item


async def failing_stream():
    yield b"ok"
    raise ConnectionResetError("stream dropped")


async def endless_stream():
    while True:
        await asyncio.sleep(3600)
        yield b""


@pytest.fixture
def coordinator(mock_logging_service, fake_decoder_factory):
    return CaptureCoordinator(
        SessionBuffer(),
        logging_service=mock_logging_service,
        session_label="111",
        decoder_factory=fake_decoder_factory,
    )


@pytest.mark.unit
class TestCaptureTurn:
    """Test consumption of a single speaking turn."""

    async def test_appends_decoded_frames_in_order(self, coordinator):
        appended = await coordinator.capture_turn(1, frames(b"ab", b"cd"))

        assert appended == 8
        assert coordinator.buffer.drain() == b"ababcdcd"

    async def test_skips_undecodable_frames(self, coordinator):
        await coordinator.capture_turn(1, frames(b"ab", b"BAD", b"cd"))

        assert coordinator.buffer.drain() == b"ababcdcd"

    async def test_releases_decoder_after_turn(self, coordinator, fake_codecs):
        await coordinator.capture_turn(1, frames(b"ab"))

        assert len(fake_codecs) == 1
        assert fake_codecs[0].closed

    async def test_stream_error_is_contained(self, coordinator, fake_codecs, mock_logging_service):
        appended = await coordinator.capture_turn(1, failing_stream())

        assert appended == 4
        assert coordinator.turns_failed == 1
        assert fake_codecs[0].closed
        mock_logging_service.error.assert_awaited_once()

    async def test_decoder_creation_failure_is_contained(self, mock_logging_service):
        def broken_factory():
            raise OSError("libopus not found")

        coordinator = CaptureCoordinator(
            SessionBuffer(), logging_service=mock_logging_service, decoder_factory=broken_factory
        )

        assert await coordinator.capture_turn(1, frames(b"ab")) == 0
        assert coordinator.turns_failed == 1

    async def test_logging_failure_at_turn_start_is_contained(
        self, coordinator, mock_logging_service
    ):
        mock_logging_service.debug.side_effect = OSError("log disk full")

        assert await coordinator.capture_turn(1, frames(b"ab")) == 0
        assert coordinator.turns_failed == 1
        mock_logging_service.error.assert_awaited_once()


@pytest.mark.unit
class TestSpeakerStartHandling:
    """Test task management for concurrent turns."""

    async def test_each_turn_gets_its_own_decoder(self, coordinator, fake_codecs):
        first = SpeakerStream(1)
        second = SpeakerStream(2)
        coordinator.handle_speaker_start(1, first)
        coordinator.handle_speaker_start(2, second)
        first.feed(b"aa")
        second.feed(b"bb")
        first.end()
        second.end()

        await coordinator.close()

        assert coordinator.turns_started == 2
        assert len(fake_codecs) == 2
        assert all(codec.closed for codec in fake_codecs)
        assert sorted(coordinator.buffer.drain()) == sorted(b"aaaabbbb")

    async def test_close_waits_for_queued_frames(self, coordinator):
        stream = SpeakerStream(1, silence_timeout_ms=5000)
        coordinator.handle_speaker_start(1, stream)
        stream.feed(b"xy")
        stream.end()

        await coordinator.close()

        assert coordinator.active_turns == 0
        assert coordinator.buffer.drain() == b"xyxy"

    async def test_close_cancels_stuck_turns(self, coordinator, fake_codecs, mock_logging_service):
        coordinator.handle_speaker_start(1, endless_stream())
        await asyncio.sleep(0)

        await coordinator.close(grace_seconds=0.01)

        assert coordinator.active_turns == 0
        assert fake_codecs[0].closed
        mock_logging_service.warning.assert_awaited_once()

    async def test_ignores_turns_after_close(self, coordinator):
        await coordinator.close()

        coordinator.handle_speaker_start(1, frames(b"ab"))

        assert coordinator.turns_started == 0
        assert coordinator.active_turns == 0
