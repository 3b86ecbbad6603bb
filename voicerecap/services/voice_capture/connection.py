from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable

import discord

logger = logging.getLogger(__name__)

# -------------------------------------------------------------- #
# Constants
# -------------------------------------------------------------- #

# A speaking turn ends after this much silence. Shorter clips words,
# longer merges consecutive speakers into one turn.
SILENCE_TIMEOUT_MS = 100

# Discord sends this Opus frame as a silence marker at the end of speech
OPUS_SILENCE_FRAME = b"\xf8\xff\xfe"

# RTCP packet types share the voice socket with RTP audio
_RTCP_PAYLOAD_TYPES = range(200, 205)

SpeakerStartHandler = Callable[[int, "SpeakerStream"], None]

# -------------------------------------------------------------- #
# Speaker Stream
# -------------------------------------------------------------- #


class SpeakerStream:
    """
    Async iterator over one speaker's compressed frames for a single speaking turn.

    Iteration stops when no frame arrives within the silence timeout, or
    once end() has been called and the queued frames have been consumed.
    """

    def __init__(self, speaker_id: int, silence_timeout_ms: int = SILENCE_TIMEOUT_MS):
        self.speaker_id = speaker_id
        self.silence_timeout = silence_timeout_ms / 1000
        self._queue: asyncio.Queue[bytes | None] = asyncio.Queue()
        self._ended = False
        self.frames_received = 0

    @property
    def ended(self) -> bool:
        return self._ended

    def feed(self, frame: bytes) -> None:
        """Queue an inbound frame. Frames arriving after the turn ended are dropped."""
        if self._ended:
            return
        self.frames_received += 1
        self._queue.put_nowait(frame)

    def end(self) -> None:
        """End the turn; frames already queued are still delivered."""
        if self._ended:
            return
        self._ended = True
        self._queue.put_nowait(None)

    def __aiter__(self) -> SpeakerStream:
        return self

    async def __anext__(self) -> bytes:
        try:
            frame = await asyncio.wait_for(self._queue.get(), timeout=self.silence_timeout)
        except asyncio.TimeoutError:
            self._ended = True
            raise StopAsyncIteration from None

        if frame is None:
            raise StopAsyncIteration
        return frame


# -------------------------------------------------------------- #
# Speaker Router
# -------------------------------------------------------------- #


class SpeakerRouter:
    """
    Demultiplexes inbound frames into per-speaker streams.

    The first frame from a speaker with no live stream opens a new
    SpeakerStream and notifies every registered speaker-start handler.
    Must only be called from the event loop thread.
    """

    def __init__(self, silence_timeout_ms: int = SILENCE_TIMEOUT_MS):
        self.silence_timeout_ms = silence_timeout_ms
        self._handlers: list[SpeakerStartHandler] = []
        self._streams: dict[int, SpeakerStream] = {}
        self._closed = False

    def add_handler(self, handler: SpeakerStartHandler) -> None:
        self._handlers.append(handler)

    def route(self, speaker_id: int, frame: bytes) -> None:
        """Deliver one frame to the speaker's current turn, opening a new turn if needed."""
        if self._closed:
            return

        stream = self._streams.get(speaker_id)
        if stream is None or stream.ended:
            stream = SpeakerStream(speaker_id, self.silence_timeout_ms)
            self._streams[speaker_id] = stream
            for handler in self._handlers:
                try:
                    handler(speaker_id, stream)
                except Exception as e:
                    logger.error(f"Speaker start handler failed for {speaker_id}: {e}")

        stream.feed(frame)

    def close(self) -> None:
        """End every live stream and ignore further frames."""
        self._closed = True
        for stream in self._streams.values():
            stream.end()
        self._streams.clear()


# -------------------------------------------------------------- #
# Voice Connection Interface
# -------------------------------------------------------------- #


class VoiceConnection(ABC):
    """A live voice connection that reports speaking turns as frame streams."""

    @abstractmethod
    def on_speaker_start(self, handler: SpeakerStartHandler) -> None:
        """Register a handler called once per speaking turn with (speaker_id, stream)."""
        pass

    @abstractmethod
    async def start(self) -> None:
        """Begin receiving audio."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Stop receiving audio, end every open stream, and disconnect."""
        pass


# -------------------------------------------------------------- #
# py-cord Implementation
# -------------------------------------------------------------- #


class CaptureVoiceClient(discord.VoiceClient):
    """
    Voice client that forwards raw Opus frames instead of decoding them.

    py-cord calls unpack_audio from its receive thread for every packet;
    each audio frame is handed to the event loop where the SpeakerRouter
    runs. Frames are keyed by SSRC, which identifies one speaker for the
    lifetime of the connection.
    """

    def __init__(self, client: discord.Client, channel: discord.abc.Connectable):
        super().__init__(client, channel)
        self.router = SpeakerRouter()

    def unpack_audio(self, data: bytes) -> None:
        if data[1] in _RTCP_PAYLOAD_TYPES:
            return
        if self.paused:
            return

        packet = discord.sinks.RawData(data, self)
        frame = bytes(packet.decrypted_data)
        if not frame or frame == OPUS_SILENCE_FRAME:
            return

        self.loop.call_soon_threadsafe(self.router.route, packet.ssrc, frame)


class DiscordVoiceConnection(VoiceConnection):
    """VoiceConnection backed by a connected CaptureVoiceClient."""

    def __init__(self, voice_client: CaptureVoiceClient):
        self.voice_client = voice_client

    @property
    def channel_id(self) -> int:
        return self.voice_client.channel.id

    def on_speaker_start(self, handler: SpeakerStartHandler) -> None:
        self.voice_client.router.add_handler(handler)

    async def start(self) -> None:
        # Frames bypass the sink; it only satisfies py-cord's recording API
        self.voice_client.start_recording(
            discord.sinks.Sink(), self._recording_finished_callback, sync_start=False
        )

    async def close(self) -> None:
        if self.voice_client.recording:
            self.voice_client.stop_recording()
        self.voice_client.router.close()
        if self.voice_client.is_connected():
            await self.voice_client.disconnect(force=True)

    async def _recording_finished_callback(self, _sink: discord.sinks.Sink, *_args) -> None:
        logger.info(f"Voice receive stopped for channel {self.channel_id}")


async def connect_capture(voice_channel: discord.VoiceChannel) -> DiscordVoiceConnection:
    """Connect to a voice channel with a frame-forwarding voice client."""
    voice_client = await voice_channel.connect(timeout=10.0, reconnect=True, cls=CaptureVoiceClient)
    return DiscordVoiceConnection(voice_client)
