"""
Shared fixtures: fake voice connections and codecs, a test context,
mocked services, and mocked Discord objects.

No test touches Discord, libopus or the OpenAI API.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from voicerecap.config import BotConfig
from voicerecap.context import Context
from voicerecap.services.logger import AsyncLoggingService
from voicerecap.services.voice_capture.connection import SpeakerRouter, VoiceConnection
from voicerecap.services.voice_capture.decoder import FrameDecoder

pytest_plugins = ("pytest_asyncio",)

# Seconds before a test not marked slow is failed
DEFAULT_TEST_TIMEOUT = 30


def pytest_collection_modifyitems(config: pytest.Config, items: list) -> None:
    for item in items:
        if item.get_closest_marker("slow") is None:
            item.add_marker(pytest.mark.timeout(DEFAULT_TEST_TIMEOUT))


# ============================================================================
# Fakes
# ============================================================================


class FakeCodec:
    """Stands in for the Opus decoder: frames starting with b"BAD" are corrupt."""

    def __init__(self, sample_rate: int = 48000, channels: int = 2):
        self.sample_rate = sample_rate
        self.channels = channels
        self.closed = False
        self.frames: list[bytes] = []

    def decode(self, data: bytes) -> bytes:
        if data.startswith(b"BAD"):
            raise ValueError("corrupted stream")
        self.frames.append(data)
        # Pretend every compressed byte expands to two PCM bytes
        return data * 2

    def close(self) -> None:
        self.closed = True


class FakeVoiceConnection(VoiceConnection):
    """VoiceConnection driven by tests through a real SpeakerRouter."""

    def __init__(self, channel_id: int = 444555666, silence_timeout_ms: int = 100):
        self.channel_id = channel_id
        self.router = SpeakerRouter(silence_timeout_ms=silence_timeout_ms)
        self.started = False
        self.closed = False
        self.close_error: Exception | None = None

    def on_speaker_start(self, handler) -> None:
        self.router.add_handler(handler)

    async def start(self) -> None:
        self.started = True

    async def close(self) -> None:
        self.closed = True
        self.router.close()
        if self.close_error:
            raise self.close_error

    def speak(self, speaker_id: int, *frames: bytes) -> None:
        for frame in frames:
            self.router.route(speaker_id, frame)


@pytest.fixture
def fake_codecs() -> list[FakeCodec]:
    """Every FakeCodec created by fake_decoder_factory, in creation order."""
    return []


@pytest.fixture
def fake_decoder_factory(fake_codecs):
    """Factory producing FrameDecoders backed by FakeCodec."""

    def codec_factory(sample_rate: int, channels: int) -> FakeCodec:
        codec = FakeCodec(sample_rate, channels)
        fake_codecs.append(codec)
        return codec

    def factory() -> FrameDecoder:
        return FrameDecoder(codec_factory=codec_factory)

    return factory


@pytest.fixture
def fake_connection() -> FakeVoiceConnection:
    return FakeVoiceConnection()


@pytest.fixture
def fake_connector(fake_connection):
    """Connector returning fake_connection for any channel."""
    return AsyncMock(return_value=fake_connection)


# ============================================================================
# Context and Services Fixtures
# ============================================================================


@pytest.fixture
def bot_config(tmp_path) -> BotConfig:
    return BotConfig(
        discord_token="test-discord-token",
        openai_api_key="test-openai-key",
        recording_storage_path=str(tmp_path / "recordings"),
        log_dir=str(tmp_path / "logs"),
    )


@pytest.fixture
def context(bot_config) -> Context:
    return Context(bot_config)


@pytest.fixture
def mock_logging_service() -> AsyncMock:
    """Logging service whose coroutines record their calls."""
    return AsyncMock(spec=AsyncLoggingService)


@pytest.fixture
def mock_services(context, mock_logging_service) -> MagicMock:
    """ServicesManager stand-in with async collaborators."""
    services = MagicMock()
    services.context = context
    services.logging_service = mock_logging_service
    services.recording_file_service_manager = MagicMock()
    services.recording_file_service_manager.save_to_temp_file = AsyncMock(
        return_value="/tmp/recording.wav"
    )
    services.recording_file_service_manager.delete_temp_file = AsyncMock()
    services.transcription_service = MagicMock()
    services.transcription_service.transcribe = AsyncMock()
    services.summarization_service = MagicMock()
    services.summarization_service.summarize = AsyncMock()
    context.set_services_manager(services)
    return services


@pytest.fixture
def mock_openai_client() -> MagicMock:
    """AsyncOpenAI stand-in exposing the two endpoints the bot calls."""
    client = MagicMock()
    client.audio.transcriptions.create = AsyncMock(
        return_value=SimpleNamespace(text="hello from the call")
    )
    client.chat.completions.create = AsyncMock()
    client.close = AsyncMock()
    return client


# ============================================================================
# Mock Discord Fixtures
# ============================================================================


@pytest.fixture
def mock_discord_bot() -> MagicMock:
    """Create a mock Discord bot instance."""
    bot = MagicMock()
    bot.user = MagicMock()
    bot.user.name = "TestBot"
    bot.user.id = 123456789
    bot.guilds = []
    return bot


@pytest.fixture
def mock_voice_channel() -> MagicMock:
    """Create a mock Discord voice channel."""
    channel = MagicMock()
    channel.id = 444555666
    channel.name = "Test Voice Channel"
    channel.guild = MagicMock()
    channel.guild.id = 111222333
    channel.connect = AsyncMock()
    return channel


@pytest.fixture
def mock_message() -> MagicMock:
    """Create a mock guild text message from a user who is not in voice."""
    message = MagicMock()
    message.content = ""
    message.author = MagicMock()
    message.author.bot = False
    message.author.id = 987654321
    message.author.name = "TestUser"
    message.author.voice = None
    message.guild = MagicMock()
    message.guild.id = 111222333
    message.reply = AsyncMock()
    message.channel = MagicMock()
    message.channel.send = AsyncMock()
    return message


@pytest.fixture
def mock_message_in_voice(mock_message: MagicMock, mock_voice_channel: MagicMock) -> MagicMock:
    """Create a mock message from a user connected to a voice channel."""
    mock_message.author.voice = MagicMock()
    mock_message.author.voice.channel = mock_voice_channel
    return mock_message
