import logging
from collections.abc import Callable
from typing import Any

import discord

from voicerecap.services.voice_capture.wav import DISCORD_PCM_FORMAT, AudioFormat

logger = logging.getLogger(__name__)

CodecFactory = Callable[[int, int], Any]


def create_opus_decoder(sample_rate: int, channels: int) -> discord.opus.Decoder:
    """Create a py-cord Opus decoder for the requested output layout.

    py-cord's decoder always produces 48 kHz stereo, so any other layout is rejected.

    Raises:
        ValueError: If the requested layout differs from the decoder's output
        discord.opus.OpusNotLoaded: If libopus could not be loaded
    """
    decoder_cls = discord.opus.Decoder
    if sample_rate != decoder_cls.SAMPLING_RATE or channels != decoder_cls.CHANNELS:
        raise ValueError(
            f"Opus decoder outputs {decoder_cls.SAMPLING_RATE} Hz / {decoder_cls.CHANNELS} ch, "
            f"requested {sample_rate} Hz / {channels} ch"
        )
    return decoder_cls()


# -------------------------------------------------------------- #
# Frame Decoder
# -------------------------------------------------------------- #


class FrameDecoder:
    """
    Decodes one speaker's Opus frames into raw interleaved PCM.

    One instance is created per speaking turn and released when the turn
    ends. Use it as a context manager so the codec state is released on
    every exit path:

        with FrameDecoder() as decoder:
            pcm = decoder.decode(frame)

    A frame that fails to decode is logged and skipped (an empty result is
    returned); the decoder stays usable for the next frame.
    """

    def __init__(
        self,
        fmt: AudioFormat = DISCORD_PCM_FORMAT,
        codec_factory: CodecFactory = create_opus_decoder,
    ):
        self.fmt = fmt
        self._codec = codec_factory(fmt.sample_rate, fmt.channels)
        self.frames_decoded = 0
        self.frames_failed = 0

    def __enter__(self) -> "FrameDecoder":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    @property
    def released(self) -> bool:
        return self._codec is None

    def decode(self, compressed_frame: bytes) -> bytes:
        """Decode a single compressed frame.

        Args:
            compressed_frame: One opaque Opus frame

        Returns:
            Raw PCM bytes, or b"" if the frame could not be decoded

        Raises:
            RuntimeError: If the decoder has already been released
        """
        if self._codec is None:
            raise RuntimeError("FrameDecoder used after release")

        try:
            pcm = self._codec.decode(bytes(compressed_frame))
        except Exception as e:
            self.frames_failed += 1
            logger.warning(
                f"Error decoding audio frame ({len(compressed_frame)} bytes), skipping: {e}"
            )
            return b""

        if not pcm:
            return b""

        self.frames_decoded += 1
        return bytes(pcm)

    def release(self) -> None:
        """Free the codec state. Safe to call more than once."""
        codec, self._codec = self._codec, None
        if codec is None:
            return

        # py-cord frees the native decoder state in __del__
        close = getattr(codec, "close", None)
        if callable(close):
            close()
        del codec
