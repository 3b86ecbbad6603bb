# -------------------------------------------------------------- #
# WAV Container
# -------------------------------------------------------------- #

import struct
from dataclasses import dataclass

# -------------------------------------------------------------- #
# PCM Format
# -------------------------------------------------------------- #


@dataclass(frozen=True)
class AudioFormat:
    """
    Raw PCM sample layout.
    Defaults match Discord voice: 48 kHz, 16-bit signed, stereo, little-endian.
    """

    sample_rate: int = 48000
    channels: int = 2
    bits_per_sample: int = 16

    def __post_init__(self):
        if self.bits_per_sample not in (8, 16, 24, 32):
            raise ValueError("bits_per_sample must be 8,16,24,32")
        if self.channels <= 0 or self.sample_rate <= 0:
            raise ValueError("channels and sample_rate must be positive")

    @property
    def bytes_per_sample(self) -> int:
        return self.bits_per_sample // 8

    @property
    def block_align(self) -> int:
        """Bytes per interleaved frame (one sample for every channel)."""
        return self.channels * self.bytes_per_sample

    @property
    def byte_rate(self) -> int:
        return self.sample_rate * self.block_align

    @property
    def bytes_per_ms(self) -> float:
        return self.byte_rate / 1000

    def duration_ms(self, num_bytes: int) -> int:
        """
        Calculate the duration in milliseconds for a given number of PCM bytes.

        Example:
            >>> DISCORD_PCM_FORMAT.duration_ms(192000)  # 1 second of Discord PCM
            1000
        """
        return int(num_bytes / self.bytes_per_ms)

    def num_bytes(self, duration_ms: int) -> int:
        """
        Calculate the number of PCM bytes for a given duration.

        Example:
            >>> DISCORD_PCM_FORMAT.num_bytes(1000)  # 1 second of Discord PCM
            192000
        """
        return int(duration_ms * self.bytes_per_ms)


DISCORD_PCM_FORMAT = AudioFormat()

# -------------------------------------------------------------- #
# Header Layout
# -------------------------------------------------------------- #

WAV_HEADER_SIZE = 44
WAVE_FORMAT_PCM = 1
FMT_CHUNK_SIZE = 16

# RIFF, size, WAVE, "fmt ", fmt size, format tag, channels, rate,
# byte rate, block align, bits, "data", data size
_HEADER_STRUCT = struct.Struct("<4sI4s4sIHHIIHH4sI")

# RIFF size field counts everything after offset 8
_MAX_PAYLOAD_BYTES = 0xFFFFFFFF - (WAV_HEADER_SIZE - 8)


@dataclass(frozen=True)
class WavHeader:
    """Fields read back from a canonical 44-byte PCM WAV header."""

    riff_size: int
    audio_format: int
    channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_size: int


def build_header(data_size: int, fmt: AudioFormat = DISCORD_PCM_FORMAT) -> bytes:
    """Build the 44-byte RIFF/WAVE header for a payload of data_size bytes."""
    if data_size < 0 or data_size > _MAX_PAYLOAD_BYTES:
        raise ValueError(f"WAV payload size out of range: {data_size}")

    return _HEADER_STRUCT.pack(
        b"RIFF",
        (WAV_HEADER_SIZE - 8) + data_size,
        b"WAVE",
        b"fmt ",
        FMT_CHUNK_SIZE,
        WAVE_FORMAT_PCM,
        fmt.channels,
        fmt.sample_rate,
        fmt.byte_rate,
        fmt.block_align,
        fmt.bits_per_sample,
        b"data",
        data_size,
    )


def serialize(raw_samples: bytes, fmt: AudioFormat = DISCORD_PCM_FORMAT) -> bytes:
    """
    Wrap raw interleaved PCM in a self-contained WAV container.

    Args:
        raw_samples: Raw PCM payload
        fmt: Sample layout of the payload (default: Discord PCM)

    Returns:
        Header followed by the unchanged payload
    """
    return build_header(len(raw_samples), fmt) + bytes(raw_samples)


def parse_header(data: bytes) -> WavHeader:
    """
    Read the canonical 44-byte header at the start of a WAV file.

    Raises:
        ValueError: If data is shorter than a header or the chunk ids do not match
    """
    if len(data) < WAV_HEADER_SIZE:
        raise ValueError(f"WAV data too short for header: {len(data)} bytes")

    (
        riff,
        riff_size,
        wave,
        fmt_id,
        fmt_size,
        audio_format,
        channels,
        sample_rate,
        byte_rate,
        block_align,
        bits_per_sample,
        data_id,
        data_size,
    ) = _HEADER_STRUCT.unpack_from(data, 0)

    if riff != b"RIFF" or wave != b"WAVE" or fmt_id != b"fmt " or data_id != b"data":
        raise ValueError("Not a canonical PCM WAV header")
    if fmt_size != FMT_CHUNK_SIZE:
        raise ValueError(f"Unexpected fmt chunk size: {fmt_size}")

    return WavHeader(
        riff_size=riff_size,
        audio_format=audio_format,
        channels=channels,
        sample_rate=sample_rate,
        byte_rate=byte_rate,
        block_align=block_align,
        bits_per_sample=bits_per_sample,
        data_size=data_size,
    )
