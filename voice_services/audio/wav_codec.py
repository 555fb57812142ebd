"""WAV container codec for raw PCM buffers.

Encodes a PCM buffer into the canonical 44-byte-header RIFF/WAVE layout and
parses arbitrary RIFF/WAVE byte streams back into PCM samples plus format
metadata. Only uncompressed PCM (audio format 1) is supported.
"""
from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Dict, Iterator

RIFF_ID = b"RIFF"
WAVE_ID = b"WAVE"
FMT_ID = b"fmt "
DATA_ID = b"data"

PCM_FORMAT = 1
PROLOGUE_SIZE = 12
CHUNK_HEADER_SIZE = 8
FMT_CHUNK_SIZE = 16
HEADER_SIZE = PROLOGUE_SIZE + CHUNK_HEADER_SIZE + FMT_CHUNK_SIZE + CHUNK_HEADER_SIZE

_UINT16_MAX = 0xFFFF
_UINT32_MAX = 0xFFFFFFFF

_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")
_CHUNK_HEADER = struct.Struct("<4sI")
_FMT_BODY = struct.Struct("<HHIIHH")


class WavError(ValueError):
    """Base class for WAV codec failures."""


class InvalidFormatError(WavError):
    """Missing or garbled RIFF/WAVE prologue, or a truncated fmt chunk."""


class UnsupportedFormatError(WavError):
    """The fmt chunk declares a non-PCM audio format."""

    def __init__(self, audio_format: int):
        super().__init__(f"Only PCM format is supported (audio format {audio_format})")
        self.audio_format = audio_format


class MissingChunkError(WavError):
    """A required sub-chunk is absent from the container."""

    def __init__(self, chunk_id: str):
        self.chunk_id = chunk_id.strip()
        super().__init__(f"{self.chunk_id} chunk not found in WAV data")


class InvalidDataError(WavError):
    """The data chunk declares more bytes than the buffer holds."""


class InvalidPcmError(WavError):
    """PCM metadata cannot be represented in a WAV header."""


@dataclass(frozen=True)
class PcmBuffer:
    data: bytes
    sample_rate: int
    bits_per_sample: int
    channels: int

    @property
    def bytes_per_sample(self) -> int:
        return self.bits_per_sample // 8

    @property
    def frame_size(self) -> int:
        return self.bytes_per_sample * self.channels

    @property
    def frame_count(self) -> int:
        if self.frame_size <= 0:
            return 0
        return len(self.data) // self.frame_size

    @property
    def duration_seconds(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.frame_count / self.sample_rate

    def validate(self) -> None:
        """Raise ``InvalidPcmError`` unless the metadata fits a WAV header."""

        if self.sample_rate <= 0 or self.sample_rate > _UINT32_MAX:
            raise InvalidPcmError(f"sample_rate must be a positive 32-bit value, got {self.sample_rate}")
        if self.bits_per_sample <= 0 or self.bits_per_sample > _UINT16_MAX:
            raise InvalidPcmError(f"bits_per_sample must be a positive 16-bit value, got {self.bits_per_sample}")
        if self.channels <= 0 or self.channels > _UINT16_MAX:
            raise InvalidPcmError(f"channels must be a positive 16-bit value, got {self.channels}")
        if len(self.data) > _UINT32_MAX - (HEADER_SIZE - CHUNK_HEADER_SIZE):
            raise InvalidPcmError("PCM payload too large for a RIFF container")


@dataclass(frozen=True)
class Chunk:
    chunk_id: bytes
    offset: int
    size: int

    @property
    def body_start(self) -> int:
        return self.offset + CHUNK_HEADER_SIZE

    @property
    def body_end(self) -> int:
        return self.body_start + self.size


def encode_wav(pcm: PcmBuffer) -> bytes:
    """Wrap ``pcm`` in a canonical 44-byte WAV header.

    The output is always ``44 + len(pcm.data)`` bytes long. Metadata is
    validated first so a zero or oversized field never produces a
    well-shaped but meaningless header.
    """

    pcm.validate()
    data_size = len(pcm.data)
    block_align = pcm.channels * pcm.bits_per_sample // 8
    byte_rate = pcm.sample_rate * pcm.channels * pcm.bits_per_sample // 8

    header = _HEADER.pack(
        RIFF_ID,
        36 + data_size,
        WAVE_ID,
        FMT_ID,
        FMT_CHUNK_SIZE,
        PCM_FORMAT,
        pcm.channels,
        pcm.sample_rate,
        byte_rate & _UINT32_MAX,
        block_align & _UINT16_MAX,
        pcm.bits_per_sample,
        DATA_ID,
        data_size,
    )
    return header + bytes(pcm.data)


def validate_prologue(data: bytes) -> None:
    if len(data) < PROLOGUE_SIZE:
        raise InvalidFormatError("Data is too small to be a valid WAV file")
    if data[0:4] != RIFF_ID:
        raise InvalidFormatError("Invalid WAV format: missing RIFF header")
    if data[8:12] != WAVE_ID:
        raise InvalidFormatError("Invalid WAV format: missing WAVE format identifier")


def iter_chunks(data: bytes, start: int = PROLOGUE_SIZE) -> Iterator[Chunk]:
    """Yield every sub-chunk header found after the RIFF/WAVE prologue.

    Chunks are walked by their declared sizes. Odd-sized chunks are followed
    by a single pad byte, as RIFF requires. The walk stops as soon as fewer
    than eight bytes remain for a chunk header; a declared size running past
    the end of the buffer is reported as-is and left to the caller.
    """

    offset = start
    while offset + CHUNK_HEADER_SIZE <= len(data):
        chunk_id, size = _CHUNK_HEADER.unpack_from(data, offset)
        yield Chunk(chunk_id=chunk_id, offset=offset, size=size)
        offset += CHUNK_HEADER_SIZE + size + (size & 1)


def find_chunks(data: bytes) -> Dict[bytes, Chunk]:
    """Map chunk id to its first occurrence in a single pass."""

    chunks: Dict[bytes, Chunk] = {}
    for chunk in iter_chunks(data):
        chunks.setdefault(chunk.chunk_id, chunk)
    return chunks


def decode_wav(data: bytes) -> PcmBuffer:
    """Parse a RIFF/WAVE byte stream into a ``PcmBuffer``.

    Raises:
        InvalidFormatError: bad prologue or an undersized/truncated fmt chunk.
        UnsupportedFormatError: the fmt chunk is not PCM.
        MissingChunkError: no fmt or no data chunk.
        InvalidDataError: the data chunk overruns the buffer.
    """

    data = bytes(data)
    validate_prologue(data)
    chunks = find_chunks(data)

    fmt = chunks.get(FMT_ID)
    if fmt is None:
        raise MissingChunkError(FMT_ID.decode("ascii"))
    if fmt.size < FMT_CHUNK_SIZE:
        raise InvalidFormatError("Invalid fmt chunk size")
    if fmt.body_start + FMT_CHUNK_SIZE > len(data):
        raise InvalidFormatError("Truncated fmt chunk")

    audio_format, channels, sample_rate, _byte_rate, _block_align, bits_per_sample = _FMT_BODY.unpack_from(
        data, fmt.body_start
    )
    if audio_format != PCM_FORMAT:
        raise UnsupportedFormatError(audio_format)

    body = chunks.get(DATA_ID)
    if body is None:
        raise MissingChunkError(DATA_ID.decode("ascii"))
    if body.body_end > len(data):
        raise InvalidDataError("Invalid data chunk size")

    return PcmBuffer(
        data=data[body.body_start : body.body_end],
        sample_rate=sample_rate,
        bits_per_sample=bits_per_sample,
        channels=channels,
    )
