"""RMS-based silence classification for PCM buffers.

Each frame is reduced to a single amplitude (the mean absolute normalized
value across its channels). A frame is silent when its amplitude sits below
``silence_threshold``; the buffer as a whole is silent when at least
``silent_ratio`` of its frames are. The RMS over all frame amplitudes is
computed for diagnostics only.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from voice_services.audio.wav_codec import PcmBuffer

logger = logging.getLogger(__name__)

DEFAULT_SILENCE_THRESHOLD = 0.01
DEFAULT_SILENT_RATIO = 0.95
SUPPORTED_BIT_DEPTHS = (8, 16, 24)


class UnsupportedBitDepthError(ValueError):
    def __init__(self, bits_per_sample: int):
        super().__init__(
            f"Unsupported bit depth {bits_per_sample}; expected one of {', '.join(map(str, SUPPORTED_BIT_DEPTHS))}"
        )
        self.bits_per_sample = bits_per_sample


@dataclass(frozen=True)
class SilenceAnalysis:
    total_frames: int
    silent_frames: int
    silent_ratio: float
    rms: float
    is_silent: bool

    def asdict(self) -> dict:
        return {
            "total_frames": self.total_frames,
            "silent_frames": self.silent_frames,
            "silent_ratio": self.silent_ratio,
            "rms": self.rms,
            "is_silent": self.is_silent,
        }


_EMPTY = SilenceAnalysis(total_frames=0, silent_frames=0, silent_ratio=1.0, rms=0.0, is_silent=True)


def normalize_samples(pcm: PcmBuffer, frames: int) -> np.ndarray:
    """Return a ``(frames, channels)`` float64 array scaled to [-1.0, 1.0].

    Bytes past the last whole frame are ignored.
    """

    raw = pcm.data[: frames * pcm.frame_size]
    bits = pcm.bits_per_sample

    if bits == 8:
        values = (np.frombuffer(raw, dtype=np.uint8).astype(np.float64) - 128.0) / 128.0
    elif bits == 16:
        values = np.frombuffer(raw, dtype="<i2").astype(np.float64) / 32768.0
    elif bits == 24:
        triplets = np.frombuffer(raw, dtype=np.uint8).reshape(-1, 3).astype(np.int32)
        ints = triplets[:, 0] | (triplets[:, 1] << 8) | (triplets[:, 2] << 16)
        ints = np.where(ints & 0x800000, ints - 0x1000000, ints)
        values = ints.astype(np.float64) / 8388608.0
    else:
        raise UnsupportedBitDepthError(bits)

    return values.reshape(frames, pcm.channels)


class SilenceDetector:
    """Classify whole PCM buffers as silent or not."""

    def __init__(
        self,
        silence_threshold: float = DEFAULT_SILENCE_THRESHOLD,
        silent_ratio: float = DEFAULT_SILENT_RATIO,
    ):
        if not 0.0 < silence_threshold <= 1.0:
            raise ValueError("silence_threshold must be in (0, 1]")
        if not 0.0 <= silent_ratio <= 1.0:
            raise ValueError("silent_ratio must be in [0, 1]")
        self.silence_threshold = silence_threshold
        self.silent_ratio = silent_ratio

    def analyze(self, pcm: PcmBuffer) -> SilenceAnalysis:
        if not pcm.data:
            return _EMPTY

        if pcm.bits_per_sample not in SUPPORTED_BIT_DEPTHS:
            raise UnsupportedBitDepthError(pcm.bits_per_sample)
        if pcm.channels <= 0:
            raise ValueError(f"channels must be positive, got {pcm.channels}")

        logger.debug(
            "Analyzing audio for silence: %d bytes, %d Hz, %d bits, %d channels",
            len(pcm.data),
            pcm.sample_rate,
            pcm.bits_per_sample,
            pcm.channels,
        )

        frames = pcm.frame_count
        if frames == 0:
            return _EMPTY

        amplitudes = np.abs(normalize_samples(pcm, frames)).mean(axis=1)
        silent_frames = int(np.count_nonzero(amplitudes < self.silence_threshold))
        rms = float(np.sqrt(np.sum(amplitudes * amplitudes) / frames))
        ratio = silent_frames / frames
        verdict = ratio >= self.silent_ratio

        logger.debug(
            "Silence detection result: RMS=%.4f, Silent samples=%.2f%%, IsSilent=%s",
            rms,
            ratio * 100,
            verdict,
        )

        return SilenceAnalysis(
            total_frames=frames,
            silent_frames=silent_frames,
            silent_ratio=ratio,
            rms=rms,
            is_silent=verdict,
        )

    def is_silent(self, pcm: PcmBuffer) -> bool:
        return self.analyze(pcm).is_silent


_default_detector = SilenceDetector()


def is_silent(pcm: PcmBuffer) -> bool:
    """Classify ``pcm`` with the default 1% / 95% thresholds."""

    return _default_detector.is_silent(pcm)
