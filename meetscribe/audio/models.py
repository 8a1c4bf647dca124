"""
Data models for audio streams, mix plans and segments.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

import numpy as np

INT16_MIN = -32768
INT16_MAX = 32767


class RecordingMode(Enum):
    """Which inputs are captured for a recording."""

    MICROPHONE = "microphone"
    SYSTEM = "system"
    BOTH = "both"

    @classmethod
    def parse(cls, value: Optional[str]) -> "RecordingMode":
        """Parse a mode name; unknown or empty values default to BOTH."""
        aliases = {
            "mic": cls.MICROPHONE,
            "microphone": cls.MICROPHONE,
            "system": cls.SYSTEM,
            "both": cls.BOTH,
            "mixed": cls.BOTH,
        }
        return aliases.get((value or "").strip().lower(), cls.BOTH)

    @property
    def description(self) -> str:
        return {
            RecordingMode.MICROPHONE: "microphone only",
            RecordingMode.SYSTEM: "system audio only",
            RecordingMode.BOTH: "microphone + system audio",
        }[self]


@dataclass(frozen=True)
class AudioStream:
    """
    Uncompressed PCM audio.

    Samples are int16, shaped (frames, channels). Streams are never mutated;
    channel conversion and resampling return new streams.
    """

    samples: np.ndarray
    sample_rate: int
    bit_depth: int = 16

    def __post_init__(self):
        samples = np.asarray(self.samples)
        if samples.ndim == 1:
            samples = samples.reshape(-1, 1)
        if samples.ndim != 2:
            raise ValueError(f"Samples must be (frames, channels), got shape {samples.shape}")
        if self.sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {self.sample_rate}")
        samples = samples.astype(np.int16, copy=False).view()
        samples.setflags(write=False)
        object.__setattr__(self, "samples", samples)

    @property
    def channels(self) -> int:
        return int(self.samples.shape[1])

    @property
    def frame_count(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration(self) -> float:
        return self.frame_count / float(self.sample_rate)

    @classmethod
    def silence(cls, seconds: float, sample_rate: int, channels: int = 1) -> "AudioStream":
        frames = int(round(seconds * sample_rate))
        return cls(np.zeros((frames, channels), dtype=np.int16), sample_rate)

    def to_stereo(self) -> "AudioStream":
        """Duplicate a mono channel into left/right, or keep the first two channels."""
        if self.channels == 2:
            return self
        if self.channels == 1:
            return AudioStream(np.repeat(self.samples, 2, axis=1), self.sample_rate, self.bit_depth)
        return AudioStream(self.samples[:, :2], self.sample_rate, self.bit_depth)

    def resample(self, target_rate: int) -> "AudioStream":
        """
        Resample to target_rate by linear interpolation per channel.

        The output has round(frames * target / source) frames, so duration is
        preserved within one frame.
        """
        if target_rate == self.sample_rate:
            return self
        if self.frame_count == 0:
            return AudioStream(self.samples, target_rate, self.bit_depth)

        target_length = int(round(self.frame_count * target_rate / float(self.sample_rate)))
        source_positions = np.arange(self.frame_count, dtype=np.float64)
        target_positions = np.arange(target_length, dtype=np.float64) * (self.sample_rate / float(target_rate))

        channels = [
            np.interp(target_positions, source_positions, self.samples[:, ch].astype(np.float64))
            for ch in range(self.channels)
        ]
        resampled = np.clip(np.rint(np.stack(channels, axis=1)), INT16_MIN, INT16_MAX)
        return AudioStream(resampled.astype(np.int16), target_rate, self.bit_depth)

    def to_bytes(self) -> bytes:
        """Interleaved little-endian 16-bit PCM."""
        return self.samples.astype("<i2").tobytes()


@dataclass(frozen=True)
class MixPlan:
    """Common format two streams are conformed to before summation."""

    sample_rate: int
    channels: int = 2

    @classmethod
    def for_streams(cls, *streams: AudioStream) -> "MixPlan":
        return cls(sample_rate=max(stream.sample_rate for stream in streams), channels=2)

    def conform(self, stream: AudioStream) -> AudioStream:
        return stream.to_stereo().resample(self.sample_rate)


@dataclass(frozen=True)
class Segment:
    """
    A time window [start, end) of a source recording, in seconds.

    ``end`` is None for a whole-file upload whose length could not be read.
    """

    index: int
    start: float
    end: Optional[float]
    source: Optional[str] = None

    @property
    def duration(self) -> Optional[float]:
        if self.end is None:
            return None
        return self.end - self.start


@dataclass
class SegmentArtifact:
    """Encoded audio for one segment, stored on scratch storage."""

    segment: Segment
    path: Path
    size_bytes: int
    content_type: str
    compliant: bool
    encoded: bool = True

    def read_bytes(self) -> bytes:
        return Path(self.path).read_bytes()
