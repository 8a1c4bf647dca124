"""
Splitting of long recordings into fixed-length time windows.

segment() only computes the windows; extract_segment() materializes the
audio of one window on demand by seeking into the source WAV, so segments
can be extracted in any order and extraction can be repeated.
"""

import logging
import math
import wave
from typing import List, Union

import numpy as np

from ..errors import SegmentationError
from .models import AudioStream, Segment
from .utils import PathLike, format_timestamp, get_audio_duration, pcm_to_int16

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 20 * 60


def segment(
    source: Union[float, AudioStream, PathLike],
    window: float = DEFAULT_WINDOW_SECONDS,
) -> List[Segment]:
    """
    Partition a recording into contiguous time windows.

    Args:
        source: Total duration in seconds, an AudioStream, or a WAV path
        window: Window length in seconds (must be positive)

    Returns:
        Ordered segments with 1-based indices covering [0, total duration].
        The last segment ends exactly at the total duration.

    Raises:
        SegmentationError: If the window is not positive or the source is empty
    """
    if window <= 0:
        raise SegmentationError(f"Segment window must be positive, got {window}")

    source_ref = None
    if isinstance(source, AudioStream):
        total = source.duration
    elif isinstance(source, (int, float)):
        total = float(source)
    else:
        source_ref = str(source)
        try:
            total = get_audio_duration(source_ref)
        except (OSError, EOFError, wave.Error) as e:
            raise SegmentationError(f"Cannot read {source_ref}: {e}") from e

    if total <= 0:
        raise SegmentationError("Recording has no audio to segment")

    if total <= window:
        return [Segment(index=1, start=0.0, end=total, source=source_ref)]

    count = int(math.ceil(total / window))
    segments = []
    for i in range(count):
        start = i * window
        if start >= total:
            # float rounding in the count can produce an empty trailing window
            break
        end = min((i + 1) * window, total)
        segments.append(Segment(index=i + 1, start=start, end=end, source=source_ref))

    logger.info(
        f"Split {format_timestamp(total)} into {len(segments)} segments of up to {format_timestamp(window)}"
    )
    return segments


def extract_segment(seg: Segment, source: PathLike = None) -> AudioStream:
    """
    Read only the frames of one segment from the source WAV.

    Args:
        seg: Segment to extract
        source: WAV path; defaults to the segment's own source

    Returns:
        AudioStream containing the segment's audio

    Raises:
        SegmentationError: If the source is unreadable or the window lies outside it
    """
    path = source if source is not None else seg.source
    if path is None:
        raise SegmentationError(f"Segment {seg.index} has no source file")

    try:
        with wave.open(str(path), "rb") as wf:
            rate = wf.getframerate()
            n_channels = wf.getnchannels()
            sampwidth = wf.getsampwidth()
            total_frames = wf.getnframes()

            start_frame = int(round(seg.start * rate))
            end_frame = min(int(round(seg.end * rate)), total_frames)
            if start_frame >= total_frames:
                raise SegmentationError(
                    f"Segment {seg.index} starts at {seg.start:.2f}s, beyond the end of {path}"
                )
            if end_frame <= start_frame:
                raise SegmentationError(f"Segment {seg.index} has no frames")

            wf.setpos(start_frame)
            data = wf.readframes(end_frame - start_frame)
    except (OSError, EOFError, wave.Error) as e:
        raise SegmentationError(f"Cannot extract segment {seg.index} from {path}: {e}") from e

    samples = pcm_to_int16(data, sampwidth)
    return AudioStream(np.asarray(samples).reshape(-1, n_channels), rate)
