"""
Mixing of microphone and system loopback audio into one stereo stream.

Both inputs are conformed to a MixPlan (highest input sample rate, stereo)
and summed sample by sample with int16 clipping. A shorter input is padded
with silence so no audio from the longer input is lost.
"""

import logging
import os
import wave
from pathlib import Path
from typing import Optional

import numpy as np

from ..errors import MixError
from .models import INT16_MAX, INT16_MIN, AudioStream, MixPlan
from .utils import PathLike, format_size, read_wav, write_wav

logger = logging.getLogger(__name__)


def mix(first: Optional[AudioStream], second: Optional[AudioStream]) -> AudioStream:
    """
    Mix two audio streams into one stereo stream.

    Args:
        first: First stream (e.g. microphone), or None if it was not captured
        second: Second stream (e.g. system audio), or None

    Returns:
        Mixed stream at the higher of the two sample rates. When only one
        input is present it is returned unchanged.

    Raises:
        MixError: If neither stream is present
    """
    if first is None and second is None:
        raise MixError("No audio streams to mix")
    if first is None:
        return second
    if second is None:
        return first

    plan = MixPlan.for_streams(first, second)
    logger.debug(
        f"Mixing {first.sample_rate}Hz/{first.channels}ch with "
        f"{second.sample_rate}Hz/{second.channels}ch into {plan.sample_rate}Hz/{plan.channels}ch"
    )

    conformed = [plan.conform(first), plan.conform(second)]
    length = max(stream.frame_count for stream in conformed)

    mixed = np.zeros((length, plan.channels), dtype=np.int32)
    for stream in conformed:
        mixed[: stream.frame_count] += stream.samples.astype(np.int32)

    np.clip(mixed, INT16_MIN, INT16_MAX, out=mixed)
    return AudioStream(mixed.astype(np.int16), plan.sample_rate)


def _remove_quietly(path: PathLike):
    try:
        os.remove(path)
    except OSError as e:
        logger.warning(f"Could not delete {path}: {e}")


def mix_wav_files(
    mic_path: Optional[PathLike],
    system_path: Optional[PathLike],
    output_path: PathLike,
    cleanup_sources: bool = True,
) -> Path:
    """
    Mix a microphone WAV and a system audio WAV into a single file.

    Falls back to whichever input exists when the other is missing, and to
    the system file when mixing fails.

    Args:
        mic_path: Microphone recording
        system_path: System loopback recording
        output_path: Where to write the mixed WAV
        cleanup_sources: Delete the two inputs after a successful mix

    Returns:
        Path of the file to use downstream

    Raises:
        MixError: If neither input file exists
    """
    mic_exists = mic_path is not None and os.path.exists(mic_path)
    system_exists = system_path is not None and os.path.exists(system_path)

    if not mic_exists or not system_exists:
        if mic_exists:
            logger.warning("System audio file missing, using microphone recording only")
            return Path(mic_path)
        if system_exists:
            logger.warning("Microphone file missing, using system audio recording only")
            return Path(system_path)
        raise MixError("Neither microphone nor system audio file exists")

    try:
        logger.info("Mixing audio streams...")
        mic = read_wav(mic_path)
        system = read_wav(system_path)
        logger.info(f"Microphone: {mic.sample_rate}Hz, {mic.channels} channels")
        logger.info(f"System: {system.sample_rate}Hz, {system.channels} channels")

        mixed = mix(mic, system)
        output = write_wav(mixed, output_path)
    except (OSError, EOFError, ValueError, wave.Error, MixError) as e:
        fallback = Path(system_path)
        logger.warning(f"Could not mix audio files: {e}. Using {fallback.name} only")
        return fallback

    logger.info(f"Mixed file created: {format_size(output.stat().st_size)}")

    if cleanup_sources:
        _remove_quietly(mic_path)
        _remove_quietly(system_path)

    return output
