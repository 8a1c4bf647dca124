"""
Utility functions for audio processing.

This module provides helper functions for WAV file input/output, device
categorization, and human-readable formatting of timestamps and sizes.
Used throughout the application for common audio processing tasks.

Key features:
- WAV reading into AudioStream (8, 16, 24 and 32-bit integer PCM)
- 16-bit WAV writing
- WAV file duration calculation
- Audio device categorization (input/output/loopback)
- Timestamp and file size formatting for display
"""

import os
import wave
from pathlib import Path
from typing import Dict, List, Union

import numpy as np

from .models import AudioStream

PathLike = Union[str, os.PathLike]


def format_timestamp(seconds: float) -> str:
    """
    Format seconds as MM:SS or HH:MM:SS.

    Args:
        seconds: Time in seconds

    Returns:
        Formatted time string
    """
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def format_size(size_bytes: int) -> str:
    """Format a byte count as megabytes with two decimals."""
    return f"{size_bytes / (1024.0 * 1024.0):.2f} MB"


def categorize_devices(devices: List[Dict]) -> Dict[str, List[Dict]]:
    """
    Categorize audio devices by type (input, output, loopback).

    Loopback devices are identified by name, input devices by
    maxInputChannels > 0, and output devices by maxOutputChannels > 0.

    Args:
        devices: List of device information dictionaries from AudioRecorder.list_devices()

    Returns:
        Dictionary with keys 'input', 'output', 'loopback'
    """
    categorized = {"input": [], "output": [], "loopback": []}

    for device in devices:
        if device.get("isLoopback", False):
            categorized["loopback"].append(device)
        elif device["maxInputChannels"] > 0:
            categorized["input"].append(device)
        elif device["maxOutputChannels"] > 0:
            categorized["output"].append(device)

    return categorized


def get_audio_duration(filepath: PathLike) -> float:
    """
    Get duration of a WAV file in seconds.

    Args:
        filepath: Path to WAV file

    Returns:
        Duration in seconds
    """
    with wave.open(str(filepath), "rb") as wf:
        frames = wf.getnframes()
        rate = wf.getframerate()
        return frames / float(rate)


def pcm_to_int16(data: bytes, sample_width: int) -> np.ndarray:
    """
    Convert little-endian integer PCM of any common width to int16 samples.

    Args:
        data: Raw PCM bytes
        sample_width: Bytes per sample (1, 2, 3 or 4)

    Returns:
        Flat int16 array
    """
    if sample_width == 2:
        return np.frombuffer(data, dtype="<i2").astype(np.int16)
    if sample_width == 1:
        # 8-bit WAV is unsigned
        return ((np.frombuffer(data, dtype=np.uint8).astype(np.int16) - 128) << 8).astype(np.int16)
    if sample_width == 3:
        raw = np.frombuffer(data, dtype=np.uint8).reshape(-1, 3)
        # keep the two most significant bytes
        return raw[:, 1:].copy().view("<i2").reshape(-1).astype(np.int16)
    if sample_width == 4:
        return (np.frombuffer(data, dtype="<i4") >> 16).astype(np.int16)
    raise ValueError(f"Unsupported sample width: {sample_width}")


def read_wav(filepath: PathLike) -> AudioStream:
    """
    Load a WAV file into an AudioStream.

    Args:
        filepath: Path to WAV file

    Returns:
        AudioStream with int16 samples shaped (frames, channels)
    """
    with wave.open(str(filepath), "rb") as wf:
        n_channels = wf.getnchannels()
        sampwidth = wf.getsampwidth()
        rate = wf.getframerate()
        data = wf.readframes(wf.getnframes())

    samples = pcm_to_int16(data, sampwidth)
    return AudioStream(samples.reshape(-1, n_channels), rate)


def write_wav(stream: AudioStream, filepath: PathLike) -> Path:
    """
    Save an AudioStream to a 16-bit WAV file.

    Args:
        stream: Audio to write
        filepath: Output file path

    Returns:
        Path of the written file
    """
    filepath = Path(filepath)
    with wave.open(str(filepath), "wb") as wf:
        wf.setnchannels(stream.channels)
        wf.setsampwidth(2)
        wf.setframerate(stream.sample_rate)
        wf.writeframes(stream.to_bytes())
    return filepath
