"""
Live volume and progress feedback for recordings.

A RecordingSession carries the state shared between the capture threads and
the progress reporter: peak levels, bytes recorded, elapsed time and the stop
signal. Nothing here is persisted.
"""

import sys
import threading
import time
from typing import Optional, TextIO

import numpy as np

from .models import RecordingMode
from .utils import format_timestamp

MICROPHONE = "microphone"
SYSTEM = "system"


def peak_amplitude(buffer: bytes, sample_width: int = 2) -> float:
    """
    Compute the peak absolute amplitude of a raw PCM buffer.

    Args:
        buffer: Little-endian signed PCM bytes
        sample_width: Bytes per sample (2 for int16, 4 for int32)

    Returns:
        Peak level between 0.0 and 1.0
    """
    usable = len(buffer) - (len(buffer) % sample_width)
    if usable <= 0:
        return 0.0

    if sample_width == 2:
        samples = np.frombuffer(buffer[:usable], dtype="<i2")
        full_scale = 32768.0
    elif sample_width == 4:
        samples = np.frombuffer(buffer[:usable], dtype="<i4")
        full_scale = 2147483648.0
    else:
        raise ValueError(f"Unsupported sample width: {sample_width}")

    peak = np.abs(samples.astype(np.int64)).max()
    return min(1.0, float(peak) / full_scale)


def volume_bar(level: float, width: int = 20) -> str:
    """Render a level between 0 and 1 as a fixed-width bar."""
    level = max(0.0, min(1.0, level))
    filled = int(level * width)
    return "[" + ("▌" * filled).ljust(width, "─") + "]"


class RecordingSession:
    """
    State of one recording, shared by capture threads and the progress reporter.

    Every recording gets its own session and readers receive it explicitly.
    """

    def __init__(self, mode: RecordingMode = RecordingMode.BOTH, clock=time.monotonic):
        self.mode = mode
        self.mic_level = 0.0
        self.system_level = 0.0
        self.bytes_recorded = 0
        self._clock = clock
        self._started_at: Optional[float] = None
        self._stopped_at: Optional[float] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()

    def start(self):
        self._started_at = self._clock()
        self._stopped_at = None
        self._stop_event.clear()

    def stop(self):
        if self._stopped_at is None:
            self._stopped_at = self._clock()
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the session is stopped or timeout elapses."""
        return self._stop_event.wait(timeout)

    def elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        end = self._stopped_at if self._stopped_at is not None else self._clock()
        return end - self._started_at

    def update_level(self, source: str, buffer: bytes, sample_width: int = 2):
        """Record the peak level of the latest buffer from a source."""
        level = peak_amplitude(buffer, sample_width)
        with self._lock:
            if source == MICROPHONE:
                self.mic_level = level
            elif source == SYSTEM:
                self.system_level = level
            else:
                raise ValueError(f"Unknown source: {source}")

    def add_bytes(self, count: int):
        with self._lock:
            self.bytes_recorded += count


class ProgressReporter:
    """Prints a single updating status line while a session is recording."""

    def __init__(self, session: RecordingSession, stream: TextIO = None, interval: float = 0.1):
        self.session = session
        self.stream = stream or sys.stdout
        self.interval = interval
        self._thread: Optional[threading.Thread] = None

    def render(self) -> str:
        """Build the status line for the current session state."""
        session = self.session
        if session.mode is RecordingMode.MICROPHONE:
            volumes = f"Mic: {volume_bar(session.mic_level)}"
        elif session.mode is RecordingMode.SYSTEM:
            volumes = f"System: {volume_bar(session.system_level)}"
        else:
            volumes = f"Mic: {volume_bar(session.mic_level)} | System: {volume_bar(session.system_level)}"

        return f"Recording: {format_timestamp(session.elapsed())} | {volumes} | Press [Enter] to stop"

    def _run(self):
        while not self.session.stopped:
            self.stream.write("\r" + self.render())
            self.stream.flush()
            self.session.wait(self.interval)
        self.stream.write("\n")
        self.stream.flush()

    def start(self):
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def join(self, timeout: Optional[float] = None):
        if self._thread:
            self._thread.join(timeout)
