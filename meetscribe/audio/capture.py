"""
Audio capture using PyAudio, with PyAudioWPatch for Windows WASAPI loopback.

This module records the microphone, the system loopback device, or both at
the same time until a RecordingSession is stopped. Each device is read on
its own thread and written straight to its own WAV file, while the session
receives peak levels and byte counts for live feedback.

Key features:
- Microphone and WASAPI loopback recording in parallel
- Open-ended recording controlled by the session stop signal
- Silence substitution on transient read errors
"""

import logging
import sys
import threading
import time
import wave
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import CaptureError
from .models import RecordingMode
from .monitor import MICROPHONE, SYSTEM, RecordingSession
from .utils import PathLike, categorize_devices

logger = logging.getLogger(__name__)

MIC_SAMPLE_RATE = 44100
MIC_CHANNELS = 1
SAMPLE_WIDTH = 2
MAX_CONSECUTIVE_ERRORS = 100
JOIN_TIMEOUT = 2.0


def load_pyaudio():
    """Import the platform's PyAudio flavour (WASAPI loopback support on Windows)."""
    try:
        if sys.platform == "win32":
            import pyaudiowpatch as pyaudio
        else:
            import pyaudio
    except ImportError as e:
        raise CaptureError("Audio capture requires PyAudio (install the 'capture' extra)") from e
    return pyaudio


def _is_loopback(info: Dict) -> bool:
    """WASAPI loopback devices are flagged; PulseAudio monitor sources are recognized by name."""
    name = info["name"].lower()
    return bool(info.get("isLoopbackDevice", False)) or "loopback" in name or "monitor" in name


@dataclass
class RecordingResult:
    """Files produced by one recording."""

    mode: RecordingMode
    mic_path: Optional[Path] = None
    system_path: Optional[Path] = None

    @property
    def paths(self) -> List[Path]:
        return [p for p in (self.mic_path, self.system_path) if p is not None]


@dataclass
class _Channel:
    source: str
    stream: object
    writer: wave.Wave_write
    path: Path
    channels: int
    thread: Optional[threading.Thread] = None
    lock: threading.Lock = field(default_factory=threading.Lock)
    closed: bool = False


class AudioRecorder:
    """
    Handle audio recording from the microphone and the system loopback device.

    Call start() to open the devices and begin recording, then stop() once
    the session's stop signal should end the recording.
    """

    def __init__(self, frames_per_buffer: int = 1024, pyaudio_module=None):
        """
        Initialize audio capture.

        Args:
            frames_per_buffer: Buffer size for audio chunks
            pyaudio_module: PyAudio module to use; imported on first use when omitted
        """
        self.frames_per_buffer = frames_per_buffer
        self.join_timeout = JOIN_TIMEOUT
        self._pyaudio = pyaudio_module
        self.pa = None
        self._channels: List[_Channel] = []
        self._session: Optional[RecordingSession] = None
        self._mode: Optional[RecordingMode] = None

    @property
    def pyaudio(self):
        if self._pyaudio is None:
            self._pyaudio = load_pyaudio()
        return self._pyaudio

    def list_devices(self) -> List[Dict]:
        """
        List all available audio devices.

        Returns:
            List of device information dictionaries
        """
        pa = self.pyaudio.PyAudio()
        devices = []

        try:
            for i in range(pa.get_device_count()):
                info = pa.get_device_info_by_index(i)
                devices.append(
                    {
                        "index": i,
                        "name": info["name"],
                        "hostApi": info["hostApi"],
                        "maxInputChannels": info["maxInputChannels"],
                        "maxOutputChannels": info["maxOutputChannels"],
                        "defaultSampleRate": info["defaultSampleRate"],
                        "isLoopback": _is_loopback(info),
                    }
                )
        finally:
            pa.terminate()
        return devices

    def _loopback_device(self) -> Dict:
        if hasattr(self.pa, "get_default_wasapi_loopback"):
            return self.pa.get_default_wasapi_loopback()

        devices = []
        for i in range(self.pa.get_device_count()):
            info = dict(self.pa.get_device_info_by_index(i))
            info["isLoopback"] = _is_loopback(info)
            devices.append(info)
        loopbacks = categorize_devices(devices)["loopback"]
        if not loopbacks:
            raise CaptureError("No system audio loopback device found")
        return loopbacks[0]

    def _open(self, device_index: Optional[int], channels: int, rate: int):
        return self.pa.open(
            format=self.pyaudio.paInt16,
            channels=channels,
            rate=rate,
            input=True,
            frames_per_buffer=self.frames_per_buffer,
            input_device_index=device_index,
        )

    def _add_channel(self, source: str, path: Path, device_index: Optional[int], channels: int, rate: int):
        try:
            stream = self._open(device_index, channels, rate)
        except Exception as e:
            raise CaptureError(f"Failed to open {source} stream: {e}") from e

        writer = wave.open(str(path), "wb")
        writer.setnchannels(channels)
        writer.setsampwidth(SAMPLE_WIDTH)
        writer.setframerate(rate)
        self._channels.append(_Channel(source, stream, writer, path, channels))
        logger.info(f"Recording {source} at {rate}Hz, {channels} channel(s) to {path.name}")

    def start(
        self,
        session: RecordingSession,
        output_path: PathLike,
        microphone_index: Optional[int] = None,
    ):
        """
        Open the devices for the session's mode and start recording.

        In BOTH mode the inputs go to <output>.mic.wav and <output>.system.wav;
        otherwise the single input is written to output_path.

        Raises:
            CaptureError: If a device cannot be opened
        """
        output_path = Path(output_path)
        mode = session.mode
        self._session = session
        self._mode = mode
        self.pa = self.pyaudio.PyAudio()

        try:
            if mode in (RecordingMode.MICROPHONE, RecordingMode.BOTH):
                path = output_path.with_suffix(".mic.wav") if mode is RecordingMode.BOTH else output_path
                self._add_channel(MICROPHONE, path, microphone_index, MIC_CHANNELS, MIC_SAMPLE_RATE)

            if mode in (RecordingMode.SYSTEM, RecordingMode.BOTH):
                device = self._loopback_device()
                channels = max(1, min(int(device["maxInputChannels"]), 2))
                rate = int(device["defaultSampleRate"])
                path = output_path.with_suffix(".system.wav") if mode is RecordingMode.BOTH else output_path
                self._add_channel(SYSTEM, path, int(device["index"]), channels, rate)
        except Exception:
            self._close()
            raise

        session.start()
        for channel in self._channels:
            channel.thread = threading.Thread(target=self._record_stream_thread, args=(channel, session), daemon=True)
            channel.thread.start()

    def _record_stream_thread(self, channel: _Channel, session: RecordingSession):
        """
        Thread function to record from a single audio stream.

        Reads chunks until the session stops, writing each to the channel's
        WAV file. Read errors insert silence; too many consecutive errors end
        the thread.
        """
        silence = b"\x00" * (self.frames_per_buffer * SAMPLE_WIDTH * channel.channels)
        consecutive_errors = 0

        while not session.stopped:
            try:
                data = channel.stream.read(self.frames_per_buffer, exception_on_overflow=False)
                consecutive_errors = 0
            except Exception as e:
                consecutive_errors += 1
                if consecutive_errors >= MAX_CONSECUTIVE_ERRORS:
                    logger.error(f"Giving up on {channel.source} after repeated read errors: {e}")
                    break
                data = silence
                time.sleep(0.01)

            if data:
                with channel.lock:
                    if channel.closed:
                        break
                    channel.writer.writeframes(data)
                session.update_level(channel.source, data, SAMPLE_WIDTH)
                session.add_bytes(len(data))

    def _stop_stream(self, channel: _Channel):
        try:
            if channel.stream.is_active():
                channel.stream.stop_stream()
        except Exception as e:
            logger.warning(f"Error stopping {channel.source} stream: {e}")

    def _close(self):
        for channel in self._channels:
            self._stop_stream(channel)
            try:
                channel.stream.close()
            except Exception as e:
                logger.warning(f"Error closing {channel.source} stream: {e}")
            with channel.lock:
                channel.writer.close()
                channel.closed = True
        if self.pa is not None:
            self.pa.terminate()
            self.pa = None

    def stop(self) -> RecordingResult:
        """
        Stop the session, wait for the recording threads and close all files.

        Returns:
            RecordingResult with the path of each recorded input
        """
        if self._session is not None:
            self._session.stop()

        for channel in self._channels:
            if channel.thread is not None:
                channel.thread.join(timeout=self.join_timeout)

        # a reader blocked in stream.read is released by stopping its stream
        for channel in self._channels:
            if channel.thread is not None and channel.thread.is_alive():
                logger.warning(f"{channel.source} reader still running, stopping its stream")
                self._stop_stream(channel)
                channel.thread.join(timeout=self.join_timeout)

        self._close()

        result = RecordingResult(mode=self._mode or RecordingMode.BOTH)
        for channel in self._channels:
            if channel.source == MICROPHONE:
                result.mic_path = channel.path
            else:
                result.system_path = channel.path
        self._channels = []
        return result
