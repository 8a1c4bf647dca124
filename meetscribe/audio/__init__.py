"""
Audio capture, mixing, segmentation and encoding.

This package records the microphone and system loopback devices, mixes the
two captures into one stream, and splits and encodes long recordings into
pieces small enough to upload for transcription.

Main components:
- AudioRecorder: Parallel microphone and WASAPI loopback recording
- RecordingSession / ProgressReporter: Stop signal, levels and live status line
- mix / mix_wav_files: Sample-rate and channel reconciliation, then summing
- segment / extract_segment: Fixed-window splitting with lazy extraction
- SegmentEncoder: MP3 encoding through ffmpeg with upload-size accounting

Example usage:
    from meetscribe.audio import mix_wav_files, segment

    mixed = mix_wav_files("meeting.mic.wav", "meeting.system.wav", "meeting.wav")
    for seg in segment(mixed, window=20 * 60):
        print(seg.index, seg.start, seg.end)
"""

from .capture import AudioRecorder, RecordingResult
from .encoder import SegmentEncoder, audio_duration, decode_to_wav, is_pcm_wav, probe_duration
from .mixer import mix, mix_wav_files
from .models import AudioStream, MixPlan, RecordingMode, Segment, SegmentArtifact
from .monitor import ProgressReporter, RecordingSession, peak_amplitude, volume_bar
from .segmenter import extract_segment, segment
from .utils import categorize_devices, format_size, format_timestamp, get_audio_duration, read_wav, write_wav

__all__ = [
    "AudioRecorder",
    "RecordingResult",
    "SegmentEncoder",
    "decode_to_wav",
    "probe_duration",
    "audio_duration",
    "is_pcm_wav",
    "mix",
    "mix_wav_files",
    "AudioStream",
    "MixPlan",
    "RecordingMode",
    "Segment",
    "SegmentArtifact",
    "ProgressReporter",
    "RecordingSession",
    "peak_amplitude",
    "volume_bar",
    "extract_segment",
    "segment",
    "categorize_devices",
    "format_size",
    "format_timestamp",
    "get_audio_duration",
    "read_wav",
    "write_wav",
]
