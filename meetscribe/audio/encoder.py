"""
Audio compression utilities using ffmpeg.

Encodes segments to MP3 at a fixed bitrate and checks the result against
the transcription API's upload ceiling. Oversized results are flagged, not
rejected; a failed encode raises EncodingError so the caller can fall back
to the uncompressed audio.
"""

import json
import logging
import os
import shutil
import subprocess
import wave
from pathlib import Path
from typing import Optional

from ..errors import EncodingError
from .models import AudioStream, Segment, SegmentArtifact
from .utils import PathLike, format_size, get_audio_duration, write_wav

logger = logging.getLogger(__name__)

DEFAULT_BITRATE = "128k"
DEFAULT_UPLOAD_LIMIT = 25 * 1024 * 1024

CONTENT_TYPES = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".m4a": "audio/m4a",
    ".mp4": "audio/mp4",
}


def content_type_for(path: PathLike) -> str:
    """Map a file extension to the content type sent with the upload."""
    return CONTENT_TYPES.get(Path(path).suffix.lower(), "audio/wav")


def _remove_partial(path: Path):
    try:
        path.unlink()
    except FileNotFoundError:
        pass


def _run_ffmpeg(cmd: list, output_path: Path, stdin_data: bytes = None):
    if shutil.which(cmd[0]) is None:
        raise EncodingError(f"{cmd[0]} not found in PATH")

    try:
        subprocess.run(cmd, input=stdin_data, check=True, capture_output=True)
    except subprocess.CalledProcessError as e:
        _remove_partial(output_path)
        stderr = e.stderr.decode(errors="replace").strip() if e.stderr else ""
        raise EncodingError(f"ffmpeg failed: {stderr or e}") from e
    except OSError as e:
        _remove_partial(output_path)
        raise EncodingError(f"ffmpeg could not run: {e}") from e

    if not output_path.exists() or output_path.stat().st_size == 0:
        _remove_partial(output_path)
        raise EncodingError(f"ffmpeg produced no output for {output_path.name}")


class SegmentEncoder:
    """Encode PCM audio to MP3 and check it against the upload ceiling."""

    def __init__(
        self,
        bitrate: str = DEFAULT_BITRATE,
        upload_limit_bytes: int = DEFAULT_UPLOAD_LIMIT,
        ffmpeg: str = "ffmpeg",
    ):
        """
        Args:
            bitrate: MP3 bitrate passed to ffmpeg (e.g. '128k')
            upload_limit_bytes: Maximum payload size the transcription API accepts
            ffmpeg: ffmpeg executable name or path
        """
        self.bitrate = bitrate
        self.upload_limit_bytes = upload_limit_bytes
        self.ffmpeg = ffmpeg

    def is_compliant(self, size_bytes: int) -> bool:
        return size_bytes <= self.upload_limit_bytes

    def _artifact(self, seg: Segment, path: Path, encoded: bool) -> SegmentArtifact:
        size = path.stat().st_size
        compliant = self.is_compliant(size)
        if not compliant:
            logger.warning(
                f"Segment {seg.index} is {format_size(size)}, above the "
                f"{format_size(self.upload_limit_bytes)} upload limit"
            )
        return SegmentArtifact(
            segment=seg,
            path=path,
            size_bytes=size,
            content_type=content_type_for(path),
            compliant=compliant,
            encoded=encoded,
        )

    def encode(self, stream: AudioStream, output_path: PathLike, seg: Segment = None) -> SegmentArtifact:
        """
        Encode a PCM stream to MP3.

        Args:
            stream: Audio to encode
            output_path: Destination .mp3 path
            seg: Segment the audio belongs to (defaults to the whole stream)

        Returns:
            SegmentArtifact, marked non-compliant if it exceeds the upload limit

        Raises:
            EncodingError: If ffmpeg is missing or fails
        """
        output_path = Path(output_path)
        seg = seg or Segment(index=1, start=0.0, end=stream.duration)

        cmd = [
            self.ffmpeg,
            "-f", "s16le",
            "-ar", str(stream.sample_rate),
            "-ac", str(stream.channels),
            "-i", "pipe:0",
            "-codec:a", "libmp3lame",
            "-b:a", self.bitrate,
            "-y",
            "-loglevel", "error",
            str(output_path),
        ]
        _run_ffmpeg(cmd, output_path, stdin_data=stream.to_bytes())

        raw_size = stream.frame_count * stream.channels * 2
        artifact = self._artifact(seg, output_path, encoded=True)
        if raw_size:
            reduction = (1 - artifact.size_bytes / float(raw_size)) * 100
            logger.info(
                f"Compression: {format_size(raw_size)} -> {format_size(artifact.size_bytes)} ({reduction:.1f}% reduction)"
            )
        return artifact

    def encode_file(self, wav_path: PathLike, output_path: PathLike) -> SegmentArtifact:
        """
        Encode a whole WAV file to MP3.

        Raises:
            EncodingError: If ffmpeg is missing or fails
        """
        output_path = Path(output_path)
        cmd = [
            self.ffmpeg,
            "-i", str(wav_path),
            "-codec:a", "libmp3lame",
            "-b:a", self.bitrate,
            "-y",
            "-loglevel", "error",
            str(output_path),
        ]
        _run_ffmpeg(cmd, output_path)

        original = os.path.getsize(wav_path)
        whole = Segment(index=1, start=0.0, end=audio_duration(wav_path), source=str(wav_path))
        artifact = self._artifact(whole, output_path, encoded=True)
        logger.info(f"Original: {format_size(original)} -> Compressed: {format_size(artifact.size_bytes)}")
        return artifact

    def write_uncompressed(self, stream: AudioStream, output_path: PathLike, seg: Segment = None) -> SegmentArtifact:
        """Write the PCM as WAV, the fallback when encoding fails."""
        seg = seg or Segment(index=1, start=0.0, end=stream.duration)
        path = write_wav(stream, output_path)
        return self._artifact(seg, path, encoded=False)


def decode_to_wav(input_path: PathLike, output_path: PathLike, ffmpeg: str = "ffmpeg") -> Path:
    """
    Decode any ffmpeg-readable audio file to 16-bit PCM WAV.

    Raises:
        EncodingError: If ffmpeg is missing or fails
    """
    output_path = Path(output_path)
    cmd = [ffmpeg, "-i", str(input_path), "-codec:a", "pcm_s16le", "-y", "-loglevel", "error", str(output_path)]
    _run_ffmpeg(cmd, output_path)
    return output_path


def probe_duration(file_path: PathLike, ffprobe: str = "ffprobe") -> float:
    """
    Get the duration of an audio file using ffprobe.

    Raises:
        EncodingError: If ffprobe is missing or cannot read the file
    """
    ffprobe_path = shutil.which(ffprobe)
    if not ffprobe_path:
        raise EncodingError("ffprobe not found in PATH")

    cmd = [ffprobe_path, "-v", "error", "-show_format", "-of", "json", str(file_path)]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=30)
    except (OSError, subprocess.TimeoutExpired) as e:
        raise EncodingError(f"ffprobe could not run: {e}") from e
    if result.returncode != 0:
        raise EncodingError(f"ffprobe failed: {result.stderr.strip()}")

    try:
        probe_data = json.loads(result.stdout)
        return float(probe_data["format"]["duration"])
    except (KeyError, TypeError, ValueError) as e:
        raise EncodingError(f"No duration reported for {file_path}") from e


def is_pcm_wav(file_path: PathLike) -> bool:
    """True when the stdlib wave reader can open the file (integer PCM)."""
    try:
        with wave.open(str(file_path), "rb"):
            return True
    except (OSError, EOFError, wave.Error):
        return False


def audio_duration(file_path: PathLike) -> Optional[float]:
    """
    Duration of any audio file in seconds.

    Reads the WAV header when possible, asks ffprobe otherwise (float or
    extensible WAVs, compressed formats). Returns None when neither can.
    """
    try:
        return get_audio_duration(file_path)
    except (OSError, EOFError, wave.Error):
        pass

    try:
        return probe_duration(file_path)
    except EncodingError as e:
        logger.debug(f"Duration unknown for {Path(file_path).name}: {e}")
        return None
