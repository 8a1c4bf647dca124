"""
Sequential transcription of recordings that may exceed the upload limit.

The orchestrator checks the size of the recording, splits and encodes it
when it is too large, sends the pieces one at a time to the transcription
service and assembles the results in segment order. A rate or quota
rejection stops the run early but keeps the partial transcript; any other
per-segment failure is recorded and the run continues.

Every transient file the orchestrator creates lives in its own scratch
directory, which is removed when the run ends, whatever the outcome.
"""

import logging
import shutil
import tempfile
import uuid
from enum import Enum
from pathlib import Path
from typing import List, Optional, Protocol

from ..audio.encoder import SegmentEncoder, audio_duration, content_type_for, decode_to_wav, is_pcm_wav
from ..audio.models import Segment, SegmentArtifact
from ..audio.segmenter import extract_segment, segment
from ..audio.utils import PathLike, format_size
from ..config import PipelineSettings
from ..errors import EncodingError, SegmentationError, TranscriptionError
from .rate_limiter import FixedIntervalLimiter, RateLimiter
from .transcript import FragmentStatus, Transcript, TranscriptFragment

logger = logging.getLogger(__name__)


class Transcriber(Protocol):
    def transcribe(
        self, audio: bytes, filename: str = ..., content_type: str = ..., language: Optional[str] = ...
    ) -> str: ...


class OrchestratorState(Enum):
    """Lifecycle of one orchestrated run."""

    NOT_STARTED = "not_started"
    SIZE_CHECKED = "size_checked"
    SEGMENTING = "segmenting"
    TRANSCRIBING_SEGMENT = "transcribing_segment"
    ASSEMBLING = "assembling"
    DONE = "done"
    ABORTED = "aborted"


TERMINAL_STATES = (OrchestratorState.DONE, OrchestratorState.ABORTED)


class TranscriptionOrchestrator:
    """Drives size checking, segmentation, encoding and transcription for one recording."""

    def __init__(
        self,
        transcriber: Transcriber,
        settings: Optional[PipelineSettings] = None,
        encoder: Optional[SegmentEncoder] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        """
        Args:
            transcriber: Transcription capability (e.g. WhisperClient)
            settings: Upload limit, segment length, delay and scratch location
            encoder: Segment encoder; built from settings when omitted
            rate_limiter: Pacing between requests; a fixed interval from settings when omitted
        """
        self.transcriber = transcriber
        self.settings = settings or PipelineSettings()
        self.encoder = encoder or SegmentEncoder(
            bitrate=self.settings.mp3_bitrate, upload_limit_bytes=self.settings.upload_limit_bytes
        )
        self.rate_limiter = rate_limiter or FixedIntervalLimiter(self.settings.segment_delay_seconds)

        self.state = OrchestratorState.NOT_STARTED
        self.history: List[OrchestratorState] = [self.state]
        self.current_segment: Optional[int] = None
        self.transcript: Optional[Transcript] = None
        self._scratch_dir: Optional[Path] = None
        self._transient_files: List[Path] = []

    def _set_state(self, state: OrchestratorState):
        self.state = state
        self.history.append(state)
        logger.debug(f"Orchestrator state: {state.value}")

    def _scratch_path(self, prefix: str, suffix: str) -> Path:
        path = self._scratch_dir / f"{prefix}_{uuid.uuid4().hex[:8]}{suffix}"
        self._transient_files.append(path)
        return path

    def run(self, audio_path: PathLike, language: Optional[str] = None) -> Transcript:
        """
        Transcribe a recording.

        Args:
            audio_path: Recording to transcribe (the caller keeps ownership)
            language: Language code to force; defaults to the configured language

        Returns:
            The assembled transcript. After a rate-limit stop it holds the
            fragments produced so far and the state is ABORTED.

        Raises:
            RuntimeError: If this orchestrator has already run
            FileNotFoundError: If the recording does not exist
            SegmentationError: If a large recording cannot be split
        """
        if self.state is not OrchestratorState.NOT_STARTED:
            raise RuntimeError(f"Orchestrator already ran (state: {self.state.value})")

        audio_path = Path(audio_path)
        if not audio_path.exists():
            raise FileNotFoundError(f"Audio file not found: {audio_path}")

        language = language or self.settings.language
        self._scratch_dir = Path(tempfile.mkdtemp(prefix="meetscribe-", dir=self.settings.scratch_dir))

        try:
            candidate = self._prepare_candidate(audio_path)
            size = candidate.stat().st_size
            self._set_state(OrchestratorState.SIZE_CHECKED)

            if size <= self.settings.upload_limit_bytes:
                logger.info(f"{candidate.name} is {format_size(size)}, sending as a single request")
                transcript = Transcript(segmented=False, total_segments=1)
                artifacts = [self._whole_file_artifact(candidate, audio_path)]
            else:
                logger.info(
                    f"File size ({format_size(size)}) exceeds the upload limit. "
                    f"Splitting into {self.settings.segment_seconds / 60:g}-minute segments..."
                )
                self._set_state(OrchestratorState.SEGMENTING)
                artifacts = self._build_artifacts(audio_path)
                transcript = Transcript(segmented=True, total_segments=len(artifacts))

            self.transcript = transcript
            self._transcribe_all(artifacts, transcript, language)

            self._set_state(OrchestratorState.ASSEMBLING)
            text = transcript.text
            logger.info(
                f"Processed {transcript.completed_segments} of {transcript.total_segments} segment(s). "
                f"Combined transcript: {len(text)} characters"
            )

            if transcript.stopped_early:
                self._set_state(OrchestratorState.ABORTED)
            else:
                self._set_state(OrchestratorState.DONE)
            return transcript

        except Exception:
            self._set_state(OrchestratorState.ABORTED)
            raise
        finally:
            self._cleanup()

    def _prepare_candidate(self, audio_path: Path) -> Path:
        """Compress a WAV recording before upload when enabled, else use it as is."""
        if audio_path.suffix.lower() != ".wav" or not self.settings.compress_before_upload:
            return audio_path

        logger.info("Converting WAV to MP3 for compression...")
        mp3_path = self._scratch_path(audio_path.stem, ".mp3")
        try:
            return self.encoder.encode_file(audio_path, mp3_path).path
        except EncodingError as e:
            logger.warning(f"MP3 conversion failed ({e}), using original WAV file")
            return audio_path

    def _whole_file_artifact(self, candidate: Path, source: Path) -> SegmentArtifact:
        size = candidate.stat().st_size
        return SegmentArtifact(
            segment=Segment(index=1, start=0.0, end=audio_duration(source), source=str(source)),
            path=candidate,
            size_bytes=size,
            content_type=content_type_for(candidate),
            compliant=self.encoder.is_compliant(size),
            encoded=candidate.suffix.lower() != ".wav",
        )

    def _build_artifacts(self, audio_path: Path) -> List[SegmentArtifact]:
        """Split the PCM source and encode every segment, in order."""
        source = audio_path
        if not is_pcm_wav(audio_path):
            logger.info(f"Decoding {audio_path.name} to 16-bit PCM for splitting...")
            try:
                source = decode_to_wav(audio_path, self._scratch_path(audio_path.stem, ".wav"))
            except EncodingError as e:
                raise SegmentationError(f"Cannot decode {audio_path.name} for splitting: {e}") from e

        segments = segment(source, self.settings.segment_seconds)
        artifacts = []

        for seg in segments:
            logger.info(f"Creating segment {seg.index}/{len(segments)}: {seg.start:.0f}s - {seg.end:.0f}s")
            try:
                stream = extract_segment(seg, source)
            except SegmentationError as e:
                logger.error(f"Failed to create segment {seg.index}: {e}")
                continue

            prefix = f"segment_{seg.index:02d}"
            try:
                artifact = self.encoder.encode(stream, self._scratch_path(prefix, ".mp3"), seg)
            except EncodingError as e:
                logger.warning(f"MP3 conversion failed for segment {seg.index} ({e}), using WAV segment")
                artifact = self.encoder.write_uncompressed(stream, self._scratch_path(prefix, ".wav"), seg)

            if not artifact.compliant:
                logger.warning(f"Segment {seg.index} still exceeds the upload limit, sending it anyway")
            artifacts.append(artifact)

        if not artifacts:
            raise SegmentationError("Failed to split audio file into segments.")

        logger.info(f"Successfully created {len(artifacts)} segments")
        return artifacts

    def _transcribe_all(self, artifacts: List[SegmentArtifact], transcript: Transcript, language: Optional[str]):
        for position, artifact in enumerate(artifacts):
            self.current_segment = artifact.segment.index
            self._set_state(OrchestratorState.TRANSCRIBING_SEGMENT)
            logger.info(f"Processing segment {position + 1}/{len(artifacts)}...")

            fragment = self._transcribe_one(artifact, language)
            transcript.add(fragment)

            if fragment.status is FragmentStatus.RATE_LIMITED:
                logger.error(
                    f"Rate limit exceeded, stopping. Processed {position} out of {len(artifacts)} segments"
                )
                break

            if position < len(artifacts) - 1:
                self.rate_limiter.pause()

    def _transcribe_one(self, artifact: SegmentArtifact, language: Optional[str]) -> TranscriptFragment:
        index = artifact.segment.index
        try:
            text = self.transcriber.transcribe(
                artifact.read_bytes(),
                filename=Path(artifact.path).name,
                content_type=artifact.content_type,
                language=language,
            )
        except TranscriptionError as e:
            if e.is_rate_limited:
                return TranscriptFragment(index, status=FragmentStatus.RATE_LIMITED, reason=str(e))
            logger.error(f"Failed to transcribe segment {index}: {e}")
            return TranscriptFragment(index, status=FragmentStatus.FAILED, reason=str(e))
        except OSError as e:
            logger.error(f"Cannot read segment {index}: {e}")
            return TranscriptFragment(index, status=FragmentStatus.FAILED, reason=str(e))

        if not text or not text.strip():
            logger.warning(f"Segment {index} produced empty transcript")
            return TranscriptFragment(index, status=FragmentStatus.EMPTY)

        logger.info(f"Segment {index} completed ({len(text)} characters)")
        return TranscriptFragment(index, text=text.strip(), status=FragmentStatus.OK)

    def _cleanup(self):
        removed = 0
        for path in self._transient_files:
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Could not delete temporary file {path}: {e}")

        if self._scratch_dir is not None:
            shutil.rmtree(self._scratch_dir, ignore_errors=True)

        if removed:
            logger.info(f"Temporary files cleaned up ({removed}).")
        self._transient_files = []

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES
