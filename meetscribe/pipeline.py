"""
Run-level processing of a recording.

This module takes a finished recording through the stages that follow
capture: mixing the microphone and system files, transcription, optional
summarization, publishing to Notion and the local text copy. Only
transcription failures that leave nothing to keep end a run; summary and
publishing problems are logged and the run continues.
"""

import logging
import tempfile
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .audio.capture import RecordingResult
from .audio.mixer import mix_wav_files
from .audio.models import RecordingMode
from .audio.utils import PathLike, format_size
from .config import PipelineSettings
from .errors import CaptureError, PublishError, SummarizationError
from .publishing.local import save_transcript
from .publishing.notion import NotionPublisher
from .publishing.summarizer import Summary, TranscriptSummarizer
from .transcription.orchestrator import OrchestratorState, Transcriber, TranscriptionOrchestrator
from .transcription.rate_limiter import RateLimiter
from .transcription.transcript import Transcript

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Outcome of one pipeline run."""

    transcript: Optional[Transcript] = None
    state: OrchestratorState = OrchestratorState.NOT_STARTED
    summary: Optional[Summary] = None
    page_id: Optional[str] = None
    local_path: Optional[Path] = None

    @property
    def title(self) -> Optional[str]:
        return self.summary.title if self.summary else None

    @property
    def published(self) -> bool:
        return self.page_id is not None

    @property
    def success(self) -> bool:
        return self.published or self.local_path is not None


def recording_path(settings: PipelineSettings) -> Path:
    """Unique WAV path for a new recording."""
    directory = Path(settings.scratch_dir or tempfile.gettempdir())
    directory.mkdir(parents=True, exist_ok=True)
    return directory / f"recording_{uuid.uuid4().hex}.wav"


def check_recording_size(path: PathLike, min_bytes: int) -> int:
    """
    Reject recordings too small to contain audio.

    The file is deleted when it is below min_bytes.

    Returns:
        File size in bytes

    Raises:
        CaptureError: If the file is missing or too small
    """
    path = Path(path)
    if not path.exists():
        raise CaptureError("Recording file was not created.")

    size = path.stat().st_size
    if size < min_bytes:
        path.unlink()
        raise CaptureError("Recording is too short or no audio was captured.")
    return size


def prepare_recording(
    recording: RecordingResult, output_path: PathLike, min_bytes: int = 0, cleanup_sources: bool = True
) -> Path:
    """
    Turn the captured files into the single recording to transcribe.

    In BOTH mode the microphone and system files are mixed into output_path;
    a failed mix falls back to one of the sources. The captured files are
    deleted after a successful mix unless cleanup_sources is false.
    """
    if recording.mode is RecordingMode.BOTH and recording.mic_path and recording.system_path:
        logger.info("Mixing microphone and system audio...")
        path = mix_wav_files(recording.mic_path, recording.system_path, output_path, cleanup_sources)
    elif recording.paths:
        path = recording.paths[0]
    else:
        raise CaptureError("Recording file was not created.")

    size = check_recording_size(path, min_bytes)
    logger.info(f"Recording saved: {Path(path).name} ({format_size(size)})")
    return Path(path)


class TranscriptionPipeline:
    """Transcribes a recording and hands the result to the summary and publishing adapters."""

    def __init__(
        self,
        transcriber: Transcriber,
        settings: Optional[PipelineSettings] = None,
        summarizer: Optional[TranscriptSummarizer] = None,
        publisher: Optional[NotionPublisher] = None,
        rate_limiter: Optional[RateLimiter] = None,
        orchestrator_factory: Optional[Callable[..., TranscriptionOrchestrator]] = None,
    ):
        self.transcriber = transcriber
        self.settings = settings or PipelineSettings()
        self.summarizer = summarizer
        self.publisher = publisher
        self.rate_limiter = rate_limiter
        self.orchestrator_factory = orchestrator_factory or TranscriptionOrchestrator

    def process_file(self, audio_path: PathLike, language: Optional[str] = None) -> RunResult:
        """
        Transcribe, summarize, publish and save one recording.

        Args:
            audio_path: Recording to process
            language: Language code, or None for the configured language

        Returns:
            RunResult; success is true when the transcript was published or saved

        Raises:
            FileNotFoundError: If the recording does not exist
            SegmentationError: If a large recording cannot be split
        """
        start_time = time.time()
        language = language or self.settings.language
        result = RunResult()

        orchestrator = self.orchestrator_factory(
            self.transcriber, settings=self.settings, rate_limiter=self.rate_limiter
        )
        transcript = orchestrator.run(audio_path, language=language)
        result.transcript = transcript
        result.state = orchestrator.state

        text = transcript.text
        if not text.strip():
            logger.error("No transcription generated")
            return result

        if result.state is OrchestratorState.ABORTED:
            logger.warning("Transcription stopped early, keeping the partial transcript")

        result.summary = self._summarize(text, language)
        title = result.title
        content = result.summary.content if result.summary else None

        if self.publisher is not None:
            try:
                result.page_id = self.publisher.publish(text, content, title)
            except PublishError as e:
                logger.warning(f"Failed to publish to Notion: {e}")
        else:
            logger.info("Notion is not configured, skipping publishing")

        try:
            result.local_path = save_transcript(
                text, self.settings.output_dir, source=Path(audio_path).name, summary=content, title=title
            )
        except OSError as e:
            logger.error(f"Failed to save transcript locally: {e}")

        logger.info(f"Processing finished in {time.time() - start_time:.2f} seconds (success: {result.success})")
        return result

    def _summarize(self, text: str, language: str) -> Optional[Summary]:
        if self.summarizer is None:
            return None

        try:
            summary = self.summarizer.summarize(text, language)
        except (SummarizationError, ValueError) as e:
            logger.warning(f"Summary generation failed: {e}")
            return None

        logger.info(f"Generated title: {summary.title}")
        return summary
