import wave
from pathlib import Path
from unittest.mock import MagicMock

import numpy as np
import pytest

from meetscribe import pipeline as pipeline_module
from meetscribe.audio.capture import RecordingResult
from meetscribe.audio.models import RecordingMode
from meetscribe.audio.utils import read_wav
from meetscribe.config import PipelineSettings
from meetscribe.errors import CaptureError, PublishError, RateLimitError, SummarizationError
from meetscribe.pipeline import TranscriptionPipeline, check_recording_size, prepare_recording
from meetscribe.publishing.notion import NotionPublisher
from meetscribe.publishing.summarizer import Summary, TranscriptSummarizer
from meetscribe.transcription.orchestrator import OrchestratorState
from meetscribe.transcription.rate_limiter import NoDelayLimiter


def _write_tone_wav(path: Path, *, seconds: float, sample_rate: int = 8000, channels: int = 1) -> Path:
    frames = int(seconds * sample_rate)
    tone = (np.sin(np.arange(frames) * 0.05) * 8000).astype("<i2")
    samples = np.repeat(tone, channels)
    with wave.open(str(path), "wb") as wav_file:
        wav_file.setnchannels(channels)
        wav_file.setsampwidth(2)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(samples.tobytes())
    return path


class _FakeTranscriber:
    def __init__(self, *replies) -> None:
        self.replies = list(replies)

    def transcribe(self, audio, filename="audio.wav", content_type="audio/wav", language=None):
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class _FakeSummarizer:
    def __init__(self, result) -> None:
        self.result = result
        self.calls = []

    def summarize(self, text, language="auto"):
        self.calls.append((text, language))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class _FakePublisher:
    def __init__(self, error: Exception = None) -> None:
        self.error = error
        self.calls = []

    def publish(self, transcript, summary=None, title=None):
        self.calls.append((transcript, summary, title))
        if self.error:
            raise self.error
        return "page-42"


def _settings(tmp_path: Path, **overrides) -> PipelineSettings:
    values = dict(
        upload_limit_bytes=1024 * 1024,
        segment_seconds=1.0,
        segment_delay_seconds=0,
        compress_before_upload=False,
        scratch_dir=str(tmp_path),
        output_dir=str(tmp_path / "transcripts"),
    )
    values.update(overrides)
    return PipelineSettings(**values)


def test_successful_run_publishes_and_saves(tmp_path):
    audio = _write_tone_wav(tmp_path / "meeting.wav", seconds=0.5)
    summarizer = _FakeSummarizer(Summary(title="Design review", content="## Decisions"))
    publisher = _FakePublisher()
    pipeline = TranscriptionPipeline(
        _FakeTranscriber("we agreed on the API"), _settings(tmp_path), summarizer=summarizer, publisher=publisher
    )

    result = pipeline.process_file(audio, language="en")

    assert result.success
    assert result.published
    assert result.title == "Design review"
    assert result.state is OrchestratorState.DONE
    assert summarizer.calls == [("we agreed on the API", "en")]
    assert publisher.calls == [("we agreed on the API", "## Decisions", "Design review")]
    saved = result.local_path.read_text(encoding="utf-8")
    assert "Source file: meeting.wav" in saved
    assert "## Decisions" in saved


def test_publish_failure_still_saves_locally(tmp_path):
    audio = _write_tone_wav(tmp_path / "meeting.wav", seconds=0.5)
    pipeline = TranscriptionPipeline(
        _FakeTranscriber("text"), _settings(tmp_path), publisher=_FakePublisher(PublishError("401"))
    )

    result = pipeline.process_file(audio)

    assert not result.published
    assert result.local_path is not None
    assert result.success


def test_summary_failure_is_not_fatal(tmp_path):
    audio = _write_tone_wav(tmp_path / "meeting.wav", seconds=0.5)
    publisher = _FakePublisher()
    pipeline = TranscriptionPipeline(
        _FakeTranscriber("text"),
        _settings(tmp_path),
        summarizer=_FakeSummarizer(SummarizationError("model overloaded")),
        publisher=publisher,
    )

    result = pipeline.process_file(audio)

    assert result.summary is None
    assert publisher.calls == [("text", None, None)]
    assert result.success


def test_empty_transcript_is_a_failed_run(tmp_path):
    audio = _write_tone_wav(tmp_path / "meeting.wav", seconds=0.5)
    publisher = _FakePublisher()
    pipeline = TranscriptionPipeline(_FakeTranscriber("   "), _settings(tmp_path), publisher=publisher)

    result = pipeline.process_file(audio)

    assert not result.success
    assert publisher.calls == []
    assert not (tmp_path / "transcripts").exists()


def test_run_fails_when_nothing_is_kept(tmp_path, monkeypatch):
    audio = _write_tone_wav(tmp_path / "meeting.wav", seconds=0.5)

    def _disk_full(*args, **kwargs):
        raise OSError("No space left on device")

    monkeypatch.setattr(pipeline_module, "save_transcript", _disk_full)
    pipeline = TranscriptionPipeline(
        _FakeTranscriber("text"), _settings(tmp_path), publisher=_FakePublisher(PublishError("down"))
    )

    result = pipeline.process_file(audio)

    assert not result.success


def test_rate_limited_run_saves_partial_transcript(tmp_path, monkeypatch):
    audio = _write_tone_wav(tmp_path / "meeting.wav", seconds=3.0)
    pipeline = TranscriptionPipeline(
        _FakeTranscriber("opening remarks", RateLimitError("429", status_code=429)),
        _settings(tmp_path, upload_limit_bytes=1000),
        rate_limiter=NoDelayLimiter(),
    )
    # segments fall back to WAV without ffmpeg
    monkeypatch.setattr("shutil.which", lambda name: None)

    result = pipeline.process_file(audio)

    assert result.state is OrchestratorState.ABORTED
    assert result.success
    saved = result.local_path.read_text(encoding="utf-8")
    assert "opening remarks" in saved
    assert "[Note: Processing stopped at segment 2 due to quota limits]" in saved


def test_small_recording_is_rejected_and_deleted(tmp_path):
    path = tmp_path / "tiny.wav"
    path.write_bytes(b"\x00" * 100)

    with pytest.raises(CaptureError):
        check_recording_size(path, 10240)

    assert not path.exists()


def test_prepare_recording_mixes_both_inputs(tmp_path):
    mic = _write_tone_wav(tmp_path / "rec.mic.wav", seconds=1.0, sample_rate=16000)
    system = _write_tone_wav(tmp_path / "rec.system.wav", seconds=1.0, sample_rate=48000, channels=2)
    recording = RecordingResult(RecordingMode.BOTH, mic_path=mic, system_path=system)

    path = prepare_recording(recording, tmp_path / "rec.wav", min_bytes=10240)

    assert path == tmp_path / "rec.wav"
    assert not mic.exists()
    assert not system.exists()
    mixed = read_wav(path)
    assert (mixed.sample_rate, mixed.channels) == (48000, 2)


def test_prepare_recording_can_keep_sources(tmp_path):
    mic = _write_tone_wav(tmp_path / "mic.wav", seconds=0.5)
    system = _write_tone_wav(tmp_path / "system.wav", seconds=0.5)
    recording = RecordingResult(RecordingMode.BOTH, mic_path=mic, system_path=system)

    prepare_recording(recording, tmp_path / "mixed.wav", cleanup_sources=False)

    assert mic.exists()
    assert system.exists()


def test_prepare_recording_single_input(tmp_path):
    mic = _write_tone_wav(tmp_path / "rec.wav", seconds=1.0)
    recording = RecordingResult(RecordingMode.MICROPHONE, mic_path=mic)

    assert prepare_recording(recording, tmp_path / "unused.wav", min_bytes=10240) == mic


def test_non_json_notion_reply_still_saves_locally(tmp_path):
    audio = _write_tone_wav(tmp_path / "meeting.wav", seconds=0.5)
    publisher = NotionPublisher(api_token="secret_token", database_id="db-123")
    publisher.session = MagicMock()
    publisher.session.request.return_value.ok = True
    publisher.session.request.return_value.status_code = 200
    publisher.session.request.return_value.json.side_effect = ValueError("not json")
    pipeline = TranscriptionPipeline(_FakeTranscriber("text"), _settings(tmp_path), publisher=publisher)

    result = pipeline.process_file(audio)

    assert not result.published
    assert result.local_path is not None
    assert result.success


def test_summarizer_without_usable_client_is_not_fatal(tmp_path):
    audio = _write_tone_wav(tmp_path / "meeting.wav", seconds=0.5)
    publisher = _FakePublisher()
    pipeline = TranscriptionPipeline(
        _FakeTranscriber("text"), _settings(tmp_path), summarizer=TranscriptSummarizer(api_key=""), publisher=publisher
    )

    result = pipeline.process_file(audio)

    assert result.summary is None
    assert publisher.calls == [("text", None, None)]
    assert result.success
