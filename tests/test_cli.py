import wave
from pathlib import Path

import pytest

from meetscribe import cli
from meetscribe.config import PipelineSettings
from meetscribe.pipeline import TranscriptionPipeline


def _write_silence_wav(path: Path, *, seconds: float = 0.5, sample_rate: int = 16000) -> Path:
    with wave.open(str(path), "wb") as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(2)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(b"\x00\x00" * int(seconds * sample_rate))
    return path


class _EchoTranscriber:
    def transcribe(self, audio, filename="audio.wav", content_type="audio/wav", language=None):
        return f"transcribed {filename} ({language})"


def _fake_pipeline(settings: PipelineSettings) -> TranscriptionPipeline:
    return TranscriptionPipeline(_EchoTranscriber(), settings=settings)


@pytest.fixture
def local_settings(tmp_path, monkeypatch):
    monkeypatch.setenv("COMPRESS_BEFORE_UPLOAD", "false")
    monkeypatch.setenv("SEGMENT_DELAY_SECONDS", "0")
    monkeypatch.setenv("SCRATCH_DIR", str(tmp_path))
    monkeypatch.setattr(cli, "build_pipeline", _fake_pipeline)


def test_process_saves_transcript(tmp_path, local_settings, capsys):
    audio = _write_silence_wav(tmp_path / "call.wav")
    out_dir = tmp_path / "out"

    code = cli.main(["--output-dir", str(out_dir), "process", str(audio), "--language", "th"])

    assert code == 0
    saved = list(out_dir.glob("Transcript-*.txt"))
    assert len(saved) == 1
    assert "transcribed call.wav (th)" in saved[0].read_text(encoding="utf-8")
    assert "Processing completed successfully!" in capsys.readouterr().out


def test_process_mixes_system_file_and_keeps_inputs(tmp_path, local_settings):
    mic = _write_silence_wav(tmp_path / "mic.wav")
    system = _write_silence_wav(tmp_path / "system.wav", sample_rate=48000)

    code = cli.main(["--output-dir", str(tmp_path / "out"), "process", str(mic), "--system", str(system)])

    assert code == 0
    assert (tmp_path / "mic_mixed.wav").exists()
    assert mic.exists() and system.exists()


def test_missing_file_exits_with_error(tmp_path, local_settings, capsys):
    code = cli.main(["process", str(tmp_path / "nothing.wav")])

    assert code == 1
    assert "Error:" in capsys.readouterr().err


def test_missing_credentials_exit_with_error(tmp_path, monkeypatch, capsys):
    monkeypatch.delenv("TRANSCRIPTION_ENDPOINT_URL", raising=False)
    monkeypatch.delenv("TRANSCRIPTION_API_KEY", raising=False)
    audio = _write_silence_wav(tmp_path / "call.wav")

    code = cli.main(["process", str(audio)])

    assert code == 1
    assert "TRANSCRIPTION_ENDPOINT_URL" in capsys.readouterr().err


def test_command_is_required():
    with pytest.raises(SystemExit):
        cli.main([])
