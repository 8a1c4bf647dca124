"""
Command line entry point.

Usage:
    meetscribe record [--mode both|microphone|system] [--language th|en|auto] [--microphone INDEX]
    meetscribe process FILE [--system FILE] [--language th|en|auto]
    meetscribe devices
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .audio.capture import AudioRecorder, RecordingResult
from .audio.models import RecordingMode
from .audio.monitor import ProgressReporter, RecordingSession
from .audio.utils import categorize_devices
from .config import ConfigManager, PipelineSettings, configure_logging, validate_credentials
from .errors import MeetscribeError
from .pipeline import TranscriptionPipeline, prepare_recording, recording_path
from .publishing.notion import NotionPublisher
from .publishing.summarizer import TranscriptSummarizer
from .transcription.client import WhisperClient

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="meetscribe", description="Record, transcribe and summarize meetings")
    parser.add_argument("--log-level", help="Logging level (default: LOG_LEVEL or INFO)")
    parser.add_argument("--output-dir", help="Directory for the local transcript copy")
    subparsers = parser.add_subparsers(dest="command", required=True)

    record = subparsers.add_parser("record", help="Record until Enter is pressed, then transcribe")
    record.add_argument("--mode", help="both, microphone or system (default: RECORDING_MODE)")
    record.add_argument("--language", help="th, en or auto (default: RECORDING_LANGUAGE)")
    record.add_argument("--microphone", type=int, help="Input device index for the microphone")

    process = subparsers.add_parser("process", help="Transcribe an existing recording")
    process.add_argument("file", help="Recording to transcribe (or the microphone file with --system)")
    process.add_argument("--system", help="System audio file to mix with FILE")
    process.add_argument("--language", help="th, en or auto (default: RECORDING_LANGUAGE)")

    subparsers.add_parser("devices", help="List audio input devices")
    return parser


def build_pipeline(settings: PipelineSettings) -> TranscriptionPipeline:
    """Wire the configured transcription, summary and Notion adapters."""
    validate_credentials()
    summarizer = TranscriptSummarizer.from_config()
    if summarizer is None:
        logger.info("Summary API is not configured, transcripts will not be summarized")
    return TranscriptionPipeline(
        WhisperClient.from_config(),
        settings=settings,
        summarizer=summarizer,
        publisher=NotionPublisher.from_config(),
    )


def _microphone_index(value: Optional[int]) -> Optional[int]:
    if value is not None:
        return value
    configured = ConfigManager.get("RECORDING_MICROPHONE")
    return ConfigManager.get_int("RECORDING_MICROPHONE") if configured else None


def record(args, settings: PipelineSettings) -> int:
    pipeline = build_pipeline(settings)
    mode = RecordingMode.parse(ConfigManager.get("RECORDING_MODE", args.mode))
    output_path = recording_path(settings)

    session = RecordingSession(mode)
    recorder = AudioRecorder()
    recorder.start(session, output_path, microphone_index=_microphone_index(args.microphone))

    print(f"Recording {mode.description}... Press [Enter] to stop.")
    reporter = ProgressReporter(session)
    reporter.start()
    try:
        input()
    except (EOFError, KeyboardInterrupt):
        pass
    finally:
        recording = recorder.stop()
        reporter.join(timeout=1.0)

    print(f"Recording stopped after {session.elapsed():.1f} seconds")
    audio_path = prepare_recording(recording, output_path, settings.min_recording_bytes)
    return _report(pipeline.process_file(audio_path, settings.language))


def process(args, settings: PipelineSettings) -> int:
    pipeline = build_pipeline(settings)
    audio_path = Path(args.file)
    if args.system:
        recording = RecordingResult(mode=RecordingMode.BOTH, mic_path=audio_path, system_path=Path(args.system))
        mixed = audio_path.with_name(f"{audio_path.stem}_mixed.wav")
        audio_path = prepare_recording(recording, mixed, cleanup_sources=False)
    return _report(pipeline.process_file(audio_path, settings.language))


def devices(args, settings: PipelineSettings) -> int:
    groups = categorize_devices(AudioRecorder().list_devices())
    for label, key in (("Input devices", "input"), ("Loopback devices", "loopback")):
        print(f"{label}:")
        for device in groups[key]:
            print(f"  [{device['index']}] {device['name']} ({int(device['defaultSampleRate'])} Hz)")
    return 0


def _report(result) -> int:
    if result.transcript is not None:
        print(f"\nTranscript: {len(result.transcript.text)} characters")
    if result.published:
        print("Transcript published to Notion")
    if result.local_path is not None:
        print(f"Transcript saved to: {result.local_path}")
    if result.success:
        print("Processing completed successfully!")
        return 0
    print("Processing failed: the transcript was neither published nor saved")
    return 1


COMMANDS = {"record": record, "process": process, "devices": devices}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        settings = PipelineSettings.from_config(
            language=getattr(args, "language", None), output_dir=args.output_dir
        )
        return COMMANDS[args.command](args, settings)
    except (MeetscribeError, FileNotFoundError) as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
