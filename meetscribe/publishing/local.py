"""Local plain-text copy of each transcript."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..audio.utils import PathLike

logger = logging.getLogger(__name__)

RULE = "─" * 50
DOUBLE_RULE = "═" * 50


def format_transcript_file(
    transcript: str,
    source: Optional[PathLike] = None,
    summary: Optional[str] = None,
    title: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """Render the text file: header, optional title and summary, full transcript."""
    now = now or datetime.now()
    lines = [f"=== Audio Transcription - {now:%Y-%m-%d %H:%M:%S} ==="]
    if source is not None:
        lines.append(f"Source file: {source}")
    if title and title.strip():
        lines.append(f"Title: {title.strip()}")
    lines.append("")

    if summary and summary.strip():
        lines += ["📝 SUMMARY:", RULE, summary.strip(), "", DOUBLE_RULE, ""]

    lines += ["📄 FULL TRANSCRIPT:", RULE, transcript, ""]
    return "\n".join(lines)


def save_transcript(
    transcript: str,
    output_dir: PathLike = ".",
    source: Optional[PathLike] = None,
    summary: Optional[str] = None,
    title: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Path:
    """
    Write Transcript-YYYYMMDD-HHMMSS.txt into output_dir.

    An existing file is never overwritten: a second run in the same second
    gets Transcript-YYYYMMDD-HHMMSS-2.txt, and so on.

    Returns:
        Absolute path of the written file
    """
    now = now or datetime.now()
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    content = format_transcript_file(transcript, source, summary, title, now)
    stem = f"Transcript-{now:%Y%m%d-%H%M%S}"
    attempt = 1
    while True:
        path = output_dir / (f"{stem}.txt" if attempt == 1 else f"{stem}-{attempt}.txt")
        try:
            with open(path, "x", encoding="utf-8") as f:
                f.write(content)
            break
        except FileExistsError:
            attempt += 1

    logger.info(f"Transcript saved to: {path.resolve()}")
    return path.resolve()
