"""Summary generation, Notion pages and local transcript files."""

from .local import format_transcript_file, save_transcript
from .notion import NotionPublisher, split_text
from .summarizer import Summary, TranscriptSummarizer

__all__ = [
    "format_transcript_file",
    "save_transcript",
    "NotionPublisher",
    "split_text",
    "Summary",
    "TranscriptSummarizer",
]
