"""
Per-segment transcription results and their assembly into one transcript.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class FragmentStatus(Enum):
    """Outcome of transcribing one segment."""

    OK = "ok"
    EMPTY = "empty"
    FAILED = "failed"
    RATE_LIMITED = "rate_limited"


@dataclass
class TranscriptFragment:
    """Transcription result for one segment."""

    segment_index: int
    text: str = ""
    status: FragmentStatus = FragmentStatus.OK
    reason: Optional[str] = None

    def render(self) -> List[str]:
        """Lines contributed to the assembled transcript."""
        n = self.segment_index
        if self.status is FragmentStatus.OK:
            return [f"[Segment {n}]", self.text.strip(), ""]
        if self.status is FragmentStatus.EMPTY:
            return [f"[Segment {n}] - No speech detected", ""]
        if self.status is FragmentStatus.FAILED:
            return [f"[Segment {n}] - Transcription failed: {self.reason}", ""]
        return [
            f"[Segment {n}] - STOPPED: Rate limit exceeded",
            f"[Note: Processing stopped at segment {n} due to quota limits]",
            "",
        ]


@dataclass
class Transcript:
    """
    Ordered fragments of one run.

    A segmented transcript renders every fragment with its "[Segment N]"
    marker. A single-request transcript renders the bare text.
    """

    fragments: List[TranscriptFragment] = field(default_factory=list)
    segmented: bool = True
    total_segments: int = 0

    def add(self, fragment: TranscriptFragment):
        self.fragments.append(fragment)

    @property
    def text(self) -> str:
        if not self.segmented:
            ok = [f.text.strip() for f in self.fragments if f.status is FragmentStatus.OK]
            return "\n".join(ok).strip()

        lines = []
        for fragment in self.fragments:
            lines.extend(fragment.render())
        return "\n".join(lines).strip()

    @property
    def completed_segments(self) -> int:
        return sum(1 for f in self.fragments if f.status in (FragmentStatus.OK, FragmentStatus.EMPTY))

    @property
    def stopped_early(self) -> bool:
        return any(f.status is FragmentStatus.RATE_LIMITED for f in self.fragments)

    @property
    def has_speech(self) -> bool:
        return any(f.status is FragmentStatus.OK for f in self.fragments)

    def __str__(self) -> str:
        return self.text
