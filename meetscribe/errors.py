"""
Exception hierarchy for the recording and transcription pipeline.

Errors are split by how far they propagate:
- Fatal before a run: ConfigurationError
- Fatal to a recording: CaptureError
- Fatal to a run: SegmentationError
- Fatal to the remaining segments only: RateLimitError
- Non-fatal (warning and continue): MixError, EncodingError,
  TranscriptionSegmentError, SummarizationError, PublishError
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Classification of a failed transcription request."""

    RATE_LIMITED = "rate_limited"
    HTTP = "http"
    TRANSPORT = "transport"
    INVALID_RESPONSE = "invalid_response"


class MeetscribeError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(MeetscribeError):
    """Required configuration is missing or malformed."""


class CaptureError(MeetscribeError):
    """Recording failed or produced no usable audio."""


class MixError(MeetscribeError):
    """Two audio streams could not be mixed."""


class SegmentationError(MeetscribeError):
    """A recording could not be split into usable segments."""


class EncodingError(MeetscribeError):
    """Lossy encoding of an audio segment failed."""


class TranscriptionError(MeetscribeError):
    """
    A transcription request failed.

    The transport layer sets ``kind`` so callers branch on a structured
    classification instead of inspecting the message.
    """

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.HTTP, status_code: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code

    @property
    def is_rate_limited(self) -> bool:
        return self.kind is ErrorKind.RATE_LIMITED


class RateLimitError(TranscriptionError):
    """The provider rejected the request because of rate or quota limits."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, kind=ErrorKind.RATE_LIMITED, status_code=status_code)


class TranscriptionSegmentError(TranscriptionError):
    """A single segment could not be transcribed."""


class SummarizationError(MeetscribeError):
    """Title and summary generation failed."""


class PublishError(MeetscribeError):
    """The transcript could not be published to the remote document store."""
