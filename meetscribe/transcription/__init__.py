"""Sequential, rate-limit-aware transcription of recordings."""

from .client import WhisperClient, classify_response
from .orchestrator import OrchestratorState, TranscriptionOrchestrator
from .rate_limiter import FixedIntervalLimiter, NoDelayLimiter, RateLimiter
from .transcript import FragmentStatus, Transcript, TranscriptFragment

__all__ = [
    "WhisperClient",
    "classify_response",
    "OrchestratorState",
    "TranscriptionOrchestrator",
    "FixedIntervalLimiter",
    "NoDelayLimiter",
    "RateLimiter",
    "FragmentStatus",
    "Transcript",
    "TranscriptFragment",
]
