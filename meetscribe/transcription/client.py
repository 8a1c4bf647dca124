"""
Client for the cloud speech-to-text endpoint.

This module uploads one audio payload per request to a Whisper-compatible
transcription endpoint (Azure OpenAI or OpenAI) and returns the text.

Failures are classified here, from the HTTP status and the JSON error code,
so callers can tell a rate or quota rejection apart from any other error
without inspecting messages.
"""

import logging
from typing import Any, Dict, Optional

import requests
from requests.exceptions import RequestException

from ..config import ConfigManager
from ..errors import (
    ConfigurationError,
    ErrorKind,
    RateLimitError,
    TranscriptionError,
    TranscriptionSegmentError,
)

logger = logging.getLogger(__name__)

QUOTA_ERROR_CODES = {"insufficient_quota", "quota_exceeded", "QuotaExceeded", "rate_limit_exceeded", "429"}
THAI_PROMPT = "นี่คือการบันทึกเสียงภาษาไทย"


def _error_code(response: requests.Response) -> Optional[str]:
    """Extract error.code from a JSON error body, if there is one."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict) and error.get("code") is not None:
        return str(error["code"])
    return None


def classify_response(response: requests.Response) -> TranscriptionError:
    """
    Build the error for a non-successful response.

    Args:
        response: Response with a 4xx/5xx status

    Returns:
        RateLimitError for HTTP 429 or a quota error code, otherwise
        TranscriptionSegmentError
    """
    status = response.status_code
    code = _error_code(response)
    message = f"Transcription request failed with status {status}: {response.text[:500]}"

    if status == 429 or code in QUOTA_ERROR_CODES:
        return RateLimitError(message, status_code=status)
    return TranscriptionSegmentError(message, kind=ErrorKind.HTTP, status_code=status)


class WhisperClient:
    """Client for a Whisper-compatible transcription endpoint."""

    def __init__(self, endpoint_url: str, api_key: str, auth: str = "api-key", timeout: float = 30 * 60):
        """
        Initialize the transcription client.

        Args:
            endpoint_url: Full URL of the audio transcription endpoint
            api_key: API key for the endpoint
            auth: 'api-key' (Azure header) or 'bearer' (OpenAI header)
            timeout: Request timeout in seconds; large uploads take a while
        """
        if not endpoint_url:
            raise ConfigurationError("Transcription endpoint URL not configured")
        if not api_key:
            raise ConfigurationError("Transcription API key not configured")

        self.endpoint_url = endpoint_url
        self.timeout = timeout
        self.session = requests.Session()
        if auth == "bearer":
            self.session.headers["Authorization"] = f"Bearer {api_key}"
        else:
            self.session.headers["api-key"] = api_key

    @classmethod
    def from_config(cls) -> "WhisperClient":
        return cls(
            endpoint_url=ConfigManager.get("TRANSCRIPTION_ENDPOINT_URL"),
            api_key=ConfigManager.get("TRANSCRIPTION_API_KEY"),
            auth=str(ConfigManager.get("TRANSCRIPTION_AUTH")).lower(),
        )

    def _form_data(self, language: Optional[str]) -> Dict[str, Any]:
        data = {"response_format": "verbose_json"}
        if language and language.lower() != "auto":
            lang_code = language.lower()
            data["language"] = lang_code
            logger.info(f"Forcing language to: {lang_code}")
            if lang_code == "th":
                data["prompt"] = THAI_PROMPT
        else:
            logger.info("Using auto-detect for language")
        return data

    def transcribe(
        self,
        audio: bytes,
        filename: str = "audio.wav",
        content_type: str = "audio/wav",
        language: Optional[str] = None,
    ) -> str:
        """
        Transcribe one audio payload.

        Args:
            audio: Encoded audio bytes
            filename: File name sent with the upload
            content_type: MIME type of the payload
            language: Language code to force, or None/'auto' to auto-detect

        Returns:
            Transcribed text (may be empty when no speech was detected)

        Raises:
            RateLimitError: If the provider rejected the request for rate or quota reasons
            TranscriptionSegmentError: For any other failure
        """
        files = {"file": (filename, audio, content_type)}
        data = self._form_data(language)

        logger.info(f"Sending {filename} ({len(audio) / (1024.0 * 1024.0):.2f} MB) for transcription...")
        try:
            response = self.session.post(self.endpoint_url, files=files, data=data, timeout=self.timeout)
        except RequestException as e:
            raise TranscriptionSegmentError(f"Transcription request failed: {e}", kind=ErrorKind.TRANSPORT) from e

        if not response.ok:
            raise classify_response(response)

        try:
            result = response.json()
        except ValueError as e:
            raise TranscriptionSegmentError(
                "Transcription response is not JSON", kind=ErrorKind.INVALID_RESPONSE
            ) from e

        if not isinstance(result, dict) or "text" not in result:
            raise TranscriptionSegmentError(
                "Unexpected response format from transcription API", kind=ErrorKind.INVALID_RESPONSE
            )

        detected = result.get("language")
        if detected:
            logger.info(f"Detected language: {detected}")
            if language and language.lower() != "auto" and str(detected).lower() != language.lower():
                logger.warning(f"Requested {language} but the service detected {detected}")

        text = result.get("text") or ""
        logger.info(f"Transcription length: {len(text)} characters")
        return text
