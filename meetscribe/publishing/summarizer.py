"""
Transcript summarization using the OpenAI API.

This module generates a title and detailed markdown notes from a finished
transcript using OpenAI's chat models (directly or through Azure OpenAI).
Uses lazy loading to avoid unnecessary API initialization during module import.

Key features:
- Lazy loading of the OpenAI client
- Azure OpenAI or OpenAI endpoints, selected from configuration
- Language-specific prompts (Thai, English, or auto-detect)
- Tagged parsing of the model reply: plain text or a structured JSON object
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from ..config import ConfigManager
from ..errors import ConfigurationError, SummarizationError

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled"
FALLBACK_TITLE = "AI Generated Topic"

SYSTEM_PROMPTS = {
    "th": (
        "คุณคือผู้ช่วยที่เชี่ยวชาญในการวิเคราะห์และจัดระเบียบข้อความภาษาไทย "
        'กรุณาตอบในรูปแบบ JSON ที่มี "title" (string) และ "detailed_content" (string ในรูปแบบ Markdown)'
    ),
    "en": (
        "You are an expert content analysis and organization assistant. Analyze the text and respond "
        'in JSON format with "title" (string) and "detailed_content" (markdown-formatted string) fields.'
    ),
    "auto": (
        "You are an expert content analysis and organization assistant. Analyze the text and respond "
        'in JSON format with "title" (string) and "detailed_content" (markdown-formatted string) fields. '
        "Detect the language and respond in the same language as the input."
    ),
}

USER_PROMPT = """Analyze this text and create:
1. A descriptive title that reflects the main topic (as a simple string)
2. Detailed, well-formatted content in Markdown format including:
   - Main points and sub-points organized by topic with ## or ### headers
   - Markdown formatting like bullet points (-) and numbers (1.)
   - Key information and important details
   - Connections between different topics
{language_note}
Respond in JSON format (both title and detailed_content must be simple strings, not objects):
{{
  "title": "Descriptive Title",
  "detailed_content": "## Main Topic\\n\\n- Key point 1\\n- Key point 2"
}}

Text:
{text}"""

LANGUAGE_NOTES = {
    "th": "Write the title and content in Thai.\n",
    "en": "",
    "auto": "Use the same language as the input text.\n",
}


@dataclass(frozen=True)
class PlainText:
    """Model reply that is free text."""

    text: str


@dataclass(frozen=True)
class Structured:
    """Model reply that is a JSON object."""

    data: Mapping[str, Any]


SummaryPayload = Union[PlainText, Structured]


@dataclass(frozen=True)
class Summary:
    title: str
    content: str


def _strip_fences(text: str) -> str:
    return text.replace("```json", "").replace("```", "").strip()


def parse_payload(content: Any) -> SummaryPayload:
    """
    Classify a model reply by its shape.

    A mapping is structured. A string is structured only when, after removing
    code fences, it contains a brace-delimited JSON object; anything else is
    plain text.
    """
    if isinstance(content, Mapping):
        return Structured(content)

    text = _strip_fences(str(content or ""))
    first, last = text.find("{"), text.rfind("}")
    if first < 0 or last <= first:
        return PlainText(text)

    try:
        data = json.loads(text[first : last + 1])
    except json.JSONDecodeError:
        return PlainText(text)
    return Structured(data) if isinstance(data, dict) else PlainText(text)


def render_markdown(value: Any, indent: int = 0) -> str:
    """Render nested JSON values as readable markdown bullets."""
    pad = "  " * indent
    lines = []
    if isinstance(value, Mapping):
        for key, item in value.items():
            lines.append(f"{pad}**{key}:**")
            lines.append(render_markdown(item, indent + 1))
            lines.append("")
    elif isinstance(value, list):
        for item in value:
            lines.append(render_markdown(item, indent))
    elif isinstance(value, str):
        lines.append(f"{pad}{value}" if value.startswith("- ") else f"{pad}- {value}")
    else:
        lines.append(f"{pad}- {json.dumps(value, ensure_ascii=False)}")
    return "\n".join(lines).rstrip()


def clean_summary_text(text: str) -> str:
    """Remove leftover JSON quoting and escape sequences from model text."""
    if not text or not text.strip():
        return ""
    text = _strip_fences(text)
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        text = text[1:-1]
    text = text.replace('\\"', '"').replace("\\n", "\n").replace("\\r", "\r").replace("\\t", "\t")
    return text.strip()


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return clean_summary_text(value)
    return render_markdown(value)


def resolve_summary(payload: SummaryPayload) -> Summary:
    """Turn a classified model reply into a title and content."""
    if isinstance(payload, Structured):
        data = payload.data
        if "title" in data and ("detailed_content" in data or "summary" in data):
            body = data["detailed_content"] if "detailed_content" in data else data["summary"]
            return Summary(title=_as_text(data["title"]) or DEFAULT_TITLE, content=_as_text(body))

        logger.warning(f"No recognized JSON structure found (keys: {', '.join(map(str, data))})")
        return Summary(title=FALLBACK_TITLE, content=render_markdown(dict(data)))

    cleaned = clean_summary_text(payload.text)
    lines = [line for line in cleaned.split("\n") if line.strip()]
    if not lines:
        return Summary(title=FALLBACK_TITLE, content="")
    title = re.sub(r"^#+\s*", "", lines[0]).strip()
    content = "\n".join(lines[1:]).strip() if len(lines) > 1 else cleaned
    return Summary(title=title or FALLBACK_TITLE, content=content)


class TranscriptSummarizer:
    """
    Handle transcript summarization using the OpenAI API.

    Generates a title and detailed, topic-organized notes from a transcript.
    Uses lazy loading to avoid unnecessary API initialization.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        endpoint_url: Optional[str] = None,
        api_version: Optional[str] = None,
        client: Any = None,
    ):
        """
        Initialize summarizer.

        Args:
            api_key: API authentication key
            model: Model (or Azure deployment) name
            endpoint_url: Azure OpenAI endpoint or OpenAI-compatible base URL; None for api.openai.com
            api_version: Azure OpenAI API version, used when the endpoint is an Azure endpoint
            client: Preconfigured OpenAI client (skips lazy loading)
        """
        self.api_key = api_key
        self.model = model
        self.endpoint_url = endpoint_url
        self.api_version = api_version
        self.client = client

    @classmethod
    def from_config(cls) -> Optional["TranscriptSummarizer"]:
        """Build a summarizer from configuration, or None when it is not configured."""
        api_key = ConfigManager.get("SUMMARY_API_KEY")
        if not api_key:
            return None
        return cls(
            api_key=api_key,
            model=ConfigManager.get("SUMMARY_MODEL"),
            endpoint_url=ConfigManager.get("SUMMARY_ENDPOINT_URL") or None,
            api_version=ConfigManager.get("SUMMARY_API_VERSION"),
        )

    def _load_client(self):
        """
        Lazy load the OpenAI client.

        Imports the OpenAI package only when a summary is requested.
        """
        if self.client is not None:
            return self.client

        if not self.api_key:
            raise ConfigurationError("Summary API key not configured")

        from openai import AzureOpenAI, OpenAI

        if self.endpoint_url and ".azure.com" in self.endpoint_url:
            self.client = AzureOpenAI(
                api_key=self.api_key, azure_endpoint=self.endpoint_url, api_version=self.api_version
            )
        else:
            self.client = OpenAI(api_key=self.api_key, base_url=self.endpoint_url or None)
        logger.info(f"OpenAI client loaded (model: {self.model})")
        return self.client

    def _messages(self, text: str, language: str) -> list:
        key = language if language in SYSTEM_PROMPTS else "auto"
        return [
            {"role": "system", "content": SYSTEM_PROMPTS[key]},
            {"role": "user", "content": USER_PROMPT.format(language_note=LANGUAGE_NOTES[key], text=text)},
        ]

    def summarize(self, transcript_text: str, language: str = "auto") -> Summary:
        """
        Generate a title and detailed content from transcript text.

        Args:
            transcript_text: Full transcript text to summarize
            language: Language hint ('th', 'en' or 'auto')

        Returns:
            Summary with title and markdown content

        Raises:
            ValueError: If the transcript is empty
            SummarizationError: If the API call fails or returns no content
        """
        if not transcript_text or not transcript_text.strip():
            raise ValueError("Text cannot be empty")

        language = (language or "auto").lower()

        logger.info(f"Generating summary using {self.model}...")
        try:
            client = self._load_client()
            response = client.chat.completions.create(
                model=self.model,
                messages=self._messages(transcript_text, language),
                max_tokens=1500,
                temperature=0.3,
                top_p=1.0,
                response_format={"type": "json_object"},
            )
        except Exception as e:
            raise SummarizationError(f"Failed to generate summary: {e}") from e

        if not response.choices:
            raise SummarizationError("Unexpected response format from summary API")

        content = response.choices[0].message.content
        summary = resolve_summary(parse_payload(content))
        logger.info("Summary generated successfully")
        return summary
