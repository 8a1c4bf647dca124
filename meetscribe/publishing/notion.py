"""
Publishing of transcripts as Notion database pages.

Notion limits a rich text object to 2000 characters and a request to 100
child blocks, so long texts are split into paragraph blocks and blocks
beyond the first request are appended in batches.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests
from requests.exceptions import RequestException

from ..config import ConfigManager
from ..errors import ConfigurationError, PublishError

logger = logging.getLogger(__name__)

NOTION_API_URL = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"
MAX_TEXT_LENGTH = 2000
MAX_BLOCKS_PER_REQUEST = 100

_SENTENCE_END = re.compile(r"(?<=[.?!。])\s+")


def _hard_split(text: str, max_size: int) -> List[str]:
    return [text[i : i + max_size] for i in range(0, len(text), max_size)]


def _pack(pieces: List[str], separator: str, max_size: int) -> List[str]:
    """Greedily join pieces with separator into chunks no longer than max_size."""
    chunks = []
    current = ""
    for piece in pieces:
        if len(piece) > max_size:
            if current:
                chunks.append(current)
                current = ""
            chunks.extend(_hard_split(piece, max_size))
            continue
        candidate = f"{current}{separator}{piece}" if current else piece
        if len(candidate) > max_size:
            chunks.append(current)
            current = piece
        else:
            current = candidate
    if current:
        chunks.append(current)
    return chunks


def split_text(text: str, max_size: int = MAX_TEXT_LENGTH) -> List[str]:
    """
    Split text into chunks of at most max_size characters.

    Paragraph boundaries are preferred, then sentence boundaries, then words;
    a single word longer than max_size is cut.
    """
    text = (text or "").strip()
    if not text:
        return []

    pieces = []
    for paragraph in re.split(r"\r?\n\r?\n", text):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        if len(paragraph) <= max_size:
            pieces.append(paragraph)
            continue
        sentences = []
        for sentence in _SENTENCE_END.split(paragraph):
            if len(sentence) <= max_size:
                sentences.append(sentence)
            else:
                sentences.extend(_pack(sentence.split(" "), " ", max_size))
        pieces.extend(_pack(sentences, " ", max_size))

    chunks = _pack(pieces, "\n\n", max_size)
    logger.debug(f"Split text ({len(text)} chars) into {len(chunks)} chunks")
    return chunks


def _rich_text(content: str) -> List[Dict[str, Any]]:
    return [{"type": "text", "text": {"content": content}}]


def _block(block_type: str, content: Optional[str] = None) -> Dict[str, Any]:
    body = {"rich_text": _rich_text(content)} if content is not None else {}
    return {"object": "block", "type": block_type, block_type: body}


def build_blocks(transcript: str, summary: Optional[str] = None, title: Optional[str] = None) -> List[Dict[str, Any]]:
    """Build the page body: title heading, optional summary section, full transcript."""
    blocks = []
    if title and title.strip():
        blocks.append(_block("heading_1", title.strip()[:MAX_TEXT_LENGTH]))
        blocks.append(_block("divider"))

    if summary and summary.strip():
        blocks.append(_block("heading_2", "📝 Summary"))
        blocks.extend(_block("paragraph", chunk) for chunk in split_text(summary))
        blocks.append(_block("divider"))

    blocks.append(_block("heading_2", "📄 Full Transcript"))
    blocks.extend(_block("paragraph", chunk) for chunk in split_text(transcript))
    return blocks


class NotionPublisher:
    """Creates one Notion page per transcript."""

    def __init__(self, api_token: str, database_id: str, base_url: str = NOTION_API_URL, timeout: float = 60):
        if not api_token:
            raise ConfigurationError("Notion API token not configured")
        if not database_id:
            raise ConfigurationError("Notion database ID not configured")

        self.database_id = database_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {api_token}",
                "Notion-Version": NOTION_VERSION,
                "Content-Type": "application/json",
            }
        )

    @classmethod
    def from_config(cls) -> Optional["NotionPublisher"]:
        """Build a publisher from configuration, or None when Notion is not configured."""
        token = ConfigManager.get("NOTION_API_TOKEN")
        database_id = ConfigManager.get("NOTION_DATABASE_ID")
        if not token or not database_id:
            return None
        return cls(api_token=token, database_id=database_id)

    def _request(self, method: str, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
        except RequestException as e:
            raise PublishError(f"Notion request failed: {e}") from e
        if not response.ok:
            raise PublishError(f"Notion API request failed with status {response.status_code}: {response.text[:500]}")
        try:
            body = response.json()
        except ValueError as e:
            raise PublishError(f"Notion returned a non-JSON reply (status {response.status_code})") from e
        if not isinstance(body, dict):
            raise PublishError(f"Unexpected Notion reply: {str(body)[:200]}")
        return body

    def publish(self, transcript: str, summary: Optional[str] = None, title: Optional[str] = None) -> str:
        """
        Create a page holding the transcript.

        Args:
            transcript: Assembled transcript text (any length)
            summary: Optional summary shown above the transcript
            title: Page title; defaults to "Transcription - <date time>"

        Returns:
            ID of the created page

        Raises:
            PublishError: If any Notion request fails
        """
        now = datetime.now()
        page_title = title.strip() if title and title.strip() else f"Transcription - {now:%Y-%m-%d %H:%M}"
        blocks = build_blocks(transcript, summary, page_title)

        payload = {
            "parent": {"database_id": self.database_id},
            "properties": {
                "Name": {"title": _rich_text(page_title[:MAX_TEXT_LENGTH])},
                "Date": {"date": {"start": datetime.now(timezone.utc).isoformat(timespec="milliseconds")}},
            },
            "children": blocks[:MAX_BLOCKS_PER_REQUEST],
        }

        logger.info("Creating page in Notion...")
        page = self._request("POST", f"{self.base_url}/pages", payload)
        page_id = page.get("id")
        if not page_id:
            raise PublishError("Notion did not return a page ID")

        remaining = blocks[MAX_BLOCKS_PER_REQUEST:]
        for start in range(0, len(remaining), MAX_BLOCKS_PER_REQUEST):
            batch = remaining[start : start + MAX_BLOCKS_PER_REQUEST]
            self._request("PATCH", f"{self.base_url}/blocks/{page_id}/children", {"children": batch})

        logger.info(f"Page created successfully in Notion: {page_title}")
        return page_id
