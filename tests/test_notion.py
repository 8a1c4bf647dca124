from unittest.mock import MagicMock

import pytest
import requests

from meetscribe.errors import ConfigurationError, PublishError
from meetscribe.publishing.notion import MAX_TEXT_LENGTH, NotionPublisher, build_blocks, split_text


def _ok(body):
    response = MagicMock()
    response.ok = True
    response.json.return_value = body
    return response


def _publisher() -> NotionPublisher:
    publisher = NotionPublisher(api_token="secret_token", database_id="db-123", base_url="https://notion.test/v1")
    publisher.session = MagicMock()
    return publisher


def test_short_text_is_one_chunk():
    assert split_text("  hello  ") == ["hello"]
    assert split_text("") == []


def test_chunks_never_exceed_limit():
    paragraphs = ["Sentence number %d is here." % i * 20 for i in range(40)]
    text = "\n\n".join(paragraphs)

    chunks = split_text(text)

    assert len(chunks) > 1
    assert all(len(chunk) <= MAX_TEXT_LENGTH for chunk in chunks)
    assert " ".join(chunks).split() == text.split()


def test_long_paragraph_splits_on_sentences():
    sentence = "This sentence is exactly as long as it needs to be. "
    text = (sentence * 100).strip()

    chunks = split_text(text, max_size=500)

    assert all(len(chunk) <= 500 for chunk in chunks)
    assert all(chunk.endswith(".") for chunk in chunks)


def test_unbroken_text_is_hard_split():
    chunks = split_text("x" * 5000)

    assert [len(chunk) for chunk in chunks] == [2000, 2000, 1000]


def test_blocks_include_summary_section():
    blocks = build_blocks("transcript text", summary="summary text", title="Standup")

    types = [block["type"] for block in blocks]
    assert types == ["heading_1", "divider", "heading_2", "paragraph", "divider", "heading_2", "paragraph"]
    assert blocks[2]["heading_2"]["rich_text"][0]["text"]["content"] == "📝 Summary"
    assert blocks[5]["heading_2"]["rich_text"][0]["text"]["content"] == "📄 Full Transcript"


def test_blocks_without_summary():
    types = [block["type"] for block in build_blocks("transcript text")]

    assert types == ["heading_2", "paragraph"]


def test_publish_creates_page():
    publisher = _publisher()
    publisher.session.request.return_value = _ok({"id": "page-1"})

    page_id = publisher.publish("Hello world", summary="Greeting", title="Call notes")

    assert page_id == "page-1"
    method, url = publisher.session.request.call_args.args
    payload = publisher.session.request.call_args.kwargs["json"]
    assert (method, url) == ("POST", "https://notion.test/v1/pages")
    assert payload["parent"] == {"database_id": "db-123"}
    assert payload["properties"]["Name"]["title"][0]["text"]["content"] == "Call notes"
    assert "Date" in payload["properties"]


def test_publish_default_title():
    publisher = _publisher()
    publisher.session.request.return_value = _ok({"id": "page-1"})

    publisher.publish("Hello world")

    payload = publisher.session.request.call_args.kwargs["json"]
    assert payload["properties"]["Name"]["title"][0]["text"]["content"].startswith("Transcription - ")


def test_publish_appends_blocks_beyond_first_request():
    publisher = _publisher()
    publisher.session.request.return_value = _ok({"id": "page-9"})
    paragraph = ("abcd " * 300).strip()
    transcript = "\n\n".join([paragraph] * 150)

    publisher.publish(transcript, title="Long meeting")

    calls = publisher.session.request.call_args_list
    assert [c.args[0] for c in calls] == ["POST", "PATCH"]
    assert len(calls[0].kwargs["json"]["children"]) == 100
    assert calls[1].args[1] == "https://notion.test/v1/blocks/page-9/children"
    # heading_1 + divider + heading_2 + 150 paragraphs
    assert len(calls[1].kwargs["json"]["children"]) == 53


def test_api_error_raises_publish_error():
    publisher = _publisher()
    response = MagicMock()
    response.ok = False
    response.status_code = 400
    response.text = "validation_error"
    publisher.session.request.return_value = response

    with pytest.raises(PublishError):
        publisher.publish("text")


def test_network_error_raises_publish_error():
    publisher = _publisher()
    publisher.session.request.side_effect = requests.ConnectionError("offline")

    with pytest.raises(PublishError):
        publisher.publish("text")


def test_missing_credentials():
    with pytest.raises(ConfigurationError):
        NotionPublisher(api_token="", database_id="db")


def test_from_config_without_token_returns_none(monkeypatch):
    monkeypatch.delenv("NOTION_API_TOKEN", raising=False)
    monkeypatch.setenv("NOTION_DATABASE_ID", "db")

    assert NotionPublisher.from_config() is None


def _non_json_ok():
    response = MagicMock()
    response.ok = True
    response.status_code = 200
    response.json.side_effect = ValueError("not json")
    return response


def test_non_json_success_reply_raises_publish_error():
    publisher = _publisher()
    publisher.session.request.return_value = _non_json_ok()

    with pytest.raises(PublishError, match="non-JSON"):
        publisher.publish("text")


def test_reply_without_page_id_raises_publish_error():
    publisher = _publisher()
    publisher.session.request.return_value = _ok({"object": "page"})

    with pytest.raises(PublishError):
        publisher.publish("text")
