"""
Pytest fixtures for InboxSwipe backend tests.
"""
import base64
import json

import pytest

from inboxswipe.config import get_settings
from inboxswipe.services.analysis_cache import AnalysisCache


def _encode(text: str) -> str:
    """Gmail-style base64url without padding."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


@pytest.fixture
def encode():
    """Encode text the way Gmail encodes body data."""
    return _encode


@pytest.fixture
def make_message():
    """Build a Gmail API message dict."""
    def _make(
        message_id="msg-1",
        sender="John Doe <john@example.com>",
        subject="Test Subject",
        body="Hello",
        internal_date="1738751400000",
        to="me@example.com",
    ):
        headers = [{"name": "To", "value": to}]
        if sender is not None:
            headers.append({"name": "From", "value": sender})
        if subject is not None:
            headers.append({"name": "Subject", "value": subject})
        return {
            "id": message_id,
            "threadId": f"thread-{message_id}",
            "labelIds": ["INBOX", "UNREAD"],
            "snippet": f"Snippet of {message_id}",
            "internalDate": internal_date,
            "payload": {
                "mimeType": "text/plain",
                "headers": headers,
                "body": {"data": _encode(body)},
            },
        }
    return _make


@pytest.fixture
def batch_response():
    """Build a raw Gmail batch response body from message dicts or raw strings."""
    def _build(parts, boundary="batch_test_boundary"):
        chunks = []
        for index, part in enumerate(parts):
            payload = part if isinstance(part, str) else json.dumps(part)
            chunks.append(
                f"--{boundary}\r\n"
                "Content-Type: application/http\r\n"
                f"Content-ID: <response-item{index}>\r\n"
                "\r\n"
                "HTTP/1.1 200 OK\r\n"
                "Content-Type: application/json; charset=UTF-8\r\n"
                "\r\n"
                f"{payload}\r\n"
            )
        return "".join(chunks) + f"--{boundary}--\r\n"
    return _build


@pytest.fixture
def mock_gmail_multipart_message():
    """Create a mock Gmail API multipart message."""
    return {
        "id": "msg-multi123",
        "threadId": "thread-multi789",
        "labelIds": ["INBOX"],
        "snippet": "Multipart email snippet...",
        "internalDate": "1738753200000",
        "payload": {
            "headers": [
                {"name": "From", "value": "Jane Smith <jane@example.com>"},
                {"name": "Subject", "value": "Multipart Email"},
            ],
            "mimeType": "multipart/alternative",
            "parts": [
                {
                    "mimeType": "text/plain",
                    "body": {
                        "data": "UGxhaW4gdGV4dCBib2R5"  # "Plain text body"
                    },
                },
                {
                    "mimeType": "text/html",
                    "body": {
                        "data": "PHA-SFRNTCBib2R5PC9wPg"  # "<p>HTML body</p>"
                    },
                },
            ],
        },
    }


@pytest.fixture
def fast_settings(monkeypatch):
    """Settings with no pause between full-fetch chunks."""
    settings = get_settings()
    monkeypatch.setattr(settings, "full_fetch_pause_seconds", 0)
    return settings


@pytest.fixture
def analysis_cache(tmp_path):
    """Analysis cache in a temp directory."""
    return AnalysisCache(tmp_path / "cache" / "analyses.json")


@pytest.fixture
def gemini_batch_json():
    """A well-formed Gemini batch answer for three emails."""
    return json.dumps([
        {
            "emailId": f"e{i}",
            "classification": "work",
            "productivity": "productive",
            "sentiment": "requesting",
            "summary": f"Summary {i}",
            "suggestedReply": "Sounds good.",
            "requiresAction": True,
            "keyPoints": ["a", "b"],
            "actionItems": [{"task": "Reply", "priority": "high"}],
        }
        for i in range(1, 4)
    ])
