"""
Gmail batch transport.

Packs up to 100 message GETs into one multipart/mixed HTTP request
against Gmail's batch endpoint and parses the multipart response back
into message dicts.

Results are NOT in request order. Callers correlate by the ``id`` field
of each message; parts that fail or don't parse are dropped, so fewer
results than requested is a normal outcome. A failed outer request
returns an empty list. Nothing is retried here.

Gmail batch reference:
https://developers.google.com/gmail/api/guides/batch
"""
import json
import re
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional
from urllib.parse import urlencode

import httpx

from inboxswipe.utils.logger import get_logger

logger = get_logger(__name__)

GMAIL_BATCH_URL = "https://gmail.googleapis.com/batch/gmail/v1"
MESSAGES_PATH = "/gmail/v1/users/me/messages"
MAX_BATCH_SIZE = 100

# Headers transferred for metadata-only fetches
METADATA_HEADERS = ("From", "To", "Subject", "Date")

_BOUNDARY_PARAM = re.compile(r'boundary="?([^";]+)"?', re.IGNORECASE)
_BOUNDARY_LINE = re.compile(r"^--(batch_[^\r\n]+?)(?:--)?\r?$", re.MULTILINE)


class MessageFormat(str, Enum):
    METADATA = "metadata"
    FULL = "full"


@dataclass(frozen=True)
class BatchSubRequest:
    """One embedded GET for a single message."""
    message_id: str
    format: MessageFormat = MessageFormat.FULL

    @property
    def path(self) -> str:
        params = [("format", self.format.value)]
        if self.format == MessageFormat.METADATA:
            params += [("metadataHeaders", name) for name in METADATA_HEADERS]
        return f"{MESSAGES_PATH}/{self.message_id}?{urlencode(params)}"


def new_boundary() -> str:
    """Boundary token unique per call (time plus random suffix)."""
    return f"batch_{int(time.time() * 1000)}_{uuid.uuid4().hex}"


def build_batch_body(requests: List[BatchSubRequest], boundary: str) -> str:
    """
    Build the multipart/mixed body of a batch request.

    Each part is an ``application/http`` embedded GET with its own
    Content-ID.
    """
    parts = []
    for index, request in enumerate(requests):
        parts.append("\r\n".join([
            f"--{boundary}",
            "Content-Type: application/http",
            f"Content-ID: <item{index}>",
            "",
            f"GET {request.path}",
            "",
        ]))
    return "\r\n".join(parts) + f"\r\n--{boundary}--"


def _response_boundary(text: str, content_type: str = "") -> Optional[str]:
    match = _BOUNDARY_PARAM.search(content_type or "")
    if match:
        return match.group(1)
    # Fall back to the first boundary line in the body
    match = _BOUNDARY_LINE.search(text)
    return match.group(1) if match else None


def parse_batch_response(text: str, content_type: str = "") -> List[dict]:
    """
    Parse a multipart batch response into message dicts.

    Each part is an embedded HTTP response (status line, headers, JSON
    body). We take the text between the first ``{`` and the last ``}``
    of every part. Parts that aren't valid JSON objects, or that lack an
    ``id`` (e.g. embedded 404 error payloads), are skipped.

    Args:
        text: Raw response body
        content_type: Outer Content-Type header, used for the boundary

    Returns:
        Parsed messages, in arrival order
    """
    boundary = _response_boundary(text, content_type)
    if not boundary:
        logger.warning("Batch response has no multipart boundary")
        return []

    messages = []
    dropped = 0
    for part in text.split(f"--{boundary}"):
        stripped = part.strip()
        if not stripped or stripped == "--":
            continue

        start = part.find("{")
        end = part.rfind("}")
        if start == -1 or end < start:
            dropped += 1
            continue

        try:
            message = json.loads(part[start:end + 1])
        except json.JSONDecodeError:
            dropped += 1
            continue

        if isinstance(message, dict) and message.get("id"):
            messages.append(message)
        else:
            dropped += 1

    if dropped:
        logger.warning(f"Dropped {dropped} malformed or failed batch part(s)")
    return messages


class GmailBatchTransport:
    """
    Sends batched message GETs to Gmail.

    Usage:
        transport = GmailBatchTransport(access_token)
        messages = await transport.fetch([BatchSubRequest("abc", MessageFormat.METADATA)])
    """

    def __init__(
        self,
        access_token: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ):
        """
        Args:
            access_token: Google OAuth access token with Gmail scopes
            transport: Optional httpx transport (tests use httpx.MockTransport)
            timeout: Request timeout in seconds
        """
        self.access_token = access_token
        self.transport = transport
        self.timeout = timeout

    async def fetch(self, requests: List[BatchSubRequest]) -> List[dict]:
        """
        Send one batch request and return the parsed messages.

        Raises:
            ValueError: More than MAX_BATCH_SIZE sub-requests
        """
        if not requests:
            return []
        if len(requests) > MAX_BATCH_SIZE:
            raise ValueError(f"Gmail batches are limited to {MAX_BATCH_SIZE} requests, got {len(requests)}")

        boundary = new_boundary()
        body = build_batch_body(requests, boundary)
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": f"multipart/mixed; boundary={boundary}",
        }

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.post(GMAIL_BATCH_URL, content=body, headers=headers)
        except httpx.HTTPError as e:
            logger.warning(f"Gmail batch request failed: {e}")
            return []

        if response.status_code != 200:
            logger.warning(f"Gmail batch request returned {response.status_code}")
            return []

        messages = parse_batch_response(response.text, response.headers.get("content-type", ""))
        logger.info(f"Batch fetched {len(messages)}/{len(requests)} messages")
        return messages
