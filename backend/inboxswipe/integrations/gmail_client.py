"""
Gmail API client integration.

This module handles direct communication with Gmail API:
1. List message IDs (optionally filtered by date)
2. Batch-fetch metadata for the triage list
3. Batch-fetch full messages (with body) for the detail view
4. Parse Gmail's response format into EmailMetadata / ProcessedEmail

Transport failures and lost batch parts are absorbed here: callers get a
shorter list, never an exception. Only authentication failures propagate.

Gmail API Reference: https://developers.google.com/gmail/api/reference/rest
"""
import asyncio
import re
from datetime import date, datetime, timezone
from typing import List, Optional, Tuple

import httpx

from inboxswipe.config import get_settings
from inboxswipe.integrations.gmail_batch import BatchSubRequest, GmailBatchTransport, MessageFormat
from inboxswipe.integrations.mime import extract_body
from inboxswipe.models.email import EmailMetadata, ProcessedEmail
from inboxswipe.utils.logger import get_logger
from inboxswipe.utils.errors import GmailError, RateLimitError, AuthError

logger = get_logger(__name__)

# Gmail API base URL
GMAIL_API_BASE = "https://gmail.googleapis.com/gmail/v1/users/me"

NO_SUBJECT = "(No Subject)"
UNKNOWN_SENDER = "Unknown"

_NAMED_SENDER = re.compile(r'^"?([^"<]*)"?\s*<(.+)>$')


def parse_sender(from_header: str) -> Tuple[str, str]:
    """
    Parse 'From' header into name and email.

    Handles formats:
    - "John Doe <john@example.com>"
    - '"Doe, John" <john@example.com>'
    - "<john@example.com>"
    - '"" <john@example.com>'
    - "john@example.com"

    Without a display name the address is used for both.

    Returns:
        Tuple of (name, email)
    """
    from_header = (from_header or "").strip()
    if not from_header:
        return UNKNOWN_SENDER, ""

    # "Name <email>", '"" <email>' or "<email>"
    match = _NAMED_SENDER.match(from_header)
    if match:
        email = match.group(2).strip()
        return match.group(1).strip() or email, email

    # Assume entire string is email
    return from_header, from_header


def format_internal_date(internal_date: Optional[str]) -> str:
    """Convert Gmail's internalDate (epoch ms string) to ISO format (UTC)."""
    try:
        timestamp = int(internal_date) / 1000
    except (TypeError, ValueError):
        timestamp = 0
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def _headers(message: dict) -> dict:
    payload = message.get("payload") or {}
    return {h["name"].lower(): h["value"] for h in payload.get("headers", [])}


def parse_metadata(message: dict) -> EmailMetadata:
    """
    Project a Gmail message into EmailMetadata.

    The date comes from internalDate, not the Date header: it is the
    provider's storage timestamp and always present.
    """
    headers = _headers(message)
    sender_name, sender_email = parse_sender(headers.get("from", ""))

    return EmailMetadata(
        id=message["id"],
        thread_id=message.get("threadId", message["id"]),
        sender_name=sender_name,
        sender_email=sender_email,
        subject=headers.get("subject") or NO_SUBJECT,
        snippet=message.get("snippet", ""),
        date=format_internal_date(message.get("internalDate")),
        labels=message.get("labelIds", []),
    )


def parse_full_message(message: dict) -> ProcessedEmail:
    """Project a full-format Gmail message into ProcessedEmail."""
    metadata = parse_metadata(message)
    headers = _headers(message)

    return ProcessedEmail(
        **metadata.model_dump(),
        to=headers.get("to", ""),
        body=extract_body(message.get("payload")),
    )


def build_date_query(after: Optional[date]) -> Optional[str]:
    """Gmail search query for messages on or after a day (yyyy/mm/dd)."""
    if after is None:
        return None
    return f"after:{after.strftime('%Y/%m/%d')}"


def _chunks(items: List[str], size: int) -> List[List[str]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class GmailClient:
    """
    Gmail API client for triage reads.

    Usage:
        client = GmailClient(access_token)
        ids = await client.list_message_ids(max_count=50)
        metadata = await client.fetch_metadata(ids)
        emails = await client.fetch_full(ids[:10])
    """

    def __init__(
        self,
        access_token: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Gmail client with access token.

        Args:
            access_token: Valid Google OAuth access token with Gmail scopes
            transport: Optional httpx transport, shared with the batch client
        """
        self.access_token = access_token
        self.transport = transport
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }
        self.batch = GmailBatchTransport(access_token, transport=transport)
        self.settings = get_settings()

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        params: dict = None,
        retries: int = 3,
    ) -> dict:
        """
        Make an authenticated request to Gmail API.

        Handles common error cases:
        - 401: Token expired/invalid
        - 403: Permission denied
        - 429: Rate limited (retried)
        - 5xx: Server errors (retried)

        Args:
            method: HTTP method
            endpoint: API endpoint (relative to base URL)
            params: Query parameters
            retries: Number of retries for transient errors

        Returns:
            Response JSON dict

        Raises:
            AuthError: Token issues
            GmailError: API errors
            RateLimitError: Rate limit exceeded after retries
        """
        url = f"{GMAIL_API_BASE}{endpoint}"

        for attempt in range(retries + 1):
            async with httpx.AsyncClient(transport=self.transport) as client:
                try:
                    response = await client.request(
                        method=method,
                        url=url,
                        headers=self.headers,
                        params=params,
                        timeout=30.0,
                    )
                except (httpx.TimeoutException, httpx.ConnectError) as e:
                    if attempt < retries:
                        wait_time = 2 ** attempt
                        logger.warning(f"Gmail API connection error, retrying in {wait_time}s...")
                        await asyncio.sleep(wait_time)
                        continue
                    logger.error(f"Gmail API: Request failed after {retries} retries - {e}")
                    raise GmailError("Gmail service unavailable. Please try again later.")
                except httpx.HTTPError as e:
                    logger.error(f"Unexpected Gmail API error: {e}")
                    raise GmailError(f"Unexpected error: {str(e)}")

            if 200 <= response.status_code < 300:
                if response.status_code == 204 or not response.content:
                    return {}
                return response.json()

            # Transient errors (rate limit, server error)
            if response.status_code == 429 or response.status_code >= 500:
                if attempt < retries:
                    wait_time = 2 ** attempt  # Exponential backoff
                    logger.warning(f"Gmail API transient error {response.status_code}, retrying in {wait_time}s...")
                    await asyncio.sleep(wait_time)
                    continue
                if response.status_code == 429:
                    raise RateLimitError()

            if response.status_code == 401:
                logger.warning("Gmail API: Token expired or invalid")
                raise AuthError("Gmail access token expired", "TOKEN_EXPIRED")

            if response.status_code == 403:
                logger.warning("Gmail API: Permission denied")
                raise GmailError("Gmail permission denied. Please re-authorize.")

            logger.error(f"Gmail API error: {response.status_code} - {response.text[:200]}")
            raise GmailError(f"Gmail API error: {response.status_code}")

        raise GmailError("Gmail service unavailable. Please try again later.")

    async def list_message_ids(self, max_count: int = 10, after: Optional[date] = None) -> List[str]:
        """
        List message IDs, newest first.

        Args:
            max_count: Maximum number of IDs
            after: Optional day floor; only messages on or after it

        Returns:
            Message IDs, or [] if Gmail couldn't be reached

        Raises:
            AuthError: Access token rejected
        """
        params = {"maxResults": max_count}
        query = build_date_query(after)
        if query:
            params["q"] = query

        try:
            response = await self._make_request("GET", "/messages", params=params)
        except (GmailError, RateLimitError) as e:
            logger.warning(f"Listing messages failed: {e.message}")
            return []

        ids = [m["id"] for m in response.get("messages", []) if m.get("id")]
        logger.info(f"Listed {len(ids)} message ids (query: {query})")
        return ids

    async def fetch_metadata(self, ids: List[str]) -> List[EmailMetadata]:
        """
        Batch-fetch metadata (selected headers only) for message IDs.

        At most settings.metadata_fetch_limit IDs are fetched per call.
        Results follow the order of ``ids``; messages the batch lost are
        missing.
        """
        limited = ids[:self.settings.metadata_fetch_limit]
        if len(limited) < len(ids):
            logger.info(f"Metadata fetch capped at {len(limited)} of {len(ids)} ids")

        messages = await self.batch.fetch(
            [BatchSubRequest(message_id, MessageFormat.METADATA) for message_id in limited]
        )
        return self._in_request_order(limited, messages, parse_metadata)

    async def fetch_full(self, ids: List[str]) -> List[ProcessedEmail]:
        """
        Batch-fetch full messages (headers and body) for message IDs.

        IDs are sent in chunks of settings.full_fetch_chunk_size with a
        short pause between chunks to stay within Gmail's fair-use limits.
        """
        results: List[ProcessedEmail] = []
        chunks = _chunks(ids, self.settings.full_fetch_chunk_size)

        for index, chunk in enumerate(chunks):
            messages = await self.batch.fetch(
                [BatchSubRequest(message_id, MessageFormat.FULL) for message_id in chunk]
            )
            results.extend(self._in_request_order(chunk, messages, parse_full_message))

            if index < len(chunks) - 1:
                await asyncio.sleep(self.settings.full_fetch_pause_seconds)

        return results

    async def get_emails_metadata(self, count: int = 50, after: Optional[date] = None) -> List[EmailMetadata]:
        """List recent messages and fetch their metadata."""
        safe_count = min(count, self.settings.metadata_fetch_limit)
        ids = await self.list_message_ids(safe_count, after)
        if not ids:
            return []
        return await self.fetch_metadata(ids)

    async def get_emails(self, count: int = 10) -> List[ProcessedEmail]:
        """List recent messages and fetch them in full (legacy endpoint)."""
        ids = await self.list_message_ids(count)
        if not ids:
            return []
        return await self.fetch_full(ids)

    @staticmethod
    def _in_request_order(ids: List[str], messages: List[dict], parse) -> list:
        """Correlate batch results by message id and parse them in request order."""
        by_id = {}
        for message in messages:
            try:
                by_id[message["id"]] = parse(message)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unparseable message {message.get('id')}: {e}")

        missing = [message_id for message_id in ids if message_id not in by_id]
        if missing:
            logger.warning(f"{len(missing)} of {len(ids)} messages missing from batch")

        return [by_id[message_id] for message_id in ids if message_id in by_id]
