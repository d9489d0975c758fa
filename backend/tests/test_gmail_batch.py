"""
Unit tests for the Gmail batch transport.

Wire-level tests use httpx.MockTransport so no network is touched.
"""
import json
import random

import httpx
import pytest

from inboxswipe.integrations.gmail_batch import (
    GMAIL_BATCH_URL,
    BatchSubRequest,
    GmailBatchTransport,
    MessageFormat,
    build_batch_body,
    new_boundary,
    parse_batch_response,
)


class TestBuildBatchBody:
    """Test multipart request construction."""

    def test_one_embedded_get_per_request(self):
        """Test every sub-request becomes one application/http part."""
        requests = [
            BatchSubRequest("id-1", MessageFormat.FULL),
            BatchSubRequest("id-2", MessageFormat.METADATA),
        ]
        body = build_batch_body(requests, "batch_abc")

        assert body.count("--batch_abc\r\n") == 2
        assert body.endswith("\r\n--batch_abc--")
        assert body.count("Content-Type: application/http") == 2
        assert "Content-ID: <item0>" in body
        assert "Content-ID: <item1>" in body
        assert "GET /gmail/v1/users/me/messages/id-1?format=full\r\n" in body

    def test_metadata_requests_select_headers(self):
        """Test metadata fetches ask only for the headers we use."""
        path = BatchSubRequest("id-2", MessageFormat.METADATA).path
        assert path.startswith("/gmail/v1/users/me/messages/id-2?format=metadata")
        for header in ("From", "To", "Subject", "Date"):
            assert f"metadataHeaders={header}" in path

    def test_boundaries_are_unique(self):
        """Test each call gets a fresh boundary token."""
        boundaries = {new_boundary() for _ in range(50)}
        assert len(boundaries) == 50
        assert all(b.startswith("batch_") for b in boundaries)


class TestParseBatchResponse:
    """Test multipart response parsing."""

    def test_shuffled_parts_correlate_by_id(self, make_message, batch_response):
        """Test parts in any order are recovered intact."""
        ids = [f"msg-{i}" for i in range(10)]
        messages = [make_message(message_id=i) for i in ids]
        shuffled = messages[:]
        random.Random(7).shuffle(shuffled)

        parsed = parse_batch_response(batch_response(shuffled))

        assert len(parsed) == 10
        by_id = {m["id"]: m for m in parsed}
        assert set(by_id) == set(ids)
        for original in messages:
            assert by_id[original["id"]] == original

    def test_malformed_part_is_dropped(self, make_message, batch_response):
        """Test one broken part doesn't affect the others."""
        parts = [make_message(message_id=f"msg-{i}") for i in range(4)]
        parts.insert(2, '{"id": "broken", "payload": {')

        parsed = parse_batch_response(batch_response(parts))

        assert [m["id"] for m in parsed] == ["msg-0", "msg-1", "msg-2", "msg-3"]

    def test_part_without_id_is_dropped(self, make_message, batch_response):
        """Test embedded error payloads are skipped."""
        error_part = {"error": {"code": 404, "message": "Requested entity was not found."}}
        parsed = parse_batch_response(batch_response([make_message(message_id="a"), error_part]))
        assert [m["id"] for m in parsed] == ["a"]

    def test_boundary_from_content_type(self, make_message, batch_response):
        """Test the boundary is read from the response Content-Type."""
        text = batch_response([make_message(message_id="x")], boundary="batch_from_header")
        parsed = parse_batch_response(text, 'multipart/mixed; boundary="batch_from_header"')
        assert [m["id"] for m in parsed] == ["x"]

    def test_no_boundary_returns_empty(self):
        """Test a non-multipart body yields no messages."""
        assert parse_batch_response('{"id": "x"}') == []


class TestGmailBatchTransport:
    """Test the batch HTTP call."""

    @pytest.mark.asyncio
    async def test_fetch_sends_one_request(self, make_message, batch_response):
        """Test a fetch is one authorized POST to the batch endpoint."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                text=batch_response([make_message(message_id="b"), make_message(message_id="a")], "batch_resp"),
                headers={"Content-Type": "multipart/mixed; boundary=batch_resp"},
            )

        transport = GmailBatchTransport("token", transport=httpx.MockTransport(handler))
        messages = await transport.fetch([BatchSubRequest("a"), BatchSubRequest("b")])

        assert len(seen) == 1
        request = seen[0]
        assert str(request.url) == GMAIL_BATCH_URL
        assert request.headers["Authorization"] == "Bearer token"
        boundary = request.headers["Content-Type"].split("boundary=")[1]
        assert boundary.startswith("batch_")
        assert f"--{boundary}--" in request.content.decode()
        assert {m["id"] for m in messages} == {"a", "b"}

    @pytest.mark.asyncio
    async def test_transport_error_returns_empty(self):
        """Test a connection failure degrades to no results."""
        def handler(request):
            raise httpx.ConnectError("boom", request=request)

        transport = GmailBatchTransport("token", transport=httpx.MockTransport(handler))
        assert await transport.fetch([BatchSubRequest("a")]) == []

    @pytest.mark.asyncio
    async def test_http_error_status_returns_empty(self):
        """Test a non-200 batch response degrades to no results."""
        def handler(request):
            return httpx.Response(500, text=json.dumps({"error": "backend"}))

        transport = GmailBatchTransport("token", transport=httpx.MockTransport(handler))
        assert await transport.fetch([BatchSubRequest("a")]) == []

    @pytest.mark.asyncio
    async def test_empty_request_list_skips_http(self):
        """Test nothing is sent for an empty request list."""
        def handler(request):
            raise AssertionError("no request expected")

        transport = GmailBatchTransport("token", transport=httpx.MockTransport(handler))
        assert await transport.fetch([]) == []

    @pytest.mark.asyncio
    async def test_rejects_more_than_100(self):
        """Test oversized batches are refused."""
        transport = GmailBatchTransport("token")
        with pytest.raises(ValueError):
            await transport.fetch([BatchSubRequest(f"id-{i}") for i in range(101)])
