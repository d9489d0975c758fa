"""
Email endpoints for the triage UI.

GET  /api/emails/metadata?count=&after=  → lightweight list (no bodies)
GET  /api/emails                         → legacy: latest few emails, full
POST /api/emails {"ids": [...]}          → full emails for specific ids

Gmail failures don't raise here: a partial or failed batch just means
fewer emails in the response.
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from inboxswipe.config import get_settings
from inboxswipe.integrations.gmail_client import GmailClient
from inboxswipe.models.email import EmailsResponse, FetchEmailsRequest, MetadataResponse
from inboxswipe.services.session_service import get_current_session
from inboxswipe.utils.logger import get_logger
from inboxswipe.utils.errors import AppError, InvalidRequestError, INTERNAL_ERROR, to_http_exception

router = APIRouter()
logger = get_logger(__name__)


def parse_after(value: Optional[str]) -> Optional[date]:
    """Parse the ``after`` query param (ISO date or datetime) to a day."""
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        raise InvalidRequestError(f"Invalid 'after' date: {value}")


@router.get("/emails/metadata", response_model=MetadataResponse)
async def get_emails_metadata(
    count: Optional[int] = Query(None, ge=1),
    after: Optional[str] = None,
    session: dict = Depends(get_current_session),
):
    """
    Fetch metadata for the most recent emails.

    ``count`` is capped server-side; ``after`` keeps only emails on or
    after that day.
    """
    settings = get_settings()
    try:
        gmail = GmailClient(session["access_token"])
        emails = await gmail.get_emails_metadata(
            count or settings.default_metadata_count,
            parse_after(after),
        )
        return MetadataResponse(emails=emails)
    except AppError as e:
        logger.error(f"Metadata fetch error [{e.code}]: {e.message}")
        raise to_http_exception(e)
    except Exception as e:
        logger.exception(f"Unexpected metadata fetch error: {e}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@router.get("/emails", response_model=EmailsResponse)
async def get_emails(session: dict = Depends(get_current_session)):
    """Fetch the latest few emails in full (legacy)."""
    try:
        gmail = GmailClient(session["access_token"])
        emails = await gmail.get_emails(get_settings().legacy_fetch_count)
        return EmailsResponse(emails=emails)
    except AppError as e:
        logger.error(f"Email fetch error [{e.code}]: {e.message}")
        raise to_http_exception(e)
    except Exception as e:
        logger.exception(f"Unexpected email fetch error: {e}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@router.post("/emails", response_model=EmailsResponse)
async def get_emails_by_ids(
    request: FetchEmailsRequest,
    session: dict = Depends(get_current_session),
):
    """Fetch full emails (with body) for specific ids, at most 20 per call."""
    try:
        if not request.ids:
            raise InvalidRequestError("Invalid request: ids array required")

        limit = get_settings().full_fetch_request_limit
        gmail = GmailClient(session["access_token"])
        emails = await gmail.fetch_full(request.ids[:limit])
        return EmailsResponse(emails=emails)
    except AppError as e:
        logger.error(f"Email fetch error [{e.code}]: {e.message}")
        raise to_http_exception(e)
    except Exception as e:
        logger.exception(f"Unexpected email fetch error: {e}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)
