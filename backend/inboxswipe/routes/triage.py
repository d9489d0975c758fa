"""
Triage endpoints.

The swipe UI drives a per-session TriageOrchestrator through these
routes. Every call returns a TriageSnapshot for the current card.

GET  /api/triage                      → current snapshot
POST /api/triage/load?count=&after=   → (re)load the queue
POST /api/triage/clear                → clear the current email
POST /api/triage/open                 → open the current email
POST /api/triage/close                → close it (and clear it)
POST /api/triage/reanalyze            → analyze the current email again
"""
import inspect
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from inboxswipe.integrations.gmail_client import GmailClient
from inboxswipe.models.triage import TriageSnapshot
from inboxswipe.routes.emails import parse_after
from inboxswipe.services.analysis_cache import get_analysis_cache
from inboxswipe.services.session_service import get_current_session
from inboxswipe.services.triage_service import TriageOrchestrator
from inboxswipe.utils.logger import get_logger
from inboxswipe.utils.errors import AppError, INTERNAL_ERROR, to_http_exception

router = APIRouter()
logger = get_logger(__name__)


def get_triage(session: dict = Depends(get_current_session)) -> TriageOrchestrator:
    """The session's orchestrator, created on first use."""
    if session.get("triage") is None:
        session["triage"] = TriageOrchestrator(
            GmailClient(session["access_token"]),
            get_analysis_cache(session["user_id"]),
        )
    return session["triage"]


async def _run(action: str, triage: TriageOrchestrator, step) -> TriageSnapshot:
    try:
        result = step()
        if inspect.isawaitable(result):
            await result
        return triage.snapshot()
    except AppError as e:
        logger.warning(f"Triage {action} error [{e.code}]: {e.message}")
        raise to_http_exception(e)
    except Exception as e:
        logger.exception(f"Unexpected triage {action} error: {e}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@router.get("/triage", response_model=TriageSnapshot)
async def triage_status(triage: TriageOrchestrator = Depends(get_triage)):
    """Current triage card and progress."""
    return triage.snapshot()


@router.post("/triage/load", response_model=TriageSnapshot)
async def triage_load(
    count: Optional[int] = Query(None, ge=1),
    after: Optional[str] = None,
    triage: TriageOrchestrator = Depends(get_triage),
):
    """Load a page of emails and start pre-warming analyses."""
    return await _run("load", triage, lambda: triage.load(count, parse_after(after)))


@router.post("/triage/clear", response_model=TriageSnapshot)
async def triage_clear(triage: TriageOrchestrator = Depends(get_triage)):
    return await _run("clear", triage, triage.clear)


@router.post("/triage/open", response_model=TriageSnapshot)
async def triage_open(triage: TriageOrchestrator = Depends(get_triage)):
    return await _run("open", triage, triage.open)


@router.post("/triage/close", response_model=TriageSnapshot)
async def triage_close(triage: TriageOrchestrator = Depends(get_triage)):
    return await _run("close", triage, triage.close)


@router.post("/triage/reanalyze", response_model=TriageSnapshot)
async def triage_reanalyze(triage: TriageOrchestrator = Depends(get_triage)):
    return await _run("reanalyze", triage, triage.reanalyze)
