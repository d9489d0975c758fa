"""
Analysis endpoint.

POST /api/analyze {"emails": [{id, from, subject, body, snippet}]}
  → {"analyses": [EmailAnalysis, ...]}   (one per email, input order)

Gemini failures never surface here; affected emails get the fallback
analysis.
"""
from fastapi import APIRouter, Depends, HTTPException

from inboxswipe.config import get_settings
from inboxswipe.models.analysis import AnalyzeRequest, AnalyzeResponse
from inboxswipe.services.ai_service import analyze_emails
from inboxswipe.services.session_service import get_current_session
from inboxswipe.utils.logger import get_logger
from inboxswipe.utils.errors import AINotConfiguredError, AppError, INTERNAL_ERROR, to_http_exception

router = APIRouter()
logger = get_logger(__name__)


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze(
    request: AnalyzeRequest,
    session: dict = Depends(get_current_session),
):
    """Classify and summarize a batch of emails."""
    try:
        if not get_settings().gemini_api_key:
            raise AINotConfiguredError()

        logger.info(f"Analyze request from {session['email']}: {len(request.emails)} emails")
        analyses = await analyze_emails(request.emails)
        return AnalyzeResponse(analyses=analyses)
    except AppError as e:
        logger.error(f"Analyze error [{e.code}]: {e.message}")
        raise to_http_exception(e)
    except Exception as e:
        logger.exception(f"Unexpected analyze error: {e}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)
