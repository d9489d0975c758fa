"""
AI service for email analysis.

This module provides:
1. Single and batch email analysis through Gemini
2. Validation of Gemini's JSON into EmailAnalysis, field by field
3. Fallback analyses when Gemini fails or returns garbage

Callers always get exactly one well-formed EmailAnalysis per input email,
in input order. Errors never escape analyze_email / analyze_emails.
"""
import json
from enum import Enum
from typing import Any, List, Optional, Type

from inboxswipe.config import get_settings
from inboxswipe.integrations.gemini_client import complete, extract_json
from inboxswipe.models.analysis import (
    ActionItem,
    AnalysisInput,
    Classification,
    EmailAnalysis,
    Priority,
    Productivity,
    Sentiment,
)
from inboxswipe.services.prompts import (
    create_analysis_prompt,
    create_batch_analysis_prompt,
    system_prompt,
)
from inboxswipe.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_SUMMARY = "Unable to summarize."
FALLBACK_SUMMARY = "Analysis unavailable."
DEFAULT_TASK = "Task"
MAX_KEY_POINTS = 3
MAX_ACTION_ITEMS = 5

SINGLE_MAX_TOKENS = 1024
BATCH_TOKENS_PER_EMAIL = 400


# =============================================================================
# FALLBACK AND VALIDATION
# =============================================================================

def fallback_analysis(email_id: str) -> EmailAnalysis:
    """Low-confidence analysis used whenever Gemini's output can't be trusted."""
    return EmailAnalysis(
        email_id=email_id,
        classification=Classification.PERSONAL,
        productivity=Productivity.UNPRODUCTIVE,
        sentiment=Sentiment.NEUTRAL,
        summary=FALLBACK_SUMMARY,
        suggested_reply=None,
        requires_action=False,
        key_points=[],
        action_items=[],
    )


def is_fallback(analysis: EmailAnalysis) -> bool:
    """True if the analysis is the fallback record for its email."""
    return analysis == fallback_analysis(analysis.email_id)


def _enum(enum_cls: Type[Enum], value: Any, default: Enum) -> Enum:
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            pass
    return default


def _text(value: Any) -> Optional[str]:
    """Non-empty string or None (JSON null, "null", blanks, non-scalars)."""
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    if not text or text.lower() == "null":
        return None
    return text


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def _key_points(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    points = [_text(point) for point in value]
    return [point for point in points if point][:MAX_KEY_POINTS]


def _action_items(value: Any) -> List[ActionItem]:
    if not isinstance(value, list):
        return []

    items = []
    for raw in value:
        if not isinstance(raw, dict):
            continue
        items.append(ActionItem(
            task=_text(raw.get("task")) or DEFAULT_TASK,
            priority=_enum(Priority, raw.get("priority"), Priority.MEDIUM),
            due_date=_text(raw.get("dueDate")),
        ))
    return items[:MAX_ACTION_ITEMS]


def coerce_analysis(email_id: str, raw: Any) -> EmailAnalysis:
    """
    Build an EmailAnalysis from untrusted parsed JSON.

    Every field is checked against its domain; anything missing or out of
    domain gets its default. The email id always comes from our input,
    never from Gemini.
    """
    if not isinstance(raw, dict):
        return fallback_analysis(email_id)

    return EmailAnalysis(
        email_id=email_id,
        classification=_enum(Classification, raw.get("classification"), Classification.PERSONAL),
        productivity=_enum(Productivity, raw.get("productivity"), Productivity.UNPRODUCTIVE),
        sentiment=_enum(Sentiment, raw.get("sentiment"), Sentiment.NEUTRAL),
        summary=_text(raw.get("summary")) or DEFAULT_SUMMARY,
        suggested_reply=_text(raw.get("suggestedReply")),
        requires_action=_flag(raw.get("requiresAction")),
        key_points=_key_points(raw.get("keyPoints")),
        action_items=_action_items(raw.get("actionItems")),
    )


def parse_single_response(email_id: str, text: str) -> EmailAnalysis:
    """
    Parse Gemini's answer to the single-email prompt.

    Raises:
        ValueError: Not valid JSON, or not a JSON object
    """
    parsed = json.loads(extract_json(text))
    if not isinstance(parsed, dict):
        raise ValueError("Response is not a JSON object")
    return coerce_analysis(email_id, parsed)


def parse_batch_response(emails: List[AnalysisInput], text: str) -> List[EmailAnalysis]:
    """
    Parse Gemini's answer to the batch prompt.

    Entries are matched to emails by ``emailId``. An entry without a
    known id is matched by position, but only when the array has exactly
    one entry per email. Emails left without an entry get a fallback.

    Raises:
        ValueError: Not valid JSON, or not a JSON array
    """
    parsed = json.loads(extract_json(text))
    if not isinstance(parsed, list):
        raise ValueError("Response is not a JSON array")

    known_ids = {email.id for email in emails}
    by_id = {}
    for item in parsed:
        if isinstance(item, dict) and str(item.get("emailId") or "") in known_ids:
            by_id.setdefault(str(item["emailId"]), item)

    positional = len(parsed) == len(emails)
    if not positional:
        logger.warning(f"Batch analysis returned {len(parsed)} entries for {len(emails)} emails")

    analyses = []
    for index, email in enumerate(emails):
        item = by_id.get(email.id)
        if item is None and positional:
            candidate = parsed[index]
            if isinstance(candidate, dict) and str(candidate.get("emailId") or "") not in known_ids:
                item = candidate

        if item is None:
            logger.warning(f"No analysis returned for email {email.id}, using fallback")
            analyses.append(fallback_analysis(email.id))
        else:
            analyses.append(coerce_analysis(email.id, item))
    return analyses


# =============================================================================
# ANALYSIS
# =============================================================================

async def analyze_email(email: AnalysisInput) -> EmailAnalysis:
    """
    Analyze one email with the detailed single-email prompt.

    Returns the fallback analysis on any failure.
    """
    settings = get_settings()
    try:
        response = await complete(
            prompt=create_analysis_prompt(email),
            system_instruction=system_prompt(settings.analysis_language),
            max_tokens=SINGLE_MAX_TOKENS,
        )
        return parse_single_response(email.id, response)
    except Exception as e:
        logger.warning(f"Failed to analyze email {email.id}: {e}")
        return fallback_analysis(email.id)


async def analyze_emails(emails: List[AnalysisInput]) -> List[EmailAnalysis]:
    """
    Analyze a batch of emails in one Gemini call.

    A batch of one goes through analyze_email for the richer reply
    suggestion. If the batch response can't be parsed, every email gets
    the fallback analysis; nothing from that response is kept.
    """
    if not emails:
        return []
    if len(emails) == 1:
        return [await analyze_email(emails[0])]

    settings = get_settings()
    try:
        response = await complete(
            prompt=create_batch_analysis_prompt(emails),
            system_instruction=system_prompt(settings.analysis_language),
            max_tokens=BATCH_TOKENS_PER_EMAIL * len(emails),
        )
        analyses = parse_batch_response(emails, response)
    except Exception as e:
        logger.warning(f"Batch analysis of {len(emails)} emails failed: {e}")
        return [fallback_analysis(email.id) for email in emails]

    logger.info(f"Analyzed {len(analyses)} emails")
    return analyses
