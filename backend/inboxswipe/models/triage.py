"""
Triage-related Pydantic models.
"""
from enum import Enum
from typing import Optional

from inboxswipe.models.analysis import EmailAnalysis
from inboxswipe.models.email import CamelModel, EmailMetadata, ProcessedEmail


class TriageState(str, Enum):
    LOADING = "loading"
    LISTING = "listing"
    READING = "reading"
    EMPTY = "empty"
    FAILED = "failed"


class TriageSnapshot(CamelModel):
    """What the UI needs to render the current triage card."""
    state: TriageState
    current: Optional[EmailMetadata] = None
    email: Optional[ProcessedEmail] = None
    analysis: Optional[EmailAnalysis] = None
    remaining: int = 0
    cleared: int = 0
    total: int = 0
    error: Optional[str] = None
