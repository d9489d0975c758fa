"""
Analysis-related Pydantic models.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from inboxswipe.models.email import CamelModel


class Classification(str, Enum):
    URGENT = "urgent"
    NEWSLETTER = "newsletter"
    PERSONAL = "personal"
    TRANSACTIONAL = "transactional"
    PROMOTIONAL = "promotional"
    SOCIAL = "social"
    WORK = "work"


class Productivity(str, Enum):
    PRODUCTIVE = "productive"
    UNPRODUCTIVE = "unproductive"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"
    REQUESTING = "requesting"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ActionItem(CamelModel):
    """A task extracted from an email."""
    task: str
    priority: Priority = Priority.MEDIUM
    due_date: Optional[str] = None


class EmailAnalysis(CamelModel):
    """Validated AI analysis of one email, keyed by email id."""
    email_id: str
    classification: Classification = Classification.PERSONAL
    productivity: Productivity = Productivity.UNPRODUCTIVE
    sentiment: Sentiment = Sentiment.NEUTRAL
    summary: str = ""
    suggested_reply: Optional[str] = None
    requires_action: bool = False
    key_points: List[str] = []
    action_items: List[ActionItem] = []


class AnalysisInput(BaseModel):
    """Email content sent to the analysis backend."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    sender: str = Field("", alias="from")
    subject: str = ""
    body: str = ""
    snippet: str = ""


class AnalyzeRequest(BaseModel):
    """Request to analyze a batch of emails."""
    emails: List[AnalysisInput]


class AnalyzeResponse(BaseModel):
    analyses: List[EmailAnalysis]
