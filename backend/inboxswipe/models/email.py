"""
Email-related Pydantic models.

Field names are snake_case in Python and camelCase on the wire
(``threadId``, ``fromEmail``); ``from`` is aliased explicitly.
"""
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EmailMetadata(CamelModel):
    """Lightweight email data for the triage list (no body)."""
    id: str
    thread_id: str
    sender_name: str = Field(alias="from")
    sender_email: str = Field(alias="fromEmail")
    subject: str
    snippet: str
    date: str
    labels: List[str] = []


class ProcessedEmail(EmailMetadata):
    """Full email for the detail view."""
    to: str = ""
    body: str = ""


class FetchEmailsRequest(BaseModel):
    """Request to fetch full emails by id."""
    ids: List[str]


class MetadataResponse(BaseModel):
    emails: List[EmailMetadata]


class EmailsResponse(BaseModel):
    emails: List[ProcessedEmail]
