"""
Gemini prompts for email analysis.

Batch analysis keeps Gemini calls to one per window of emails; the
single-email prompt asks for a more useful reply suggestion.
"""
import re
from typing import List

from inboxswipe.models.analysis import AnalysisInput

BATCH_BODY_LIMIT = 600
SINGLE_BODY_LIMIT = 1500

_STYLE = re.compile(r"<style[^>]*>.*?</style>", re.DOTALL | re.IGNORECASE)
_SCRIPT = re.compile(r"<script[^>]*>.*?</script>", re.DOTALL | re.IGNORECASE)
_TAG = re.compile(r"<[^>]*>")
_URL = re.compile(r"https?://\S+")
_WHITESPACE = re.compile(r"\s+")

_ENTITIES = (
    ("&nbsp;", " "),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&amp;", "&"),
)


def sanitize_body(body: str, limit: int) -> str:
    """
    Reduce an email body to plain text for a prompt.

    Style and script blocks are dropped with their content, remaining
    tags become spaces and URLs become [link].
    """
    text = _STYLE.sub("", body or "")
    text = _SCRIPT.sub("", text)
    text = _TAG.sub(" ", text)

    # Decode common entities
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)

    text = _URL.sub("[link]", text)
    text = _WHITESPACE.sub(" ", text).strip()
    return text[:limit]


def system_prompt(language: str) -> str:
    return f"""You are an email analysis assistant for a productivity tool.
Write summaries, key points, tasks and replies in {language}, whatever the language of the original email.

Classification rules:
- classification: one of [urgent, newsletter, personal, transactional, promotional, social, work]
- productivity:
  - "productive" = needs action or a reply (support cases, open questions, approvals, deadlines)
  - "unproductive" = nothing to do right now (greetings, thanks, FYI, automated notifications)
- sentiment: one of [positive, neutral, negative, requesting]

Be concise. No filler words. Extract actionable tasks when present."""


def _email_block(email: AnalysisInput, limit: int) -> str:
    body = sanitize_body(email.body, limit)
    return f"""FROM: {email.sender}
SUBJECT: {email.subject}
BODY: {body or email.snippet}"""


def create_batch_analysis_prompt(emails: List[AnalysisInput]) -> str:
    emails_text = "\n\n".join(
        f"--- EMAIL {index} (ID: {email.id}) ---\n{_email_block(email, BATCH_BODY_LIMIT)}"
        for index, email in enumerate(emails, start=1)
    )

    return f"""Analyze ALL {len(emails)} emails. Respond ONLY with a JSON array.

{emails_text}

For each email, respond with this structure:
{{
  "emailId": "exact ID from above",
  "classification": "urgent|newsletter|personal|transactional|promotional|social|work",
  "productivity": "productive|unproductive",
  "sentiment": "positive|neutral|negative|requesting",
  "summary": "summary of the email (max 15 words)",
  "suggestedReply": "professional reply suggestion, or null if not applicable",
  "requiresAction": true|false,
  "keyPoints": ["key point 1", "key point 2"],
  "actionItems": [{{"task": "action to take", "priority": "high|medium|low", "dueDate": "optional"}}]
}}

Return exactly {len(emails)} objects in order. Valid JSON only, no markdown."""


def create_analysis_prompt(email: AnalysisInput) -> str:
    return f"""Analyze this email.

{_email_block(email, SINGLE_BODY_LIMIT)}

WRITE A USEFUL, PROFESSIONAL REPLY SUGGESTION (suggestedReply). If no reply is needed, briefly explain why in suggestedReply instead of null.

Respond with JSON only:
{{
  "classification": "urgent|newsletter|personal|transactional|promotional|social|work",
  "productivity": "productive|unproductive",
  "sentiment": "positive|neutral|negative|requesting",
  "summary": "concise summary",
  "suggestedReply": "professional reply or null",
  "requiresAction": true|false,
  "keyPoints": ["main points"],
  "actionItems": [{{"task": "action", "priority": "high|medium|low", "dueDate": "optional"}}]
}}"""
