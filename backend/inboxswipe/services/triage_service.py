"""
Triage orchestrator.

Drives the swipe-to-triage flow for one user session as a small state
machine:

    loading --load--> listing | empty | failed
    listing --clear--> listing | empty
    listing --open--> reading
    reading --close--> listing | empty   (reading an email consumes it)

The pending queue is every loaded email not yet cleared; the head of the
queue is the current card. Each time we land in ``listing`` the first
``window`` pending emails are pre-warmed: uncached ones are fetched in
full and analyzed in a background task, without blocking the transition.

Background work is never cancelled. A result for an email the user has
already cleared is still recorded and cached, it just doesn't move the UI.
"""
import asyncio
from datetime import date
from typing import Awaitable, Callable, Dict, List, Optional, Set

from inboxswipe.config import get_settings
from inboxswipe.integrations.gmail_client import GmailClient
from inboxswipe.models.analysis import AnalysisInput, EmailAnalysis
from inboxswipe.models.email import EmailMetadata, ProcessedEmail
from inboxswipe.models.triage import TriageSnapshot, TriageState
from inboxswipe.services.ai_service import analyze_emails, is_fallback
from inboxswipe.services.analysis_cache import AnalysisCache
from inboxswipe.utils.logger import get_logger
from inboxswipe.utils.errors import AppError, InvalidTransitionError

logger = get_logger(__name__)

Analyzer = Callable[[List[AnalysisInput]], Awaitable[List[EmailAnalysis]]]


def to_analysis_input(email: ProcessedEmail) -> AnalysisInput:
    return AnalysisInput(
        id=email.id,
        sender=email.sender_name,
        subject=email.subject,
        body=email.body,
        snippet=email.snippet,
    )


class TriageOrchestrator:
    """
    Triage state machine for one session.

    Usage:
        triage = TriageOrchestrator(GmailClient(token), get_analysis_cache(user_id))
        await triage.load()
        triage.clear()
        await triage.open()
        triage.close()
    """

    def __init__(
        self,
        gmail: GmailClient,
        cache: AnalysisCache,
        analyzer: Analyzer = analyze_emails,
        window: Optional[int] = None,
    ):
        settings = get_settings()
        self.gmail = gmail
        self.cache = cache
        self.analyzer = analyzer
        self.window = window or settings.prewarm_window
        self.page_size = settings.triage_page_size

        self.state = TriageState.LOADING
        self.error: Optional[str] = None
        self.emails: List[EmailMetadata] = []
        self.cleared: Set[str] = set()
        self.full_emails: Dict[str, ProcessedEmail] = {}
        self.analyses: Dict[str, EmailAnalysis] = cache.get_all()

        # email id -> task analyzing it
        self._in_flight: Dict[str, asyncio.Task] = {}
        self._tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    @property
    def pending(self) -> List[EmailMetadata]:
        return [email for email in self.emails if email.id not in self.cleared]

    @property
    def current(self) -> Optional[EmailMetadata]:
        pending = self.pending
        return pending[0] if pending else None

    @property
    def progress(self) -> tuple:
        """(cleared, total) for the loaded emails."""
        ids = {email.id for email in self.emails}
        return len(self.cleared & ids), len(ids)

    def analysis_for(self, email_id: str) -> Optional[EmailAnalysis]:
        return self.analyses.get(email_id) or self.cache.get(email_id)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _require(self, action: str, *states: TriageState) -> None:
        if self.state not in states:
            raise InvalidTransitionError(action, self.state.value)

    def _fail(self, message: str) -> None:
        logger.warning(f"Triage load failed: {message}")
        self.state = TriageState.FAILED
        self.error = message

    def _enter_listing(self) -> None:
        if self.current is None:
            self.state = TriageState.EMPTY
            return
        self.state = TriageState.LISTING
        self.prewarm()

    async def load(self, count: Optional[int] = None, after: Optional[date] = None) -> None:
        """
        Load a page of email metadata and pre-warm the first window.

        An empty mailbox ends in ``empty``. A mailbox we couldn't read
        (rejected token, or ids listed but no metadata came back) ends in
        ``failed`` so the UI can tell the two apart.
        """
        if self.state == TriageState.READING:
            raise InvalidTransitionError("load", self.state.value)

        self.state = TriageState.LOADING
        self.error = None

        try:
            ids = await self.gmail.list_message_ids(count or self.page_size, after)
        except AppError as e:
            self._fail(e.message)
            return

        metadata = await self.gmail.fetch_metadata(ids) if ids else []
        if ids and not metadata:
            self._fail("Couldn't load messages from Gmail.")
            return

        self.emails = metadata
        logger.info(f"Triage loaded {len(metadata)} emails, {len(self.pending)} pending")
        self._enter_listing()

    def clear(self) -> None:
        """Mark the current email as done and move to the next one."""
        self._require("clear", TriageState.LISTING)
        self.cleared.add(self.current.id)
        self._enter_listing()

    async def open(self) -> None:
        """
        Open the current email.

        Makes sure its full body and analysis are loaded first. If the
        queue moved on while we waited, the stale open is dropped.
        """
        self._require("open", TriageState.LISTING)
        head = self.current

        task = self._in_flight.get(head.id)
        if task is not None:
            await asyncio.wait([task])

        if head.id not in self.analyses and self.cache.get(head.id) is None:
            await self._analyze([head.id])
        elif head.id not in self.full_emails:
            await self._fetch_full([head.id])

        if self.state != TriageState.LISTING or self.current is None or self.current.id != head.id:
            logger.info(f"Dropping stale open of {head.id}")
            return
        self.state = TriageState.READING

    def close(self) -> None:
        """Leave the detail view; the email that was read is cleared."""
        self._require("close", TriageState.READING)
        self.state = TriageState.LISTING
        self.clear()

    async def reanalyze(self) -> Optional[EmailAnalysis]:
        """Analyze the current email again, overwriting its cached analysis."""
        self._require("reanalyze", TriageState.LISTING, TriageState.READING)
        head = self.current
        await self._analyze([head.id])
        return self.analyses.get(head.id)

    # ------------------------------------------------------------------
    # Pre-warm
    # ------------------------------------------------------------------

    def prewarm(self) -> Optional[asyncio.Task]:
        """
        Dispatch analysis for uncached emails in the next window.

        Returns the background task, or None if there was nothing to do.
        """
        window_ids = [email.id for email in self.pending[:self.window]]
        todo = [
            email_id for email_id in self.cache.uncached_of(window_ids)
            if email_id not in self.analyses and email_id not in self._in_flight
        ]
        if not todo:
            return None

        logger.info(f"Pre-warming analysis for {len(todo)} emails")
        task = asyncio.create_task(self._prewarm(todo))
        self._tasks.add(task)
        for email_id in todo:
            self._in_flight[email_id] = task
        task.add_done_callback(self._forget)
        return task

    def _forget(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        for email_id in [i for i, t in self._in_flight.items() if t is task]:
            del self._in_flight[email_id]

    async def _prewarm(self, ids: List[str]) -> None:
        try:
            await self._analyze(ids)
        except Exception:
            logger.exception(f"Pre-warm of {len(ids)} emails failed")

    async def drain(self) -> None:
        """Wait for all background pre-warm work."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Work
    # ------------------------------------------------------------------

    async def _fetch_full(self, ids: List[str]) -> List[ProcessedEmail]:
        emails = await self.gmail.fetch_full(ids)
        for email in emails:
            self.full_emails[email.id] = email
        return emails

    async def _analyze(self, ids: List[str]) -> List[EmailAnalysis]:
        emails = await self._fetch_full(ids)
        analyses = await self.analyzer([to_analysis_input(email) for email in emails])
        self._record(analyses)
        return analyses

    def _record(self, analyses: List[EmailAnalysis]) -> None:
        """Keep analyses for the session; persist the ones that aren't fallbacks."""
        for analysis in analyses:
            if is_fallback(analysis) and analysis.email_id in self.analyses:
                continue
            self.analyses[analysis.email_id] = analysis
        self.cache.put([analysis for analysis in analyses if not is_fallback(analysis)])

    # ------------------------------------------------------------------
    # View
    # ------------------------------------------------------------------

    def snapshot(self) -> TriageSnapshot:
        head = self.current
        cleared, total = self.progress
        return TriageSnapshot(
            state=self.state,
            current=head,
            email=self.full_emails.get(head.id) if head else None,
            analysis=self.analysis_for(head.id) if head else None,
            remaining=len(self.pending),
            cleared=cleared,
            total=total,
            error=self.error,
        )
