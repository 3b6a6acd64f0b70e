import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Set
from harmonizer.core.queue_store import QueueStore
from harmonizer.core.remote import FetchError, RemoteClient
from harmonizer.core.simulator import FallbackSimulator
from harmonizer.schemas.audit import AuditFinding, AuditPhase, AuditSession, AuditVerdict
from harmonizer.schemas.invoice import InvoiceRecord, InvoiceStatus
from harmonizer.schemas.queue import DataSourceMode

logger = logging.getLogger(__name__)

CONNECTION_FAILED_NARRATIVE = "Connection to the audit backend failed. Ensure the tunnel is open."

class SessionStateError(Exception):
    pass

def _now() -> datetime:
    return datetime.now(timezone.utc)

class AuditSessionManager:
    """
    Owns the one current AuditSession and drives it
    Idle -> Extracting -> (Matching) -> Ready.

    Every attempt carries its own session_id. An attempt may only write to
    the visible session while its id is still the current one; completions
    of superseded attempts are dropped. In-flight backend requests are never
    aborted, only ignored.
    """

    def __init__(self, store: QueueStore, client: RemoteClient, simulator: FallbackSimulator):
        self._store = store
        self._client = client
        self._simulator = simulator
        self._current = AuditSession()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def current(self) -> AuditSession:
        return self._current

    def _start(self, invoice: InvoiceRecord) -> AuditSession:
        previous = self._current
        if previous.in_flight:
            logger.info(f"Audit of {previous.subject.invoice_id} superseded by {invoice.invoice_id}")

        attempt = AuditSession(
            session_id=uuid.uuid4().hex,
            subject=invoice,
            phase=AuditPhase.EXTRACTING,
            mode=self._store.mode,
            started_at=_now(),
        )
        self._current = attempt
        logger.info(f"Audit started for {invoice.invoice_id} ({attempt.mode.value} mode)")
        return attempt

    def _advance(self, attempt: AuditSession, **changes) -> AuditSession:
        updated = attempt.model_copy(update=changes)
        if self._current.session_id == attempt.session_id:
            self._current = updated
            logger.debug(f"Session {attempt.session_id} -> {updated.phase.value}")
        else:
            logger.debug(f"Dropping stale {updated.phase.value} for session {attempt.session_id}")
        return updated

    async def _run(self, attempt: AuditSession) -> AuditSession:
        invoice = attempt.subject

        if attempt.mode == DataSourceMode.LIVE:
            try:
                finding = await self._client.process_invoice(invoice.invoice_id, invoice.po_number, invoice.amount)
            except FetchError as e:
                # Local to this session; the store stays live
                logger.warning(f"Audit request for {invoice.invoice_id} failed: {e}")
                finding = AuditFinding(verdict=AuditVerdict.ERROR, narrative=CONNECTION_FAILED_NARRATIVE)
            return self._advance(attempt, phase=AuditPhase.READY, finding=finding, completed_at=_now())

        async for phase, finding in self._simulator.simulate_audit(invoice):
            if phase == AuditPhase.READY:
                attempt = self._advance(attempt, phase=phase, finding=finding, completed_at=_now())
            else:
                attempt = self._advance(attempt, phase=phase)
        return attempt

    async def select(self, invoice: InvoiceRecord) -> AuditSession:
        """Start an audit and wait for it. Returns this attempt's final state, current or not."""
        return await self._run(self._start(invoice))

    def begin(self, invoice: InvoiceRecord) -> AuditSession:
        """Start an audit in the background and return its initial Extracting state."""
        attempt = self._start(invoice)
        task = asyncio.ensure_future(self._run(attempt))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return attempt

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Background audit failed: {task.exception()!r}")

    async def join(self):
        """Wait for every background attempt, current or superseded, to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def clear(self):
        if self._current.subject is not None:
            logger.info(f"Selection of {self._current.subject.invoice_id} cleared")
        self._current = AuditSession()

    def approve(self) -> Optional[InvoiceRecord]:
        return self._decide(InvoiceStatus.POSTED)

    def dispute(self) -> Optional[InvoiceRecord]:
        return self._decide(InvoiceStatus.DISPUTED)

    def _decide(self, status: InvoiceStatus) -> Optional[InvoiceRecord]:
        session = self._current
        if session.phase != AuditPhase.READY or session.subject is None:
            raise SessionStateError(f"No audit result to decide on (phase is {session.phase.value})")

        invoice_id = session.subject.invoice_id
        self._store.apply_status_change(invoice_id, status)
        self._current = AuditSession()
        return self._store.get(invoice_id)

    def cancel_pending(self):
        for task in list(self._tasks):
            task.cancel()
