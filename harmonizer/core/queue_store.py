import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional, Tuple
from harmonizer.core.remote import FetchError, RemoteClient
from harmonizer.core.simulator import FallbackSimulator
from harmonizer.schemas.invoice import InvoiceRecord, InvoiceStatus
from harmonizer.schemas.queue import DataSourceMode, QueueSnapshot

logger = logging.getLogger(__name__)

class QueueStore:
    """
    Single owner of the invoice queue.

    State lives in one immutable QueueSnapshot that is replaced in a single
    assignment, so a reader never sees records from one source under the
    mode flag of another.
    """

    def __init__(self, client: RemoteClient, simulator: FallbackSimulator):
        self._client = client
        self._simulator = simulator
        self._snapshot = QueueSnapshot()
        self._inflight: Optional["asyncio.Future[Optional[FetchError]]"] = None

    @property
    def snapshot(self) -> QueueSnapshot:
        return self._snapshot

    @property
    def mode(self) -> DataSourceMode:
        return self._snapshot.mode

    @property
    def invoices(self) -> Tuple[InvoiceRecord, ...]:
        return self._snapshot.invoices

    def get(self, invoice_id: str) -> Optional[InvoiceRecord]:
        return next((inv for inv in self._snapshot.invoices if inv.invoice_id == invoice_id), None)

    async def refresh(self) -> Optional[FetchError]:
        """
        Reload the queue from the backend, falling back to seed data.
        Returns the error that caused the fallback, or None when live.
        Calls made while a refresh is running join that refresh.
        """
        if self._inflight is not None and not self._inflight.done():
            logger.debug("Refresh already in flight, joining it")
            return await asyncio.shield(self._inflight)

        self._inflight = asyncio.ensure_future(self._refresh_once())
        return await asyncio.shield(self._inflight)

    async def _refresh_once(self) -> Optional[FetchError]:
        try:
            records = await self._client.fetch_queue()
        except FetchError as e:
            logger.warning(f"Queue fetch failed ({e}). Switching to simulated mode.")
            self._snapshot = QueueSnapshot(
                mode=DataSourceMode.SIMULATED,
                invoices=tuple(self._simulator.seed_queue()),
                refreshed_at=datetime.now(timezone.utc),
                last_error=str(e),
            )
            return e

        self._snapshot = QueueSnapshot(
            mode=DataSourceMode.LIVE,
            invoices=tuple(records),
            refreshed_at=datetime.now(timezone.utc),
        )
        logger.info(f"Queue refreshed in live mode. Count: {len(records)}")
        return None

    def apply_status_change(self, invoice_id: str, new_status: InvoiceStatus) -> bool:
        current = self._snapshot
        if not any(inv.invoice_id == invoice_id for inv in current.invoices):
            logger.debug(f"Status change for unknown invoice {invoice_id} ignored")
            return False

        self._snapshot = current.model_copy(update={
            "invoices": tuple(
                inv.with_status(new_status) if inv.invoice_id == invoice_id else inv
                for inv in current.invoices
            )
        })
        logger.info(f"Invoice {invoice_id} marked {new_status.value}")
        return True
