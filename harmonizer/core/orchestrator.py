import logging
from typing import Optional
import httpx
from harmonizer.core.config import Settings, settings as default_settings
from harmonizer.core.query import ALL, StatusFilter, filter_invoices, parse_status_filter
from harmonizer.core.queue_store import QueueStore
from harmonizer.core.remote import FetchError, RemoteClient
from harmonizer.core.session import AuditSessionManager
from harmonizer.core.simulator import FallbackSimulator
from harmonizer.schemas.audit import AuditSession
from harmonizer.schemas.invoice import InvoiceRecord
from harmonizer.schemas.queue import QueueView

logger = logging.getLogger(__name__)

class InvoiceNotFoundError(Exception):
    def __init__(self, invoice_id: str):
        super().__init__(f"Invoice '{invoice_id}' is not in the current queue")
        self.invoice_id = invoice_id

class InvoiceAuditOrchestrator:
    """
    The operations the console can invoke. Presentation code reads state from
    here and changes it only through these methods.
    """

    def __init__(
        self,
        client: RemoteClient,
        simulator: FallbackSimulator,
        store: Optional[QueueStore] = None,
    ):
        self.client = client
        self.simulator = simulator
        self.store = store or QueueStore(client, simulator)
        self.sessions = AuditSessionManager(self.store, client, simulator)

    async def refresh(self) -> Optional[FetchError]:
        error = await self.store.refresh()
        # Sessions never outlive the snapshot their subject came from
        self.sessions.clear()
        return error

    def query(self, status_filter: StatusFilter = ALL, search: Optional[str] = "") -> QueueView:
        snapshot = self.store.snapshot
        status = parse_status_filter(status_filter)
        shown = filter_invoices(snapshot.invoices, status, search)
        return QueueView(
            mode=snapshot.mode,
            refreshed_at=snapshot.refreshed_at,
            status_filter=status.value if status else ALL,
            search=search or "",
            total=len(snapshot.invoices),
            shown=len(shown),
            invoices=shown,
            fallback_reason=snapshot.last_error,
        )

    def _lookup(self, invoice_id: str) -> InvoiceRecord:
        invoice = self.store.get(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)
        return invoice

    async def select(self, invoice_id: str) -> AuditSession:
        return await self.sessions.select(self._lookup(invoice_id))

    def begin(self, invoice_id: str) -> AuditSession:
        return self.sessions.begin(self._lookup(invoice_id))

    @property
    def session(self) -> AuditSession:
        return self.sessions.current

    def approve(self) -> Optional[InvoiceRecord]:
        return self.sessions.approve()

    def dispute(self) -> Optional[InvoiceRecord]:
        return self.sessions.dispute()

    def clear(self):
        self.sessions.clear()

    async def aclose(self):
        self.sessions.cancel_pending()
        await self.client.aclose()

def build_orchestrator(
    settings: Settings = default_settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> InvoiceAuditOrchestrator:
    return InvoiceAuditOrchestrator(
        client=RemoteClient.from_settings(settings, transport=transport),
        simulator=FallbackSimulator.from_settings(settings),
    )
