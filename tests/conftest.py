import asyncio
import json
import httpx
import pytest
from harmonizer.core.orchestrator import InvoiceAuditOrchestrator
from harmonizer.core.remote import RemoteClient
from harmonizer.core.simulator import FallbackSimulator

BASE_URL = "http://backend.test/webhook"

LIVE_QUEUE = [
    {"Invoice_ID": "LV-100", "Vendor_Name": "Acme Tooling", "Invoice_Date": "2024-05-02",
     "Amount": 4150.25, "Status": "Ready", "PO_Number": 4500077001},
    {"invoice_id": "LV-101", "vendor_name": "Northwind Traders", "invoice_date": "2024-05-03",
     "amount": "$980.00", "status": "ready", "po_number": "4500077002"},
    {"id": "LV-102", "vendor": "Contoso Metals", "date": "2024-05-04T09:30:00Z",
     "total": "12,400", "status": "Posted", "poNumber": "4500077003"},
]

class FakeBackend:
    """Scriptable stand-in for the n8n webhook group."""

    def __init__(self):
        self.queue_status = 200
        self.queue_body = LIVE_QUEUE
        self.queue_content_type = "application/json"
        self.queue_error = None
        self.audit_status = 200
        self.audit_body = {"finding": "PO and receipt agree.", "status": "Matched"}
        self.audit_content_type = "application/json"
        self.audit_error = None
        # Per-invoice overrides, keyed by the invoiceId sent to /process-invoice
        self.audit_bodies = {}
        self.audit_delays = {}
        self.requests = []

    def _reply(self, request, status, body, content_type="application/json"):
        if content_type == "application/json":
            return httpx.Response(status, json=body, request=request)
        return httpx.Response(status, text=str(body), headers={"content-type": content_type}, request=request)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/get-queue"):
            if self.queue_error:
                raise self.queue_error("queue unreachable", request=request)
            return self._reply(request, self.queue_status, self.queue_body, self.queue_content_type)
        if request.url.path.endswith("/process-invoice"):
            if self.audit_error:
                raise self.audit_error("audit unreachable", request=request)
            body = self.audit_bodies.get(self._audited_id(request), self.audit_body)
            return self._reply(request, self.audit_status, body, self.audit_content_type)
        return httpx.Response(404, json={"message": "not found"}, request=request)

    @staticmethod
    def _audited_id(request: httpx.Request):
        return json.loads(request.content).get("invoiceId")

    async def handle_async(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/process-invoice"):
            await asyncio.sleep(self.audit_delays.get(self._audited_id(request), 0))
        return self.handle(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle_async)

    def calls_to(self, suffix: str) -> int:
        return sum(1 for r in self.requests if r.url.path.endswith(suffix))

@pytest.fixture
def backend():
    return FakeBackend()

@pytest.fixture
def make_orchestrator(backend):
    def factory(extraction_delay: float = 0.0, matching_delay: float = 0.0) -> InvoiceAuditOrchestrator:
        client = RemoteClient(BASE_URL, tunnel_header_value="69420", transport=backend.transport())
        simulator = FallbackSimulator(extraction_delay=extraction_delay, matching_delay=matching_delay)
        return InvoiceAuditOrchestrator(client, simulator)
    return factory
