import asyncio
import json
from datetime import date
from decimal import Decimal
import httpx
import pytest
from harmonizer.core.remote import DEFAULT_NARRATIVE, FetchError, RemoteClient, parse_verdict
from harmonizer.schemas.audit import AuditVerdict
from harmonizer.schemas.invoice import InvoiceStatus

BASE_URL = "http://backend.test/webhook"

LIVE_ROWS_WITH_NEGATIVE_AMOUNT = [
    {"Invoice_ID": "OK-1", "Amount": 100},
    {"Invoice_ID": "BAD-1", "Amount": -5},
]

def make_client(backend):
    return RemoteClient(BASE_URL, tunnel_header_value="69420", transport=backend.transport())

def test_fetch_queue_normalizes_key_aliases(backend):
    records = asyncio.run(make_client(backend).fetch_queue())

    assert [r.invoice_id for r in records] == ["LV-100", "LV-101", "LV-102"]
    first, second, third = records
    assert first.vendor_name == "Acme Tooling"
    assert first.amount == Decimal("4150.25")
    assert first.po_number == "4500077001"
    assert first.invoice_date == date(2024, 5, 2)
    assert second.amount == Decimal("980.00")
    assert second.status == InvoiceStatus.READY
    assert third.vendor_name == "Contoso Metals"
    assert third.amount == Decimal("12400")
    assert third.invoice_date == date(2024, 5, 4)
    assert third.status == InvoiceStatus.POSTED
    assert third.po_number == "4500077003"

def test_requests_carry_tunnel_header(backend):
    asyncio.run(make_client(backend).fetch_queue())

    request = backend.requests[0]
    assert request.url == "http://backend.test/webhook/get-queue"
    assert request.headers["ngrok-skip-browser-warning"] == "69420"

def test_tunnel_header_can_be_disabled(backend):
    client = RemoteClient(BASE_URL, tunnel_header_value="", transport=backend.transport())
    asyncio.run(client.fetch_queue())
    assert "ngrok-skip-browser-warning" not in backend.requests[0].headers

def test_non_success_status_is_fetch_error(backend):
    backend.queue_status = 503
    backend.queue_body = {"message": "Service Unavailable"}

    with pytest.raises(FetchError) as exc:
        asyncio.run(make_client(backend).fetch_queue())
    assert exc.value.reason == FetchError.STATUS

def test_non_json_content_type_is_fetch_error(backend):
    backend.queue_content_type = "text/html"
    backend.queue_body = "<html>You are about to visit...</html>"

    with pytest.raises(FetchError) as exc:
        asyncio.run(make_client(backend).fetch_queue())
    assert exc.value.reason == FetchError.PAYLOAD

def test_transport_failure_is_fetch_error(backend):
    backend.queue_error = httpx.ConnectError

    with pytest.raises(FetchError) as exc:
        asyncio.run(make_client(backend).fetch_queue())
    assert exc.value.reason == FetchError.TRANSPORT

def test_non_array_queue_is_fetch_error(backend):
    backend.queue_body = {"Invoice_ID": "LV-1", "Amount": 10}
    with pytest.raises(FetchError):
        asyncio.run(make_client(backend).fetch_queue())

def test_one_bad_row_fails_the_whole_fetch(backend):
    backend.queue_body = LIVE_ROWS_WITH_NEGATIVE_AMOUNT
    with pytest.raises(FetchError) as exc:
        asyncio.run(make_client(backend).fetch_queue())
    assert "Row 1" in exc.value.detail

def test_duplicate_invoice_ids_fail_the_fetch(backend):
    backend.queue_body = [
        {"Invoice_ID": "DUP-1", "Amount": 100},
        {"invoice_id": "DUP-1", "amount": 200},
    ]
    with pytest.raises(FetchError) as exc:
        asyncio.run(make_client(backend).fetch_queue())
    assert "duplicate" in exc.value.detail

def test_missing_invoice_id_fails_the_fetch(backend):
    backend.queue_body = [{"Vendor_Name": "No Id Ltd", "Amount": 100}]
    with pytest.raises(FetchError):
        asyncio.run(make_client(backend).fetch_queue())

def test_process_invoice_sends_audit_request(backend):
    finding = asyncio.run(make_client(backend).process_invoice("LV-100", "4500077001", Decimal("4150.25")))

    assert finding.narrative == "PO and receipt agree."
    assert finding.verdict == AuditVerdict.MATCHED

    request = backend.requests[0]
    assert request.method == "POST"
    assert request.url.path == "/webhook/process-invoice"
    assert request.headers["ngrok-skip-browser-warning"] == "69420"
    assert json.loads(request.content) == {"invoiceId": "LV-100", "poNumber": "4500077001", "qty": 4150.25}

def test_process_invoice_fills_defaults(backend):
    backend.audit_body = {}
    finding = asyncio.run(make_client(backend).process_invoice("LV-100", "4500077001", Decimal("10")))

    assert finding.narrative == DEFAULT_NARRATIVE
    assert finding.verdict == AuditVerdict.PENDING_REVIEW

def test_process_invoice_reads_verdict_key(backend):
    backend.audit_body = {"finding": "Billed 12, received 10.", "verdict": "Mismatch", "status": "Matched"}
    finding = asyncio.run(make_client(backend).process_invoice("LV-100", "4500077001", Decimal("10")))
    assert finding.verdict == AuditVerdict.DISCREPANCY

def test_process_invoice_failure_is_fetch_error(backend):
    backend.audit_status = 500
    with pytest.raises(FetchError):
        asyncio.run(make_client(backend).process_invoice("LV-100", "4500077001", Decimal("10")))

    backend.audit_status = 200
    backend.audit_error = httpx.ReadTimeout
    with pytest.raises(FetchError) as exc:
        asyncio.run(make_client(backend).process_invoice("LV-100", "4500077001", Decimal("10")))
    assert exc.value.reason == FetchError.TRANSPORT

def test_process_invoice_rejects_non_json_reply(backend):
    backend.audit_content_type = "text/html"
    backend.audit_body = "<html>Tunnel warning page</html>"

    with pytest.raises(FetchError) as exc:
        asyncio.run(make_client(backend).process_invoice("LV-100", "4500077001", Decimal("10")))
    assert exc.value.reason == FetchError.PAYLOAD
    assert "text/html" in exc.value.detail

def test_process_invoice_rejects_non_object_body(backend):
    backend.audit_body = [{"finding": "PO and receipt agree.", "status": "Matched"}]

    with pytest.raises(FetchError) as exc:
        asyncio.run(make_client(backend).process_invoice("LV-100", "4500077001", Decimal("10")))
    assert exc.value.reason == FetchError.PAYLOAD
    assert "expected an object" in exc.value.detail

def test_parse_verdict_is_tolerant():
    assert parse_verdict("Pending Review") == AuditVerdict.PENDING_REVIEW
    assert parse_verdict("pending_review") == AuditVerdict.PENDING_REVIEW
    assert parse_verdict("MATCHED") == AuditVerdict.MATCHED
    assert parse_verdict("discrepancy") == AuditVerdict.DISCREPANCY
    assert parse_verdict("Error") == AuditVerdict.ERROR
    assert parse_verdict("something else") == AuditVerdict.PENDING_REVIEW
    assert parse_verdict(None) == AuditVerdict.PENDING_REVIEW
