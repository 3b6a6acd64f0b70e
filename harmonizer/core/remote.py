import httpx
import logging
import re
from decimal import Decimal
from typing import Any, List, Optional
from pydantic import ValidationError
from harmonizer.core.config import Settings
from harmonizer.schemas.invoice import InvoiceRecord
from harmonizer.schemas.audit import AuditFinding, AuditVerdict, ProcessInvoiceRequest

logger = logging.getLogger(__name__)

DEFAULT_NARRATIVE = "Analysis complete."
TUNNEL_HEADER = "ngrok-skip-browser-warning"

# Keys are lowercased with spaces, underscores and dashes removed
_VERDICT_ALIASES = {
    "matched": AuditVerdict.MATCHED,
    "match": AuditVerdict.MATCHED,
    "discrepancy": AuditVerdict.DISCREPANCY,
    "mismatch": AuditVerdict.DISCREPANCY,
    "error": AuditVerdict.ERROR,
    "pendingreview": AuditVerdict.PENDING_REVIEW,
    "pending": AuditVerdict.PENDING_REVIEW,
}

class FetchError(Exception):
    """
    Any failure talking to the workflow backend. Callers react to every kind
    the same way; `reason` only exists for logs.
    """
    TRANSPORT = "transport"
    STATUS = "status"
    PAYLOAD = "payload"

    def __init__(self, reason: str, detail: str):
        super().__init__(f"{reason}: {detail}")
        self.reason = reason
        self.detail = detail

def parse_verdict(value: Any) -> AuditVerdict:
    if not isinstance(value, str):
        return AuditVerdict.PENDING_REVIEW
    key = re.sub(r"[\s_\-]", "", value).lower()
    verdict = _VERDICT_ALIASES.get(key)
    if verdict is None:
        logger.debug(f"Unrecognized verdict '{value}', treating as pending review")
        return AuditVerdict.PENDING_REVIEW
    return verdict

class RemoteClient:
    """Single-shot calls against the workflow backend's webhook group. No retries."""

    def __init__(
        self,
        base_url: str,
        tunnel_header_value: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {TUNNEL_HEADER: tunnel_header_value} if tunnel_header_value else {}
        self.base_url = base_url
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "RemoteClient":
        return cls(
            base_url=settings.BACKEND_URL.rstrip("/") + settings.WEBHOOK_PREFIX,
            tunnel_header_value=settings.TUNNEL_SKIP_HEADER_VALUE,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def _request_json(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise FetchError(FetchError.TRANSPORT, f"{method} {path} failed: {e!r}") from e

        if not response.is_success:
            raise FetchError(FetchError.STATUS, f"{method} {path} returned HTTP {response.status_code}")

        content_type = response.headers.get("content-type", "")
        if "json" not in content_type.lower():
            raise FetchError(FetchError.PAYLOAD, f"{method} {path} returned non-JSON content type '{content_type}'")

        try:
            return response.json()
        except ValueError as e:
            raise FetchError(FetchError.PAYLOAD, f"{method} {path} returned an undecodable body") from e

    async def fetch_queue(self) -> List[InvoiceRecord]:
        data = await self._request_json("GET", "/get-queue")
        if not isinstance(data, list):
            raise FetchError(FetchError.PAYLOAD, f"Queue payload is a {type(data).__name__}, expected an array")

        records: List[InvoiceRecord] = []
        seen = set()
        for index, item in enumerate(data):
            if not isinstance(item, dict):
                raise FetchError(FetchError.PAYLOAD, f"Row {index}: expected an object")
            try:
                record = InvoiceRecord.model_validate(item)
            except ValidationError as e:
                first = e.errors()[0]
                raise FetchError(FetchError.PAYLOAD, f"Row {index}: {first['msg']}") from e
            if record.invoice_id in seen:
                raise FetchError(FetchError.PAYLOAD, f"Row {index}: duplicate invoice id '{record.invoice_id}'")
            seen.add(record.invoice_id)
            records.append(record)

        logger.info(f"Fetched {len(records)} invoices from {self.base_url}")
        return records

    async def process_invoice(self, invoice_id: str, po_number: str, amount: Decimal) -> AuditFinding:
        body = ProcessInvoiceRequest(
            invoice_id=invoice_id,
            po_number=po_number,
            qty=float(amount),
        ).model_dump(by_alias=True)

        data = await self._request_json("POST", "/process-invoice", json=body)
        if not isinstance(data, dict):
            raise FetchError(FetchError.PAYLOAD, f"Audit payload is a {type(data).__name__}, expected an object")

        narrative = data.get("finding")
        if not isinstance(narrative, str) or not narrative.strip():
            narrative = DEFAULT_NARRATIVE

        verdict_raw = data.get("verdict")
        if verdict_raw is None:
            verdict_raw = data.get("status")

        return AuditFinding(narrative=narrative.strip(), verdict=parse_verdict(verdict_raw))

    async def aclose(self):
        await self._client.aclose()
