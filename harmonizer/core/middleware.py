from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.types import ASGIApp
import hashlib
from harmonizer.core.activity import ActivityRepository
from harmonizer.core.orchestrator import InvoiceAuditOrchestrator
from harmonizer.schemas.activity import ActivityLogEntry, ActivityStatus
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

AUDIT_PREFIX = "/audit/"

def classify_action(method: str, path: str) -> str:
    if path == "/health":
        return "HEALTH_CHECK"
    if path == "/queue/refresh":
        return "REFRESH"
    if path == "/queue":
        return "QUERY"
    if path == "/audit/session/decision":
        return "DECISION"
    if path == "/audit/session":
        return "CLEAR" if method == "DELETE" else "SESSION_VIEW"
    if path.startswith(AUDIT_PREFIX) and method == "POST":
        return "SELECT"
    if path == "/activity":
        return "ACTIVITY_VIEW"
    return "UNKNOWN"

class ActivityLogMiddleware(BaseHTTPMiddleware):
    """Records every operator request, successful or not, in the activity log."""

    def __init__(self, app: ASGIApp, repository: ActivityRepository, orchestrator: InvoiceAuditOrchestrator):
        super().__init__(app)
        self.repository = repository
        self.orchestrator = orchestrator

    def _target_invoice(self, action_type: str, endpoint: str) -> Optional[str]:
        if action_type == "SELECT":
            return endpoint[len(AUDIT_PREFIX):] or None
        if action_type in ("DECISION", "CLEAR"):
            # Must be read before the request resets the session
            subject = self.orchestrator.session.subject
            return subject.invoice_id if subject is not None else None
        return None

    async def dispatch(self, request: Request, call_next: Callable):
        endpoint = request.url.path
        method = request.method
        action_type = classify_action(method, endpoint)
        actor = request.headers.get("X-Operator") or "operator"
        invoice_id = self._target_invoice(action_type, endpoint)

        input_hash = None
        request_body_bytes = b""
        try:
            request_body_bytes = await request.body()
            # Always hash the body, even if empty, for determinism
            input_hash = hashlib.sha256(request_body_bytes).hexdigest()
        except Exception as e:
            logger.debug(f"Could not read request body for {endpoint}: {e}")

        # Re-inject body, the route reads it again
        original_receive = request._receive
        body_replayed = False

        async def receive():
            nonlocal body_replayed
            if body_replayed:
                return await original_receive()
            body_replayed = True
            return {"type": "http.request", "body": request_body_bytes, "more_body": False}

        request._receive = receive

        status = ActivityStatus.FAILURE
        try:
            response = await call_next(request)
            if 200 <= response.status_code < 300:
                status = ActivityStatus.SUCCESS
            return response
        finally:
            try:
                invoice = self.orchestrator.store.get(invoice_id) if invoice_id else None
                self.repository.save(ActivityLogEntry(
                    endpoint=endpoint,
                    method=method,
                    action_type=action_type,
                    actor=actor,
                    input_hash=input_hash,
                    status=status,
                    mode=self.orchestrator.store.mode,
                    invoice_id=invoice_id,
                    invoice_status=invoice.status if invoice else None,
                ))
            except Exception as log_error:
                logger.error(f"Activity Logging Failed: {log_error}")
