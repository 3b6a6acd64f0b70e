from fastapi import Request
from harmonizer.core.activity import ActivityRepository
from harmonizer.core.orchestrator import InvoiceAuditOrchestrator

def get_orchestrator(request: Request) -> InvoiceAuditOrchestrator:
    return request.app.state.orchestrator

def get_activity_repo(request: Request) -> ActivityRepository:
    return request.app.state.activity_repo
