from fastapi import APIRouter, Depends
from harmonizer.api.deps import get_orchestrator
from harmonizer.core.orchestrator import InvoiceAuditOrchestrator

router = APIRouter()

@router.get("/health")
async def health_check(orchestrator: InvoiceAuditOrchestrator = Depends(get_orchestrator)):
    return {"status": "healthy", "mode": orchestrator.store.mode.value}
