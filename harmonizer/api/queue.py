from fastapi import APIRouter, Depends, HTTPException, Query
import logging
from harmonizer.api.deps import get_orchestrator
from harmonizer.core.orchestrator import InvoiceAuditOrchestrator
from harmonizer.core.query import ALL
from harmonizer.schemas.queue import QueueView

router = APIRouter()
logger = logging.getLogger(__name__)

@router.get("/queue", response_model=QueueView)
async def get_queue(
    status: str = Query(ALL),
    search: str = Query(""),
    orchestrator: InvoiceAuditOrchestrator = Depends(get_orchestrator),
):
    try:
        return orchestrator.query(status, search)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.post("/queue/refresh", response_model=QueueView)
async def refresh_queue(orchestrator: InvoiceAuditOrchestrator = Depends(get_orchestrator)):
    """
    Reload the queue from the workflow backend. A failed fetch is not an
    error here: the queue switches to simulated data and says why.
    """
    error = await orchestrator.refresh()
    if error is not None:
        logger.info(f"Refresh fell back to simulated data ({error.reason})")
    return orchestrator.query()
