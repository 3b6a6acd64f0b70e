from fastapi import APIRouter, Body, Depends, HTTPException, Query
import logging
from harmonizer.api.deps import get_orchestrator
from harmonizer.core.orchestrator import InvoiceAuditOrchestrator, InvoiceNotFoundError
from harmonizer.core.session import SessionStateError
from harmonizer.schemas.audit import AuditDecision, AuditSession, DecisionRequest, DecisionResponse

router = APIRouter()
logger = logging.getLogger(__name__)

@router.get("/audit/session", response_model=AuditSession)
async def get_session(orchestrator: InvoiceAuditOrchestrator = Depends(get_orchestrator)):
    return orchestrator.session

@router.delete("/audit/session", response_model=AuditSession)
async def clear_session(orchestrator: InvoiceAuditOrchestrator = Depends(get_orchestrator)):
    orchestrator.clear()
    return orchestrator.session

@router.post("/audit/session/decision", response_model=DecisionResponse)
async def decide(
    request: DecisionRequest = Body(...),
    orchestrator: InvoiceAuditOrchestrator = Depends(get_orchestrator),
):
    """Approve (post) or dispute the invoice whose audit result is on screen."""
    try:
        if request.decision == AuditDecision.APPROVE:
            invoice = orchestrator.approve()
        else:
            invoice = orchestrator.dispute()
    except SessionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return DecisionResponse(decision=request.decision, invoice=invoice, session=orchestrator.session)

@router.post("/audit/{invoice_id}", response_model=AuditSession)
async def select_invoice(
    invoice_id: str,
    wait: bool = Query(False),
    orchestrator: InvoiceAuditOrchestrator = Depends(get_orchestrator),
):
    """
    Select an invoice and start its audit. Returns the Extracting session
    right away, or the finished attempt when wait=true.
    """
    try:
        if wait:
            return await orchestrator.select(invoice_id)
        return orchestrator.begin(invoice_id)
    except InvoiceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
