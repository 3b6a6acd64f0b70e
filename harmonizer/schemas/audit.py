from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from enum import Enum
from harmonizer.schemas.invoice import InvoiceRecord
from harmonizer.schemas.queue import DataSourceMode

class AuditVerdict(str, Enum):
    MATCHED = "Matched"
    DISCREPANCY = "Discrepancy"
    ERROR = "Error"
    PENDING_REVIEW = "PendingReview"

class AuditPhase(str, Enum):
    IDLE = "Idle"
    EXTRACTING = "Extracting"
    MATCHING = "Matching"
    READY = "Ready"
    FAILED = "Failed"

class AuditDecision(str, Enum):
    APPROVE = "approve"
    DISPUTE = "dispute"

class AuditFinding(BaseModel):
    model_config = ConfigDict(frozen=True)

    narrative: str
    verdict: AuditVerdict

class AuditSession(BaseModel):
    """Immutable view of one audit attempt. Each transition produces a new value."""
    model_config = ConfigDict(frozen=True)

    session_id: Optional[str] = None
    subject: Optional[InvoiceRecord] = None
    phase: AuditPhase = AuditPhase.IDLE
    finding: Optional[AuditFinding] = None
    mode: Optional[DataSourceMode] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def in_flight(self) -> bool:
        return self.phase in (AuditPhase.EXTRACTING, AuditPhase.MATCHING)

class ProcessInvoiceRequest(BaseModel):
    invoice_id: str = Field(..., serialization_alias="invoiceId")
    po_number: str = Field(..., serialization_alias="poNumber")
    qty: float

class DecisionRequest(BaseModel):
    decision: AuditDecision

class DecisionResponse(BaseModel):
    decision: AuditDecision
    invoice: Optional[InvoiceRecord] = None
    session: AuditSession
