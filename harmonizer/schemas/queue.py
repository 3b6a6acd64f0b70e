from enum import Enum
from pydantic import BaseModel, ConfigDict
from typing import List, Optional, Tuple
from datetime import datetime
from harmonizer.schemas.invoice import InvoiceRecord

class DataSourceMode(str, Enum):
    LIVE = "Live"
    SIMULATED = "Simulated"

class QueueSnapshot(BaseModel):
    """
    The whole visible queue state. The store swaps snapshots, never edits one,
    so readers always see a mode together with the records it produced.
    """
    model_config = ConfigDict(frozen=True)

    mode: DataSourceMode = DataSourceMode.SIMULATED
    invoices: Tuple[InvoiceRecord, ...] = ()
    refreshed_at: Optional[datetime] = None
    last_error: Optional[str] = None

class QueueView(BaseModel):
    mode: DataSourceMode
    refreshed_at: Optional[datetime] = None
    status_filter: str = "All"
    search: str = ""
    total: int = 0
    shown: int = 0
    invoices: List[InvoiceRecord] = []
    fallback_reason: Optional[str] = None
