from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime, timezone
import uuid
from enum import Enum
from harmonizer.schemas.invoice import InvoiceStatus
from harmonizer.schemas.queue import DataSourceMode

class ActivityStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"

class ActivityLogEntry(BaseModel):
    """
    One operator request against the console. `invoice_id` is the invoice the
    request acted on (selected, decided or cleared), and `invoice_status` its
    queue status once the request finished.
    """
    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    endpoint: str
    method: str
    action_type: str
    actor: str = "operator"
    input_hash: Optional[str] = None
    status: ActivityStatus
    mode: Optional[DataSourceMode] = None
    invoice_id: Optional[str] = None
    invoice_status: Optional[InvoiceStatus] = None
