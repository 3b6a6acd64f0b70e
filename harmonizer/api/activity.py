from fastapi import APIRouter, Depends
from typing import List, Optional
from harmonizer.api.deps import get_activity_repo
from harmonizer.core.activity import ActivityRepository
from harmonizer.schemas.activity import ActivityLogEntry

router = APIRouter()

@router.get("/activity", response_model=List[ActivityLogEntry])
async def list_activity(
    invoice_id: Optional[str] = None,
    repo: ActivityRepository = Depends(get_activity_repo),
):
    """Operator actions, oldest first. `invoice_id` narrows to one invoice's trail."""
    if invoice_id:
        return repo.for_invoice(invoice_id)
    return repo.get_all()
