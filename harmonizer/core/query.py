from typing import Iterable, List, Optional, Union
from harmonizer.schemas.invoice import InvoiceRecord, InvoiceStatus

ALL = "All"

StatusFilter = Union[InvoiceStatus, str, None]

def parse_status_filter(value: StatusFilter) -> Optional[InvoiceStatus]:
    """None means no status restriction ("All")."""
    if value is None or isinstance(value, InvoiceStatus):
        return value
    cleaned = value.strip().lower()
    if cleaned in ("", ALL.lower()):
        return None
    for member in InvoiceStatus:
        if member.value.lower() == cleaned:
            return member
    raise ValueError(f"Unknown status filter '{value}'")

def _contains(field: Optional[str], needle: str) -> bool:
    return needle in (field or "").lower()

def filter_invoices(
    invoices: Iterable[InvoiceRecord],
    status_filter: StatusFilter = ALL,
    search: Optional[str] = "",
) -> List[InvoiceRecord]:
    """
    Records matching the status filter whose vendor name or invoice id
    contains the search term, case-insensitively. Source order is kept.
    """
    status = parse_status_filter(status_filter)
    # Surrounding whitespace is ignored, inner spacing is matched literally
    needle = (search or "").strip().lower()

    return [
        inv for inv in invoices
        if (status is None or inv.status == status)
        and (not needle or _contains(inv.vendor_name, needle) or _contains(inv.invoice_id, needle))
    ]
