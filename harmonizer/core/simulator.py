import asyncio
import logging
from decimal import Decimal
from typing import AsyncIterator, Dict, List, Optional, Tuple
from harmonizer.core.config import Settings
from harmonizer.schemas.invoice import InvoiceRecord, PurchaseOrderRecord
from harmonizer.schemas.audit import AuditFinding, AuditPhase, AuditVerdict

logger = logging.getLogger(__name__)

# OFFLINE FALLBACK DATA
# Used whenever the workflow backend cannot serve the queue.
# Seed amounts encode the billed quantity in hundredths (1200 -> 12 units).
# That encoding is only meaningful here; live amounts are currency values.
SEED_INVOICES: Tuple[dict, ...] = (
    {"Invoice_ID": "INV-2024-001", "Vendor_Name": "Acme Industrial Supply", "Invoice_Date": "2024-03-01",
     "Amount": "1200", "Status": "Ready", "PO_Number": "4500012345"},
    {"Invoice_ID": "INV-2024-002", "Vendor_Name": "Globex Logistics", "Invoice_Date": "2024-03-04",
     "Amount": "1000", "Status": "Ready", "PO_Number": "4500012346"},
    {"Invoice_ID": "INV-2024-003", "Vendor_Name": "ACME Packaging Co.", "Invoice_Date": "2024-03-07",
     "Amount": "500", "Status": "Ready", "PO_Number": "4500012347"},
    {"Invoice_ID": "INV-2024-004", "Vendor_Name": "Initech Components", "Invoice_Date": "2024-03-11",
     "Amount": "2500", "Status": "Disputed", "PO_Number": "4500099999"},
    {"Invoice_ID": "INV-2024-005", "Vendor_Name": "Umbrella Chemicals", "Invoice_Date": "2024-03-15",
     "Amount": "800", "Status": "Posted", "PO_Number": "4500012348"},
)

SEED_PURCHASE_ORDERS: Dict[str, PurchaseOrderRecord] = {
    po.po_number: po for po in (
        PurchaseOrderRecord(po_number="4500012345", ordered_qty=12, received_qty=10,
                            unit_price=Decimal("100.00"), material_description="Hydraulic valve assembly"),
        PurchaseOrderRecord(po_number="4500012346", ordered_qty=10, received_qty=10,
                            unit_price=Decimal("100.00"), material_description="Pallet freight, regional"),
        PurchaseOrderRecord(po_number="4500012347", ordered_qty=5, received_qty=5,
                            unit_price=Decimal("100.00"), material_description="Corrugated shipping cartons"),
        PurchaseOrderRecord(po_number="4500012348", ordered_qty=8, received_qty=8,
                            unit_price=Decimal("100.00"), material_description="Industrial solvent, 20L drum"),
    )
}

MATCHED_NARRATIVE = "3-way match passed: invoice, purchase order and goods receipt agree."

def _format_units(value: Decimal) -> str:
    if value == value.to_integral_value():
        return str(int(value))
    return format(value.normalize(), "f")

class FallbackSimulator:
    """
    Deterministic stand-in for the workflow backend. Same invoice and seed
    data always produce the same finding.
    """

    def __init__(
        self,
        extraction_delay: float = 1.5,
        matching_delay: float = 1.5,
        purchase_orders: Optional[Dict[str, PurchaseOrderRecord]] = None,
    ):
        self.extraction_delay = extraction_delay
        self.matching_delay = matching_delay
        self._purchase_orders = dict(SEED_PURCHASE_ORDERS if purchase_orders is None else purchase_orders)

    @classmethod
    def from_settings(cls, settings: Settings) -> "FallbackSimulator":
        return cls(
            extraction_delay=settings.EXTRACTION_DELAY_SECONDS,
            matching_delay=settings.MATCHING_DELAY_SECONDS,
        )

    def seed_queue(self) -> List[InvoiceRecord]:
        return [InvoiceRecord.model_validate(row) for row in SEED_INVOICES]

    def purchase_order(self, po_number: str) -> Optional[PurchaseOrderRecord]:
        return self._purchase_orders.get(po_number)

    def evaluate(self, invoice: InvoiceRecord) -> AuditFinding:
        po = self.purchase_order(invoice.po_number)
        # No PO on file means nothing was received against it
        received_qty = po.received_qty if po else 0
        billed_units = invoice.amount / Decimal(100)

        if billed_units != received_qty:
            return AuditFinding(
                verdict=AuditVerdict.DISCREPANCY,
                narrative=(
                    f"Quantity mismatch on PO {invoice.po_number or '-'}: invoice bills "
                    f"{_format_units(billed_units)} units but the goods receipt shows "
                    f"{received_qty} received."
                ),
            )
        return AuditFinding(verdict=AuditVerdict.MATCHED, narrative=MATCHED_NARRATIVE)

    async def simulate_audit(self, invoice: InvoiceRecord) -> AsyncIterator[Tuple[AuditPhase, Optional[AuditFinding]]]:
        """
        Two ordered stages: extraction, then matching.
        Yields (MATCHING, None) once extraction finishes and
        (READY, finding) once matching finishes.
        """
        logger.debug(f"Simulated extraction started for {invoice.invoice_id}")
        await asyncio.sleep(self.extraction_delay)
        yield AuditPhase.MATCHING, None

        await asyncio.sleep(self.matching_delay)
        finding = self.evaluate(invoice)
        logger.debug(f"Simulated audit for {invoice.invoice_id}: {finding.verdict.value}")
        yield AuditPhase.READY, finding
