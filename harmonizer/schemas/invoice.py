from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator, ValidationInfo
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
import re
from typing import Optional

class InvoiceStatus(str, Enum):
    READY = "Ready"
    POSTED = "Posted"
    DISPUTED = "Disputed"

# Leading currency symbols and thousands separators seen in sheet exports
_AMOUNT_NOISE = re.compile(r"^[\$€£₹]|,")

class InvoiceRecord(BaseModel):
    """
    One pending invoice, in the canonical shape every component works with.
    Queue payloads use inconsistent key naming, so each field accepts all
    recognized aliases here and nowhere else.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    invoice_id: str = Field(
        ..., validation_alias=AliasChoices("Invoice_ID", "invoice_id", "invoiceId", "InvoiceID", "id")
    )
    vendor_name: str = Field(
        "", validation_alias=AliasChoices("Vendor_Name", "vendor_name", "vendorName", "vendor")
    )
    invoice_date: Optional[date] = Field(
        None, validation_alias=AliasChoices("Invoice_Date", "invoice_date", "invoiceDate", "date")
    )
    amount: Decimal = Field(..., ge=0, validation_alias=AliasChoices("Amount", "amount", "total"))
    status: InvoiceStatus = Field(
        InvoiceStatus.READY, validation_alias=AliasChoices("Status", "status")
    )
    po_number: str = Field(
        "", validation_alias=AliasChoices("PO_Number", "po_number", "poNumber", "PO")
    )

    @field_validator('invoice_id', mode='before')
    @classmethod
    def validate_invoice_id(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            v = str(v)
        if not isinstance(v, str) or not v.strip():
            raise ValueError("invoice_id must be a non-empty string")
        return v.strip()

    @field_validator('vendor_name', 'po_number', mode='before')
    @classmethod
    def validate_text(cls, v, info: ValidationInfo):
        if v is None:
            return ""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            # PO numbers come back as numbers from spreadsheet sources
            return str(int(v)) if float(v).is_integer() else str(v)
        if isinstance(v, str):
            return v.strip()
        raise ValueError(f"{info.field_name} must be text")

    @field_validator('invoice_date', mode='before')
    @classmethod
    def validate_date_format(cls, v):
        if v is None:
            return None
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return None
            try:
                if len(v) > 10:
                    return datetime.fromisoformat(v.replace("Z", "+00:00")).date()
                return datetime.strptime(v, '%Y-%m-%d').date()
            except ValueError:
                raise ValueError("Date must be in YYYY-MM-DD format")
        return v

    @field_validator('amount', mode='before')
    @classmethod
    def validate_numeric(cls, v, info: ValidationInfo):
        if isinstance(v, bool):
            raise ValueError(f"{info.field_name} must be strictly numeric")
        if isinstance(v, float):
            # Go through str so 12.1 stays 12.1 instead of its binary expansion
            return Decimal(str(v))
        if isinstance(v, str):
            cleaned = _AMOUNT_NOISE.sub("", v.strip())
            if not re.match(r'^-?\d+(\.\d+)?$', cleaned):
                raise ValueError(f"{info.field_name} must be strictly numeric")
            return Decimal(cleaned)
        return v

    @field_validator('status', mode='before')
    @classmethod
    def validate_status(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return InvoiceStatus.READY
        if isinstance(v, str):
            for member in InvoiceStatus:
                if member.value.lower() == v.strip().lower():
                    return member
            raise ValueError(f"Unknown invoice status '{v}'")
        return v

    def with_status(self, status: InvoiceStatus) -> "InvoiceRecord":
        return self.model_copy(update={"status": status})

class PurchaseOrderRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    po_number: str
    ordered_qty: int
    received_qty: int
    unit_price: Decimal
    material_description: str
