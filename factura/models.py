"""Pydantic models for invoices, totals and AI extraction"""
from datetime import date
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .formatting import parse_locale_number


class CamelModel(BaseModel):
    """Accepts both the camelCase wire names and the Python attribute names"""
    model_config = ConfigDict(populate_by_name=True)


class LineItem(CamelModel):
    code: str = ""
    description: str = Field(min_length=1)
    quantity: float = Field(gt=0)
    catalog_price: float = Field(default=0.0, ge=0, alias="catalogPrice")
    vendor_price: float = Field(ge=0, alias="vendorPrice")

    @field_validator("code", mode="before")
    @classmethod
    def empty_code(cls, value):
        return "" if value is None else str(value).strip()

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("description must not be blank")
        return value

    @property
    def line_total(self) -> float:
        return self.quantity * self.vendor_price


class Invoice(CamelModel):
    client_name: Optional[str] = Field(default=None, alias="clientName")
    client_address: Optional[str] = Field(default=None, alias="clientAddress")
    invoice_number: Optional[str] = Field(default=None, alias="invoiceNumber")
    payment_due_date: Optional[str] = Field(default=None, alias="paymentDueDate")  # YYYY-MM-DD
    items: List[LineItem] = Field(min_length=1)


class InvoiceTotals(CamelModel):
    catalog_subtotal: float = Field(default=0.0, alias="catalogSubtotal")
    vendor_subtotal: float = Field(default=0.0, alias="vendorSubtotal")
    total_due: float = Field(default=0.0, alias="totalDue")


class PreparedInvoice(CamelModel):
    """Snapshot of a validated invoice taken when the form is submitted"""
    invoice: Invoice
    totals: InvoiceTotals
    issued_on: date = Field(default_factory=date.today, alias="issuedOn")


class FieldError(BaseModel):
    field: str
    message: str


# Spanish keys the model sometimes answers with
_SPANISH_KEYS = {
    "codigo": "code",
    "descripcion": "description",
    "cantidad": "quantity",
    "precioCatalogo": "catalogPrice",
    "precioVendedora": "vendorPrice",
}


class ExtractedItem(CamelModel):
    code: Optional[str] = None
    description: str = Field(min_length=1)
    quantity: float = Field(ge=1)
    catalog_price: Optional[float] = Field(default=None, ge=0, alias="catalogPrice")
    vendor_price: float = Field(ge=0, alias="vendorPrice")

    @model_validator(mode="before")
    @classmethod
    def translate_keys(cls, data):
        if isinstance(data, dict):
            data = {_SPANISH_KEYS.get(key, key): value for key, value in data.items()}
        return data

    @field_validator("quantity", "catalog_price", "vendor_price", mode="before")
    @classmethod
    def coerce_number(cls, value):
        if isinstance(value, str):
            parsed = parse_locale_number(value)
            return value if parsed is None else parsed
        return value

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("description must not be blank")
        return value

    @field_validator("code", mode="before")
    @classmethod
    def blank_code_is_missing(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        return value or None


class ExtractionResult(CamelModel):
    items: List[ExtractedItem] = []
    # Set only when the extraction call failed; an empty list with no error means nothing was found
    error: Optional[str] = None


class TextExtractionRequest(CamelModel):
    text: str


class ImageExtractionRequest(CamelModel):
    photo_data_uri: str = Field(alias="photoDataUri")


class TotalsRequest(CamelModel):
    items: List[dict] = []


class PreviewRow(CamelModel):
    code: str
    description: str
    quantity: str
    catalog_price: str = Field(alias="catalogPrice")
    vendor_price: str = Field(alias="vendorPrice")
    line_total: str = Field(alias="lineTotal")


class InvoicePreview(CamelModel):
    """Printable layout: every value is already formatted for display"""
    title: str = "FACTURA"
    invoice_number: Optional[str] = Field(default=None, alias="invoiceNumber")
    issued_on: str = Field(alias="issuedOn")
    due_date: Optional[str] = Field(default=None, alias="dueDate")
    client_name: str = Field(alias="clientName")
    client_address: Optional[str] = Field(default=None, alias="clientAddress")
    rows: List[PreviewRow] = []
    empty_message: Optional[str] = Field(default=None, alias="emptyMessage")
    catalog_subtotal: str = Field(alias="catalogSubtotal")
    vendor_subtotal: str = Field(alias="vendorSubtotal")
    total_due: str = Field(alias="totalDue")
    footer: str = "GRACIAS"
