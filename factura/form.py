"""In-memory invoice form: item editing, AI extraction and submission"""
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from .extraction import MIN_TEXT_LENGTH, parse_invoice_image, parse_invoice_text
from .models import ExtractedItem, ExtractionResult, FieldError, InvoiceTotals, PreparedInvoice
from .totals import calculate_totals, validate_invoice


logger = logging.getLogger(__name__)


class FormState(str, Enum):
    EDITING = "editing"
    EXTRACTING_TEXT = "extracting_text"
    EXTRACTING_IMAGE = "extracting_image"
    PREVIEWING = "previewing"


class ExtractionBusyError(RuntimeError):
    """Another extraction is still running for this form"""


@dataclass
class Notification:
    title: str
    description: str
    variant: str = "default"  # "default" or "destructive"


def blank_item() -> Dict[str, Any]:
    return {
        "code": "",
        "description": "",
        "quantity": 1,
        "catalogPrice": 0,
        "vendorPrice": 0,
    }


def item_from_extraction(item: ExtractedItem) -> Dict[str, Any]:
    """Form row for an extracted item; a missing code stays empty"""
    return {
        "code": item.code or "",
        "description": item.description,
        "quantity": item.quantity,
        "catalogPrice": item.catalog_price or 0,
        "vendorPrice": item.vendor_price,
    }


class InvoiceForm:
    """
    State of one invoice being edited.

    Items hold raw, possibly half-typed values; totals are recomputed after
    every change. Nothing is persisted.
    """

    def __init__(self):
        self.client_name = ""
        self.client_address = ""
        self.invoice_number = ""
        self.payment_due_date = ""
        self.items: List[Dict[str, Any]] = [blank_item()]
        self.errors: List[FieldError] = []
        self.prepared: Optional[PreparedInvoice] = None
        self.state = FormState.EDITING
        self.totals = InvoiceTotals()
        self._recompute()

    def _recompute(self):
        self.totals = calculate_totals(self.items)

    def set_details(self, **details):
        for name in ("client_name", "client_address", "invoice_number", "payment_due_date"):
            if name in details:
                setattr(self, name, details.pop(name) or "")
        if details:
            raise TypeError(f"Unknown invoice fields: {', '.join(details)}")

    def add_item(self, **values) -> int:
        item = blank_item()
        item.update(values)
        self.items.append(item)
        self._recompute()
        return len(self.items) - 1

    def update_item(self, index: int, **values):
        unknown = set(values) - set(blank_item())
        if unknown:
            raise TypeError(f"Unknown item fields: {', '.join(sorted(unknown))}")
        self.items[index].update(values)
        self._recompute()

    def remove_item(self, index: int):
        del self.items[index]
        self._recompute()

    def replace_items(self, items: List[Dict[str, Any]]):
        self.items = [dict(blank_item(), **item) for item in items]
        self._recompute()

    def values(self) -> Dict[str, Any]:
        return {
            "clientName": self.client_name,
            "clientAddress": self.client_address,
            "invoiceNumber": self.invoice_number,
            "paymentDueDate": self.payment_due_date,
            "items": self.items,
        }

    @property
    def busy(self) -> bool:
        return self.state in (FormState.EXTRACTING_TEXT, FormState.EXTRACTING_IMAGE)

    def submit(self, issued_on: Optional[date] = None) -> Optional[PreparedInvoice]:
        """
        Validate the form and prepare it for preview.

        On success the items and totals are snapshotted and the form moves to
        the previewing state. On failure `errors` is filled and None returned.
        """
        if self.busy:
            raise ExtractionBusyError("Cannot submit while an extraction is running")

        invoice, errors = validate_invoice(self.values())
        self.errors = errors
        if invoice is None:
            logger.debug("Form submission rejected with %d error(s)", len(errors))
            self.state = FormState.EDITING
            return None

        self.prepared = PreparedInvoice(
            invoice=invoice,
            totals=calculate_totals(invoice.items),
            issued_on=issued_on or date.today(),
        )
        self.state = FormState.PREVIEWING
        return self.prepared

    def close_preview(self):
        self.state = FormState.EDITING

    def _begin_extraction(self, state: FormState):
        if self.busy:
            raise ExtractionBusyError(f"Extraction already in progress ({self.state.value})")
        self.state = state

    def _apply_extraction(self, result: ExtractionResult, source: str) -> Notification:
        if result.items:
            self.replace_items([item_from_extraction(item) for item in result.items])
            self.errors = []
            if source == "text":
                return Notification("Texto procesado", "Los ítems han sido cargados en el formulario.")
            return Notification("Imagen procesada", "Los ítems han sido extraídos de la imagen y cargados.")

        if result.error:
            return Notification("Error de IA", result.error, variant="destructive")
        if source == "text":
            return Notification(
                "No se extrajeron ítems",
                "La IA no pudo extraer ítems del texto proporcionado. Revise el formato o intente con una imagen.",
            )
        return Notification(
            "No se extrajeron ítems de la imagen",
            "La IA no pudo extraer ítems de la imagen. Intente con otra imagen o ingrese los datos manualmente.",
        )

    async def extract_from_text(self, text: str) -> Notification:
        """Replace the items with those the AI finds in `text`; leaves them untouched when none are found"""
        if not (text or "").strip():
            return Notification(
                "Texto vacío",
                "Por favor, pegue el texto de los ítems a procesar.",
                variant="destructive",
            )
        if len(text.strip()) < MIN_TEXT_LENGTH:
            return Notification(
                "Texto muy corto",
                f"El texto debe tener al menos {MIN_TEXT_LENGTH} caracteres.",
                variant="destructive",
            )
        self._begin_extraction(FormState.EXTRACTING_TEXT)
        try:
            result = await parse_invoice_text(text)
        finally:
            self.state = FormState.EDITING
        return self._apply_extraction(result, "text")

    async def extract_from_image(self, photo_data_uri: str) -> Notification:
        """Replace the items with those the AI finds in the photo"""
        if not photo_data_uri:
            return Notification(
                "No hay imagen seleccionada",
                "Por favor, seleccione un archivo de imagen.",
                variant="destructive",
            )
        self._begin_extraction(FormState.EXTRACTING_IMAGE)
        try:
            result = await parse_invoice_image(photo_data_uri)
        finally:
            self.state = FormState.EDITING
        return self._apply_extraction(result, "image")
