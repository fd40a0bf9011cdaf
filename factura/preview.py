"""Printable invoice layout built from a prepared invoice"""
from .formatting import format_currency, format_due_date, format_long_date, format_quantity
from .models import InvoicePreview, PreparedInvoice, PreviewRow


# Fixed palette so exports do not depend on the client's theme
PRIMARY_COLOR = "#987ece"
TEXT_COLOR = "#1f2937"
MUTED_TEXT_COLOR = "#6b7280"
BACKGROUND_COLOR = "#ffffff"

NO_CLIENT = "Cliente no especificado"
NO_ITEMS = "No hay ítems en esta factura."


def single_line(value):
    """Collapse line breaks and runs of whitespace; cells are drawn on one line"""
    if value is None:
        return None
    return " ".join(value.split())


def build_preview(prepared: PreparedInvoice) -> InvoicePreview:
    invoice = prepared.invoice
    totals = prepared.totals

    rows = [
        PreviewRow(
            code=single_line(item.code) or "-",
            description=single_line(item.description),
            quantity=format_quantity(item.quantity),
            catalog_price=format_currency(item.catalog_price),
            vendor_price=format_currency(item.vendor_price),
            line_total=format_currency(item.line_total),
        )
        for item in invoice.items
    ]

    return InvoicePreview(
        invoice_number=single_line(invoice.invoice_number),
        issued_on=format_long_date(prepared.issued_on),
        due_date=single_line(format_due_date(invoice.payment_due_date)) or None,
        client_name=single_line(invoice.client_name) or NO_CLIENT,
        client_address=single_line(invoice.client_address),
        rows=rows,
        empty_message=None if rows else NO_ITEMS,
        catalog_subtotal=format_currency(totals.catalog_subtotal),
        vendor_subtotal=format_currency(totals.vendor_subtotal),
        total_due=format_currency(totals.total_due),
    )
