"""Pytest configuration and fixtures"""
import io
import pytest
import fitz
from PIL import Image
from factura.models import Invoice, InvoiceTotals, LineItem, PreparedInvoice
from datetime import date


@pytest.fixture
def sample_items():
    """Two line items as the form sends them"""
    return [
        {
            "code": "COD001",
            "description": "Camisa Talla L",
            "quantity": 2,
            "catalogPrice": 25,
            "vendorPrice": 20
        },
        {
            "code": "",
            "description": "Pantalón Jean Azul",
            "quantity": 1,
            "catalogPrice": 0,
            "vendorPrice": 45.5
        }
    ]


@pytest.fixture
def sample_invoice_data(sample_items):
    """Raw form values for a complete invoice"""
    return {
        "clientName": "María López",
        "clientAddress": "Av. Arequipa 123, Lima",
        "invoiceNumber": "F001-123",
        "paymentDueDate": "2026-11-15",
        "items": sample_items
    }


@pytest.fixture
def prepared_invoice():
    """Validated invoice snapshot"""
    items = [
        LineItem(code="COD001", description="Camisa Talla L", quantity=2, catalog_price=25, vendor_price=20),
        LineItem(description="Pantalón Jean Azul", quantity=1, vendor_price=45.5),
    ]
    return PreparedInvoice(
        invoice=Invoice(
            client_name="María López",
            invoice_number="F001-123",
            payment_due_date="2026-11-15",
            items=items
        ),
        totals=InvoiceTotals(catalog_subtotal=50, vendor_subtotal=85.5, total_due=85.5),
        issued_on=date(2026, 10, 19)
    )


@pytest.fixture
def sample_image_bytes():
    """A small PNG image"""
    buffered = io.BytesIO()
    Image.new("RGB", (40, 20), (200, 200, 200)).save(buffered, format="PNG")
    return buffered.getvalue()


@pytest.fixture
def large_image_bytes():
    """A noisy PNG big enough that compression shrinks it"""
    image = Image.effect_noise((2400, 1800), 64).convert("RGB")
    buffered = io.BytesIO()
    image.save(buffered, format="PNG")
    return buffered.getvalue()


@pytest.fixture
def sample_pdf_bytes():
    """A one-page PDF with some text"""
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), "COD001 Camisa Talla L 2 x 20,00")
    pdf_bytes = doc.tobytes()
    doc.close()
    return pdf_bytes


@pytest.fixture
def items_response():
    """Raw model output with two items"""
    return (
        '{"items": ['
        '{"code": "COD001", "description": "Camisa Talla L", "quantity": 2, "catalogPrice": 25, "vendorPrice": 20},'
        '{"description": "Pantalón Jean Azul", "quantity": 1, "vendorPrice": 45.5}'
        ']}'
    )
