"""Tests for the invoice form state"""
import asyncio
import pytest
from datetime import date
from unittest.mock import patch, AsyncMock
from factura.form import ExtractionBusyError, FormState, InvoiceForm
from factura.models import ExtractedItem, ExtractionResult


def make_result(*items, error=None):
    return ExtractionResult(items=[ExtractedItem.model_validate(item) for item in items], error=error)


def test_new_form_has_one_blank_item():
    """Test the initial form state"""
    form = InvoiceForm()

    assert form.state == FormState.EDITING
    assert len(form.items) == 1
    assert form.items[0]["quantity"] == 1
    assert form.totals.total_due == 0.0


def test_totals_follow_item_changes():
    """Test totals are recomputed on every edit"""
    form = InvoiceForm()
    form.update_item(0, description="Camisa", quantity=2, catalogPrice=25, vendorPrice=20)
    assert form.totals.vendor_subtotal == 40.0

    form.add_item(description="Pantalón", vendorPrice="45.5")
    assert form.totals.catalog_subtotal == 50.0
    assert form.totals.vendor_subtotal == 85.5
    assert form.totals.total_due == 85.5

    form.remove_item(0)
    assert form.totals.total_due == 45.5


def test_update_item_unknown_field():
    """Test unknown item fields are rejected"""
    form = InvoiceForm()
    with pytest.raises(TypeError):
        form.update_item(0, price=10)


def test_submit_without_items_fails():
    """Test submission with zero items"""
    form = InvoiceForm()
    form.remove_item(0)

    assert form.submit() is None
    assert form.state == FormState.EDITING
    assert form.errors[0].field == "items"


def test_submit_with_invalid_item_keeps_editing():
    """Test inline errors on an invalid item"""
    form = InvoiceForm()

    assert form.submit() is None
    assert [error.field for error in form.errors] == ["items.0.description"]
    assert form.state == FormState.EDITING


def test_submit_valid_item_prepares_preview():
    """Test one valid item opens the preview with matching totals"""
    form = InvoiceForm()
    form.set_details(client_name="Ana", invoice_number="F-7")
    form.update_item(0, description="Camisa", quantity=2, catalogPrice=25, vendorPrice=20)

    prepared = form.submit(issued_on=date(2026, 10, 19))

    assert prepared is not None
    assert form.state == FormState.PREVIEWING
    assert form.errors == []
    assert prepared.invoice.invoice_number == "F-7"
    assert prepared.totals.total_due == 40.0
    assert prepared.totals == form.totals
    assert prepared.issued_on == date(2026, 10, 19)

    form.close_preview()
    assert form.state == FormState.EDITING


@pytest.mark.asyncio
async def test_extract_from_text_replaces_items():
    """Test extracted items replace the whole list"""
    form = InvoiceForm()
    form.update_item(0, description="Viejo", vendorPrice=1)
    result = make_result(
        {"code": "COD001", "description": "Camisa", "quantity": 2, "catalogPrice": 25, "vendorPrice": 20},
        {"description": "Pantalón", "quantity": 1, "vendorPrice": 45.5},
    )

    with patch("factura.form.parse_invoice_text", new=AsyncMock(return_value=result)):
        notification = await form.extract_from_text("texto de la factura")

    assert notification.title == "Texto procesado"
    assert [item["description"] for item in form.items] == ["Camisa", "Pantalón"]
    assert form.items[1]["code"] == ""
    assert form.items[1]["catalogPrice"] == 0
    assert form.totals.total_due == 85.5
    assert form.state == FormState.EDITING


@pytest.mark.asyncio
async def test_extract_from_text_no_items_leaves_form():
    """Test an empty result keeps existing items"""
    form = InvoiceForm()
    form.update_item(0, description="Camisa", vendorPrice=10)

    with patch("factura.form.parse_invoice_text", new=AsyncMock(return_value=make_result())):
        notification = await form.extract_from_text("texto sin ítems")

    assert notification.title == "No se extrajeron ítems"
    assert form.items[0]["description"] == "Camisa"


@pytest.mark.asyncio
async def test_extract_from_image_failure_notifies():
    """Test a failed call is reported and items are untouched"""
    form = InvoiceForm()
    failed = make_result(error="Hubo un problema al contactar con la IA.")

    with patch("factura.form.parse_invoice_image", new=AsyncMock(return_value=failed)):
        notification = await form.extract_from_image("data:image/png;base64,aGVsbG8=")

    assert notification.variant == "destructive"
    assert len(form.items) == 1
    assert form.state == FormState.EDITING


@pytest.mark.asyncio
async def test_extract_without_input():
    """Test empty input is refused before calling the AI"""
    form = InvoiceForm()

    with patch("factura.form.parse_invoice_text", new=AsyncMock()) as mock_parse:
        notification = await form.extract_from_text("   ")

    assert notification.title == "Texto vacío"
    mock_parse.assert_not_called()

    notification = await form.extract_from_image("")
    assert notification.title == "No hay imagen seleccionada"


@pytest.mark.asyncio
async def test_extractions_are_mutually_exclusive():
    """Test a second extraction is refused while one is pending"""
    form = InvoiceForm()
    release = asyncio.Event()

    async def slow_parse(text):
        await release.wait()
        return make_result()

    with patch("factura.form.parse_invoice_text", new=slow_parse):
        task = asyncio.create_task(form.extract_from_text("texto de la factura"))
        await asyncio.sleep(0)

        assert form.state == FormState.EXTRACTING_TEXT
        with pytest.raises(ExtractionBusyError):
            await form.extract_from_image("data:image/png;base64,aGVsbG8=")
        with pytest.raises(ExtractionBusyError):
            form.submit()

        release.set()
        await task

    assert form.state == FormState.EDITING


@pytest.mark.asyncio
async def test_extract_from_short_text():
    """Test short text is refused with a validation message"""
    form = InvoiceForm()

    with patch("factura.form.parse_invoice_text", new=AsyncMock()) as mock_parse:
        notification = await form.extract_from_text("corto")

    assert notification.title == "Texto muy corto"
    assert notification.variant == "destructive"
    mock_parse.assert_not_called()
    assert form.state == FormState.EDITING
