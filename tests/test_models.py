"""Tests for Pydantic models"""
import pytest
from pydantic import ValidationError
from factura.models import ExtractedItem, ExtractionResult, Invoice, LineItem, InvoiceTotals


def test_line_item_model():
    """Test LineItem model with wire names"""
    item = LineItem.model_validate({
        "code": "COD001",
        "description": "Camisa Talla L",
        "quantity": 2,
        "catalogPrice": 25,
        "vendorPrice": 20
    })

    assert item.code == "COD001"
    assert item.catalog_price == 25.0
    assert item.vendor_price == 20.0
    assert item.line_total == 40.0


def test_line_item_model_defaults():
    """Test LineItem without code or catalog price"""
    item = LineItem(description="Pantalón", quantity=1, vendor_price=45.5)

    assert item.code == ""
    assert item.catalog_price == 0.0


def test_line_item_model_dumps_camel_case():
    """Test serialization uses the wire names"""
    item = LineItem(description="Pantalón", quantity=1, vendor_price=45.5)
    data = item.model_dump(by_alias=True)

    assert data["vendorPrice"] == 45.5
    assert "catalogPrice" in data


@pytest.mark.parametrize("changes", [
    {"description": "   "},
    {"quantity": 0},
    {"vendor_price": -1},
    {"catalog_price": -0.5},
])
def test_line_item_model_invalid(changes):
    """Test LineItem rejects invalid values"""
    values = {"description": "Camisa", "quantity": 1, "vendor_price": 10}
    values.update(changes)
    with pytest.raises(ValidationError):
        LineItem(**values)


def test_invoice_model_requires_items():
    """Test Invoice needs at least one item"""
    with pytest.raises(ValidationError):
        Invoice(items=[])


def test_invoice_totals_defaults():
    """Test InvoiceTotals starts at zero"""
    totals = InvoiceTotals()
    assert totals.model_dump(by_alias=True) == {
        "catalogSubtotal": 0.0,
        "vendorSubtotal": 0.0,
        "totalDue": 0.0
    }


def test_extracted_item_spanish_keys():
    """Test ExtractedItem accepts the Spanish field names"""
    item = ExtractedItem.model_validate({
        "codigo": "PANT02",
        "descripcion": "Pantalón Jean Azul",
        "cantidad": 1,
        "precioVendedora": 45.5
    })

    assert item.code == "PANT02"
    assert item.description == "Pantalón Jean Azul"
    assert item.vendor_price == 45.5
    assert item.catalog_price is None


def test_extracted_item_locale_strings():
    """Test numeric strings with Spanish separators are normalised"""
    item = ExtractedItem.model_validate({
        "description": "Zapatillas",
        "quantity": "2",
        "catalogPrice": "1.234,56",
        "vendorPrice": "S/ 20.249,00"
    })

    assert item.quantity == 2.0
    assert item.catalog_price == pytest.approx(1234.56)
    assert item.vendor_price == pytest.approx(20249.0)


def test_extracted_item_blank_code():
    """Test a blank code is treated as missing"""
    item = ExtractedItem(code="  ", description="Camisa", quantity=1, vendor_price=10)
    assert item.code is None


@pytest.mark.parametrize("payload", [
    {"description": "Camisa", "quantity": 0.5, "vendorPrice": 10},
    {"description": "Camisa", "quantity": 1, "vendorPrice": -1},
    {"description": "Camisa", "quantity": 1},
    {"quantity": 1, "vendorPrice": 10},
    {"description": "Camisa", "quantity": "muchos", "vendorPrice": 10},
])
def test_extracted_item_invalid(payload):
    """Test ExtractedItem rejects out-of-contract items"""
    with pytest.raises(ValidationError):
        ExtractedItem.model_validate(payload)


def test_extraction_result_default():
    """Test ExtractionResult always has a list"""
    result = ExtractionResult()
    assert result.items == []
    assert result.error is None


def test_extracted_item_blank_description():
    """Test a whitespace-only description is rejected and others are stripped"""
    with pytest.raises(ValidationError):
        ExtractedItem(description="   ", quantity=1, vendor_price=10)

    item = ExtractedItem(description="  Camisa \n", quantity=1, vendor_price=10)
    assert item.description == "Camisa"
