"""Line item validation and invoice totals"""
import math
from typing import Any, Dict, List, Iterable, Optional, Tuple, Union

from .models import FieldError, Invoice, InvoiceTotals, LineItem


# Wire name -> attribute name
ITEM_FIELDS = {
    "code": "code",
    "description": "description",
    "quantity": "quantity",
    "catalogPrice": "catalog_price",
    "vendorPrice": "vendor_price",
}

INVOICE_FIELDS = {
    "clientName": "client_name",
    "clientAddress": "client_address",
    "invoiceNumber": "invoice_number",
    "paymentDueDate": "payment_due_date",
}

MESSAGES = {
    "description": "Descripción es requerida.",
    "quantity": "Cantidad debe ser mayor a 0.",
    "catalogPrice": "Precio catálogo no puede ser negativo.",
    "vendorPrice": "Precio vendedora no puede ser negativo.",
    "not_a_number": "Debe ser un número válido.",
    "no_items": "Debe agregar al menos un ítem a la factura.",
}

RawItem = Union[LineItem, Dict[str, Any]]


def to_number(value: Any) -> Optional[float]:
    """
    Coerce a form value to a float the way a browser's Number() does.

    Blank strings become 0; None, NaN and anything unparsable give None.
    """
    if value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number):
        return None
    return number


def get_field(item: RawItem, name: str) -> Any:
    """Read a field from a LineItem or a raw dict keyed by wire or attribute name"""
    attribute = ITEM_FIELDS.get(name, name)
    if isinstance(item, LineItem):
        return getattr(item, attribute)
    if name in item:
        return item[name]
    return item.get(attribute)


def calculate_totals(items: Iterable[RawItem]) -> InvoiceTotals:
    """Catalog subtotal, vendor subtotal and total due; never raises"""
    catalog_sum = 0.0
    vendor_sum = 0.0
    for item in items or []:
        if not isinstance(item, (LineItem, dict)):
            continue
        quantity = to_number(get_field(item, "quantity")) or 0.0
        catalog_price = to_number(get_field(item, "catalogPrice")) or 0.0
        vendor_price = to_number(get_field(item, "vendorPrice")) or 0.0
        if quantity > 0:
            catalog_sum += quantity * catalog_price
            vendor_sum += quantity * vendor_price
    return InvoiceTotals(
        catalog_subtotal=catalog_sum,
        vendor_subtotal=vendor_sum,
        total_due=vendor_sum,
    )


def validate_item(item: RawItem, prefix: str = "") -> List[FieldError]:
    """Check one line item and return its field errors (empty when valid)"""
    errors = []

    description = get_field(item, "description")
    if not isinstance(description, str) or not description.strip():
        errors.append(FieldError(field=f"{prefix}description", message=MESSAGES["description"]))

    quantity = to_number(get_field(item, "quantity"))
    if quantity is None:
        errors.append(FieldError(field=f"{prefix}quantity", message=MESSAGES["not_a_number"]))
    elif quantity <= 0:
        errors.append(FieldError(field=f"{prefix}quantity", message=MESSAGES["quantity"]))

    for name in ("catalogPrice", "vendorPrice"):
        raw = get_field(item, name)
        if raw is None and name == "catalogPrice":
            continue
        price = to_number(raw)
        if price is None:
            errors.append(FieldError(field=f"{prefix}{name}", message=MESSAGES["not_a_number"]))
        elif price < 0:
            errors.append(FieldError(field=f"{prefix}{name}", message=MESSAGES[name]))

    return errors


def normalize_item(item: RawItem) -> LineItem:
    """Build a LineItem from an item that already passed validate_item"""
    if isinstance(item, LineItem):
        return item
    code = get_field(item, "code")
    return LineItem(
        code=str(code).strip() if code is not None else "",
        description=get_field(item, "description"),
        quantity=to_number(get_field(item, "quantity")),
        catalog_price=to_number(get_field(item, "catalogPrice")) or 0.0,
        vendor_price=to_number(get_field(item, "vendorPrice")),
    )


def validate_invoice(data: Dict[str, Any]) -> Tuple[Optional[Invoice], List[FieldError]]:
    """
    Validate raw form values.

    Returns the parsed Invoice and an empty error list, or None and every
    field error found (item fields are reported as items.<index>.<field>).
    """
    raw_items = data.get("items") or []
    errors = []
    if not isinstance(raw_items, (list, tuple)):
        raw_items = []
    if not raw_items:
        errors.append(FieldError(field="items", message=MESSAGES["no_items"]))

    for index, item in enumerate(raw_items):
        if not isinstance(item, (LineItem, dict)):
            errors.append(FieldError(field=f"items.{index}", message=MESSAGES["description"]))
            continue
        errors.extend(validate_item(item, prefix=f"items.{index}."))

    if errors:
        return None, errors

    details = {}
    for wire_name, attribute in INVOICE_FIELDS.items():
        value = data.get(wire_name, data.get(attribute))
        if value is not None:
            value = str(value).strip() or None
        details[attribute] = value

    invoice = Invoice(items=[normalize_item(item) for item in raw_items], **details)
    return invoice, []
