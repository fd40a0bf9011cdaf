"""Spanish (es-ES) number and date formatting"""
import re
import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import date, datetime
from typing import Optional, Union


CURRENCY_PLACEHOLDER = "0,00"

SPANISH_MONTHS = [
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
]


def _group_thousands(digits: str) -> str:
    # es-ES only groups numbers with five or more integer digits
    if len(digits) < 5:
        return digits
    groups = []
    while digits:
        groups.insert(0, digits[-3:])
        digits = digits[:-3]
    return ".".join(groups)


def format_currency(amount: Union[int, float, str, None]) -> str:
    """Format an amount with two decimals the way es-ES displays it (1234,50 / 12.345,60)"""
    if amount is None or isinstance(amount, bool):
        return CURRENCY_PLACEHOLDER
    try:
        value = float(amount)
    except (TypeError, ValueError):
        return CURRENCY_PLACEHOLDER
    if math.isnan(value) or math.isinf(value):
        return CURRENCY_PLACEHOLDER

    # Ties round away from zero, as Intl.NumberFormat does
    try:
        text = str(Decimal(repr(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        text = f"{value:.2f}"
    sign = ""
    if text.startswith("-"):
        sign, text = "-", text[1:]
    integer, decimals = text.split(".")
    return f"{sign}{_group_thousands(integer)},{decimals}"


def format_quantity(quantity: float) -> str:
    """Whole quantities without decimals, fractional ones with a decimal comma"""
    if float(quantity).is_integer():
        return str(int(quantity))
    return f"{quantity:.6f}".rstrip("0").rstrip(".").replace(".", ",")


def format_long_date(value: date) -> str:
    """5 de marzo de 2026"""
    return f"{value.day} de {SPANISH_MONTHS[value.month - 1]} de {value.year}"


def format_due_date(value: Optional[str]) -> Optional[str]:
    """Long form for YYYY-MM-DD input, the text unchanged otherwise"""
    if not value:
        return None
    parts = value.split("-")
    if len(parts) != 3:
        return value
    try:
        parsed = datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        return value
    return format_long_date(parsed)


_NUMERIC_CHARS = re.compile(r"[^\d,.\-]")


def parse_locale_number(text: str) -> Optional[float]:
    """
    Parse a number written with Spanish or English separators.

    "S/ 20.249,00" -> 20249.0, "1.234,56" -> 1234.56, "9.749" -> 9749.0,
    "22,50" -> 22.5, "1,234.56" -> 1234.56. Returns None when nothing numeric is left.
    """
    cleaned = _NUMERIC_CHARS.sub("", text.strip())
    if not cleaned or not re.search(r"\d", cleaned):
        return None

    has_comma = "," in cleaned
    has_dot = "." in cleaned
    if has_comma and has_dot:
        # Whichever separator comes last is the decimal one
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif has_comma:
        if cleaned.count(",") > 1:
            cleaned = cleaned.replace(",", "")
        else:
            cleaned = cleaned.replace(",", ".")
    elif has_dot:
        integer, _, fraction = cleaned.rpartition(".")
        if cleaned.count(".") > 1 or (len(fraction) == 3 and integer.strip("-") not in ("", "0")):
            cleaned = cleaned.replace(".", "")

    try:
        return float(cleaned)
    except ValueError:
        return None
