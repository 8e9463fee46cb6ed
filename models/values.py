"""Value parsers shared by the form models.

Form payloads arrive as whatever the input widget produced: floats from
number inputs, strings typed with currency symbols, empty strings for
untouched fields. These validators normalize them before pydantic checks
the declared type.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated


_CURRENCY_SYMBOLS = ("$", "€", "£")


def _normalize_separators(s: str, original) -> str:
    """Keep one decimal separator ("." after this) and drop thousands separators."""
    if "," in s and "." in s:
        # Whichever separator comes last is the decimal one
        if s.rfind(",") > s.rfind("."):
            return s.replace(".", "").replace(",", ".")
        return s.replace(",", "")
    if "," in s:
        if s.count(",") > 1:
            return s.replace(",", "")
        integer, fraction = s.split(",")
        if len(fraction) == 3 and integer.lstrip("(-") not in ("", "0"):
            # "1,234" reads as 1234 or 1.234 depending on locale
            raise ValueError(f"Ambiguous amount: {original!r}")
        return s.replace(",", ".")
    if s.count(".") > 1:
        return s.replace(".", "")
    return s


def _parse_decimal(value):
    """Parse decimal from various formats (floats, "1 234,50 €", "1.234,50", "(12.00)", etc.)."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        s = value.strip()
        if s == "":
            return None
        for symbol in _CURRENCY_SYMBOLS:
            s = s.replace(symbol, "")
        s = s.replace(" ", "").replace(" ", "").replace(" ", "")
        s = _normalize_separators(s, value)
        if s.startswith("(") and s.endswith(")"):
            s = "-" + s[1:-1]
        try:
            return Decimal(s)
        except InvalidOperation:
            raise ValueError(f"Cannot parse amount: {value!r}")
    return value


def _parse_optional_str(value):
    """Treat empty strings from unselected dropdowns as "no value"."""
    if isinstance(value, str) and value.strip() == "":
        return None
    return value


def _parse_date(value):
    """Parse date from ISO or French (dd/mm/yyyy) strings."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        s = value.strip()
        if s == "":
            return None
        for fmt in ("%Y-%m-%d", "%d/%m/%Y"):
            try:
                return datetime.strptime(s, fmt).date()
            except ValueError:
                continue
        # Timestamps from the store ("2024-01-09T12:00:00")
        return datetime.fromisoformat(s).date()
    return value


DecimalValue = Annotated[Decimal, BeforeValidator(_parse_decimal)]
OptionalKey = Annotated[str, BeforeValidator(_parse_optional_str)]
DateValue = Annotated[date, BeforeValidator(_parse_date)]


def is_empty_key(value) -> bool:
    """True for an absent selection (None or blank string)."""
    return value is None or (isinstance(value, str) and value.strip() == "")
