"""Unit and currency conversion for CostScan.

Stateless helpers that turn canonical values (USD, metric) into a viewer's
regional display values. Display-only: unit conversion fails open and
formatting never raises for unknown units.
"""

import re
from datetime import date, datetime
from typing import Optional, Tuple, Union

from models.localization import CountryProfile
from services.localization_data import ZERO_DECIMAL_CURRENCIES
from services.localization_service import LocalizationRegistry, get_registry

Number = Union[int, float]


# =============================================================================
# UNIT TABLE
# =============================================================================

_FORWARD_FACTORS = {
    ("m²", "sq ft"): 10.764,
    ("m³", "cu ft"): 35.314,
    ("m", "ft"): 3.281,
    ("kg", "lbs"): 2.205,
}

# Reverse entries are exact reciprocals so forward-then-back is stable
UNIT_CONVERSIONS = {
    **_FORWARD_FACTORS,
    **{(to_unit, from_unit): 1.0 / factor for (from_unit, to_unit), factor in _FORWARD_FACTORS.items()},
}

UNIT_ALIASES = {
    "m2": "m²",
    "sq m": "m²",
    "sqm": "m²",
    "m3": "m³",
    "cu m": "m³",
    "cbm": "m³",
    "sqft": "sq ft",
    "sq. ft": "sq ft",
    "ft2": "sq ft",
    "cuft": "cu ft",
    "ft3": "cu ft",
    "lb": "lbs",
    "meter": "m",
    "meters": "m",
    "feet": "ft",
}

# Canonical metric unit -> construction-unit dimension
_UNIT_DIMENSIONS = {
    "m²": "area",
    "m³": "volume",
    "m": "length",
    "kg": "weight",
    "sq ft": "area",
    "cu ft": "volume",
    "ft": "length",
    "lbs": "weight",
}


def normalize_unit(unit: Optional[str]) -> str:
    """Canonical spelling of a unit symbol; unknown units pass through."""
    if unit is None:
        return ""
    cleaned = unit.strip()
    return UNIT_ALIASES.get(cleaned.lower(), cleaned)


def convert_unit(value: Number, from_unit: str, to_unit: str) -> Number:
    """Convert a quantity between units. Unknown pairs return value unchanged."""
    source = normalize_unit(from_unit)
    target = normalize_unit(to_unit)
    if source == target:
        return value
    factor = UNIT_CONVERSIONS.get((source, target))
    if factor is None:
        return value
    return value * factor


def display_unit(unit: str, country: CountryProfile) -> str:
    """Unit symbol the country uses for the same dimension as unit."""
    dimension = _UNIT_DIMENSIONS.get(normalize_unit(unit))
    if dimension is None:
        return unit
    return getattr(country.construction_units, dimension)


# =============================================================================
# CURRENCY
# =============================================================================


def convert_currency(
    amount: Number,
    from_currency: str,
    to_currency: str,
    registry: Optional[LocalizationRegistry] = None,
) -> Number:
    """Convert amount via the base currency. Same currency returns amount as-is."""
    if from_currency.upper() == to_currency.upper():
        return amount
    registry = registry or get_registry()
    return amount / registry.rate(from_currency) * registry.rate(to_currency)


def fraction_digits(currency: Optional[str]) -> int:
    """Decimal places used when displaying the currency."""
    return 0 if (currency or "").upper() in ZERO_DECIMAL_CURRENCIES else 2


def apply_cost_factor(
    amount: Number,
    category: str,
    country_code: Optional[str],
    registry: Optional[LocalizationRegistry] = None,
) -> float:
    """Scale a canonical amount by the country's factor for the category."""
    registry = registry or get_registry()
    return amount * registry.cost_factors(country_code).factor_for(category)


# =============================================================================
# FORMATTING
# =============================================================================


def _separators(number_format: str) -> Tuple[str, str, bool]:
    """(group separator, decimal separator, indian grouping) from a sample like '1.234,56'."""
    separators = re.sub(r"\d", "", number_format)
    indian = bool(re.match(r"^\d,\d\d,\d{3}", number_format))

    if len(separators) >= 2:
        return separators[0], separators[-1], indian
    if len(separators) == 1:
        # '1,234' / '1.234' with no fraction part: the lone separator groups
        return separators, ("," if separators == "." else "."), indian
    return "", ".", indian


def _group(digits: str, separator: str, indian: bool) -> str:
    if not separator or len(digits) <= 3:
        return digits
    if indian:
        head, tail = digits[:-3], digits[-3:]
        parts = []
        while len(head) > 2:
            parts.insert(0, head[-2:])
            head = head[:-2]
        if head:
            parts.insert(0, head)
        return separator.join(parts + [tail])

    parts = []
    while len(digits) > 3:
        parts.insert(0, digits[-3:])
        digits = digits[:-3]
    parts.insert(0, digits)
    return separator.join(parts)


def format_number(value: Number, country: CountryProfile, digits: Optional[int] = None) -> str:
    """Format a number with the country's grouping and decimal separators.

    With digits=None, up to two decimals are shown and trailing zeros dropped.
    """
    group_sep, decimal_sep, indian = _separators(country.number_format)
    places = 2 if digits is None else max(digits, 0)

    rounded = round(float(value), places)
    negative = rounded < 0
    text = f"{abs(rounded):.{places}f}"
    integer_part, _, fraction = text.partition(".")
    if digits is None:
        fraction = fraction.rstrip("0")

    result = _group(integer_part, group_sep, indian)
    if fraction:
        result = f"{result}{decimal_sep}{fraction}"
    if negative:
        result = f"-{result}"
    return result


def format_currency(
    amount: Number,
    country: CountryProfile,
    currency: Optional[str] = None,
    from_currency: str = "USD",
    registry: Optional[LocalizationRegistry] = None,
) -> str:
    """Convert a canonical amount into the display currency and format it.

    Zero-digit currencies never show a decimal separator.
    """
    currency = (currency or country.currency).upper()
    converted = convert_currency(amount, from_currency, currency, registry)
    formatted = format_number(converted, country, digits=fraction_digits(currency))

    symbol = country.currency_symbol if currency == country.currency else currency
    if formatted.startswith("-"):
        return f"-{symbol}{formatted[1:]}"
    return f"{symbol}{formatted}"


def format_date(value: Union[datetime, date, str], country: CountryProfile) -> str:
    """Render a date with the country's DD/MM/YYYY-style pattern."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return (
        country.date_format
        .replace("YYYY", f"{value.year:04d}")
        .replace("MM", f"{value.month:02d}")
        .replace("DD", f"{value.day:02d}")
    )
