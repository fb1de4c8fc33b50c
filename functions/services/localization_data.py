"""Built-in localization tables for CostScan.

Country profiles, USD-based exchange rates, and regional cost factors. These
are the defaults used to build the process-wide LocalizationRegistry; a JSON
file with the same top-level keys ("countries", "exchangeRates",
"costFactors") can replace them via LOCALIZATION_CONFIG_PATH.
"""

from typing import Any, Dict, List


BASE_COUNTRY = "US"
BASE_CURRENCY = "USD"

METRIC_UNITS = {"area": "m²", "volume": "m³", "length": "m", "weight": "kg"}
IMPERIAL_UNITS = {"area": "sq ft", "volume": "cu ft", "length": "ft", "weight": "lbs"}


def _country(
    code: str,
    name: str,
    currency: str,
    symbol: str,
    date_format: str,
    number_format: str,
    timezone: str,
    system: str = "metric",
    units: Dict[str, str] = None,
) -> Dict[str, Any]:
    return {
        "code": code,
        "name": name,
        "currency": currency,
        "currencySymbol": symbol,
        "locale": f"en-{code}",
        "dateFormat": date_format,
        "numberFormat": number_format,
        "timezone": timezone,
        "measurementSystem": system,
        "constructionUnits": dict(units or METRIC_UNITS),
    }


# =============================================================================
# COUNTRIES
# =============================================================================

COUNTRIES: List[Dict[str, Any]] = [
    # North America
    _country("US", "United States", "USD", "$", "MM/DD/YYYY", "1,234.56",
             "America/New_York", system="imperial", units=IMPERIAL_UNITS),
    _country("CA", "Canada", "CAD", "C$", "DD/MM/YYYY", "1,234.56", "America/Toronto"),
    _country("MX", "Mexico", "MXN", "$", "DD/MM/YYYY", "1,234.56", "America/Mexico_City"),

    # Europe
    _country("GB", "United Kingdom", "GBP", "£", "DD/MM/YYYY", "1,234.56", "Europe/London"),
    _country("DE", "Germany", "EUR", "€", "DD.MM.YYYY", "1.234,56", "Europe/Berlin"),
    _country("FR", "France", "EUR", "€", "DD/MM/YYYY", "1 234,56", "Europe/Paris"),
    _country("ES", "Spain", "EUR", "€", "DD/MM/YYYY", "1.234,56", "Europe/Madrid"),
    _country("IT", "Italy", "EUR", "€", "DD/MM/YYYY", "1.234,56", "Europe/Rome"),
    _country("NL", "Netherlands", "EUR", "€", "DD-MM-YYYY", "1.234,56", "Europe/Amsterdam"),
    _country("CH", "Switzerland", "CHF", "CHF", "DD.MM.YYYY", "1'234.56", "Europe/Zurich"),
    _country("SE", "Sweden", "SEK", "kr", "YYYY-MM-DD", "1 234,56", "Europe/Stockholm"),
    _country("NO", "Norway", "NOK", "kr", "DD.MM.YYYY", "1 234,56", "Europe/Oslo"),

    # Asia Pacific
    _country("JP", "Japan", "JPY", "¥", "YYYY/MM/DD", "1,234", "Asia/Tokyo"),
    _country("CN", "China", "CNY", "¥", "YYYY/MM/DD", "1,234.56", "Asia/Shanghai"),
    _country("IN", "India", "INR", "₹", "DD/MM/YYYY", "1,23,456.78", "Asia/Kolkata",
             units={"area": "sq ft", "volume": "cu ft", "length": "ft", "weight": "kg"}),
    _country("AU", "Australia", "AUD", "A$", "DD/MM/YYYY", "1,234.56", "Australia/Sydney"),
    _country("NZ", "New Zealand", "NZD", "NZ$", "DD/MM/YYYY", "1,234.56", "Pacific/Auckland"),
    _country("SG", "Singapore", "SGD", "S$", "DD/MM/YYYY", "1,234.56", "Asia/Singapore"),
    _country("KR", "South Korea", "KRW", "₩", "YYYY.MM.DD", "1,234", "Asia/Seoul"),

    # Middle East & Africa
    _country("AE", "United Arab Emirates", "AED", "د.إ", "DD/MM/YYYY", "1,234.56", "Asia/Dubai"),
    _country("SA", "Saudi Arabia", "SAR", "ر.س", "DD/MM/YYYY", "1,234.56", "Asia/Riyadh"),
    _country("ZA", "South Africa", "ZAR", "R", "YYYY/MM/DD", "1 234,56", "Africa/Johannesburg"),

    # South America
    _country("BR", "Brazil", "BRL", "R$", "DD/MM/YYYY", "1.234,56", "America/Sao_Paulo"),
    _country("AR", "Argentina", "ARS", "$", "DD/MM/YYYY", "1.234,56",
             "America/Argentina/Buenos_Aires"),
    _country("CL", "Chile", "CLP", "$", "DD-MM-YYYY", "1.234", "America/Santiago"),
]


# =============================================================================
# EXCHANGE RATES (units of currency per 1 USD)
# =============================================================================

EXCHANGE_RATES: Dict[str, float] = {
    "USD": 1.00,
    "EUR": 0.85,
    "GBP": 0.73,
    "JPY": 110.0,
    "CAD": 1.25,
    "AUD": 1.35,
    "CHF": 0.92,
    "CNY": 6.45,
    "INR": 74.5,
    "BRL": 5.2,
    "MXN": 20.1,
    "KRW": 1180.0,
    "SGD": 1.35,
    "NZD": 1.42,
    "SEK": 8.6,
    "NOK": 8.8,
    "AED": 3.67,
    "SAR": 3.75,
    "ZAR": 14.8,
    "ARS": 98.5,
    "CLP": 800.0,
}


# =============================================================================
# REGIONAL COST FACTORS (multipliers vs. US baseline)
# =============================================================================

COST_FACTORS: Dict[str, Dict[str, float]] = {
    "US": {"labor": 1.0, "materials": 1.0, "equipment": 1.0, "structural": 1.0, "civil": 1.0,
           "electrical": 1.0, "plumbing": 1.0, "finishing": 1.0, "hvac": 1.0},
    "GB": {"labor": 1.2, "materials": 1.1, "equipment": 1.15, "structural": 1.1, "civil": 1.1,
           "electrical": 1.15, "plumbing": 1.2, "finishing": 1.1, "hvac": 1.15},
    "DE": {"labor": 1.3, "materials": 1.2, "equipment": 1.25, "structural": 1.2, "civil": 1.2,
           "electrical": 1.25, "plumbing": 1.3, "finishing": 1.2, "hvac": 1.25},
    "FR": {"labor": 1.25, "materials": 1.15, "equipment": 1.2, "structural": 1.15, "civil": 1.15,
           "electrical": 1.2, "plumbing": 1.25, "finishing": 1.15, "hvac": 1.2},
    "JP": {"labor": 1.5, "materials": 1.4, "equipment": 1.3, "structural": 1.4, "civil": 1.4,
           "electrical": 1.3, "plumbing": 1.5, "finishing": 1.4, "hvac": 1.3},
    "IN": {"labor": 0.3, "materials": 0.7, "equipment": 0.8, "structural": 0.7, "civil": 0.6,
           "electrical": 0.8, "plumbing": 0.7, "finishing": 0.5, "hvac": 0.8},
    "CN": {"labor": 0.4, "materials": 0.8, "equipment": 0.9, "structural": 0.8, "civil": 0.7,
           "electrical": 0.9, "plumbing": 0.8, "finishing": 0.6, "hvac": 0.9},
    "BR": {"labor": 0.5, "materials": 0.9, "equipment": 0.85, "structural": 0.9, "civil": 0.8,
           "electrical": 0.85, "plumbing": 0.9, "finishing": 0.7, "hvac": 0.85},
    "MX": {"labor": 0.4, "materials": 0.8, "equipment": 0.75, "structural": 0.8, "civil": 0.7,
           "electrical": 0.75, "plumbing": 0.8, "finishing": 0.6, "hvac": 0.75},
    "AE": {"labor": 0.6, "materials": 1.1, "equipment": 1.0, "structural": 1.1, "civil": 1.0,
           "electrical": 1.0, "plumbing": 1.1, "finishing": 0.9, "hvac": 1.0},
    "AU": {"labor": 1.4, "materials": 1.3, "equipment": 1.2, "structural": 1.3, "civil": 1.3,
           "electrical": 1.2, "plumbing": 1.4, "finishing": 1.3, "hvac": 1.2},
    "CA": {"labor": 1.1, "materials": 1.05, "equipment": 1.1, "structural": 1.05, "civil": 1.05,
           "electrical": 1.1, "plumbing": 1.1, "finishing": 1.05, "hvac": 1.1},
    "CH": {"labor": 1.8, "materials": 1.5, "equipment": 1.4, "structural": 1.5, "civil": 1.5,
           "electrical": 1.4, "plumbing": 1.8, "finishing": 1.5, "hvac": 1.4},
    "NO": {"labor": 1.6, "materials": 1.3, "equipment": 1.3, "structural": 1.3, "civil": 1.3,
           "electrical": 1.3, "plumbing": 1.6, "finishing": 1.3, "hvac": 1.3},
    "SE": {"labor": 1.4, "materials": 1.2, "equipment": 1.2, "structural": 1.2, "civil": 1.2,
           "electrical": 1.2, "plumbing": 1.4, "finishing": 1.2, "hvac": 1.2},
}


# Currencies conventionally quoted without subunits
ZERO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW", "CLP"})
