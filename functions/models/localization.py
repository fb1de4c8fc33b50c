"""Localization Pydantic models for CostScan.

Country profiles, exchange-rate tables, and regional cost factors used to
present canonical (USD, metric) estimates in a viewer's regional format.
"""

from enum import Enum
from typing import Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# ENUMS
# =============================================================================


class UnitSystem(str, Enum):
    """Measurement system used for display."""

    METRIC = "metric"
    IMPERIAL = "imperial"


COST_CATEGORIES = (
    "labor",
    "materials",
    "equipment",
    "structural",
    "civil",
    "electrical",
    "plumbing",
    "finishing",
    "hvac",
)


# =============================================================================
# COUNTRY PROFILE
# =============================================================================


class ConstructionUnits(BaseModel):
    """Unit symbols a country uses on construction documents."""

    model_config = ConfigDict(frozen=True)

    area: str = Field(..., description="Area unit symbol (e.g., 'm²', 'sq ft')")
    volume: str = Field(..., description="Volume unit symbol (e.g., 'm³', 'cu ft')")
    length: str = Field(..., description="Length unit symbol (e.g., 'm', 'ft')")
    weight: str = Field(..., description="Weight unit symbol (e.g., 'kg', 'lbs')")


class CountryProfile(BaseModel):
    """Regional display configuration for one country.

    Immutable; loaded once per process by the localization registry.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    code: str = Field(..., min_length=2, max_length=2, description="ISO-like country code")
    name: str = Field(..., min_length=1, description="Display name")
    currency: str = Field(..., min_length=3, max_length=3, description="Currency code")
    currency_symbol: str = Field(..., alias="currencySymbol", description="Currency symbol")
    locale: str = Field(..., description="Locale tag (e.g., 'en-GB')")
    date_format: str = Field(..., alias="dateFormat", description="Date pattern (e.g., 'DD/MM/YYYY')")
    number_format: str = Field(..., alias="numberFormat", description="Grouping sample (e.g., '1.234,56')")
    timezone: str = Field(..., description="IANA timezone")
    measurement_system: UnitSystem = Field(..., alias="measurementSystem")
    construction_units: ConstructionUnits = Field(..., alias="constructionUnits")

    @field_validator("code", "currency")
    @classmethod
    def upper_codes(cls, v: str) -> str:
        return v.upper()

    @property
    def language(self) -> str:
        """Language prefix of the locale tag."""
        return self.locale.split("-")[0].lower()

    def to_dict(self) -> Dict:
        """Convert to the camelCase shape served to the UI."""
        return self.model_dump(by_alias=True, mode="json")


# =============================================================================
# REGIONAL COST FACTORS
# =============================================================================


class RegionalCostFactors(BaseModel):
    """Per-category multipliers relative to the US baseline."""

    model_config = ConfigDict(frozen=True)

    labor: float = Field(default=1.0, gt=0)
    materials: float = Field(default=1.0, gt=0)
    equipment: float = Field(default=1.0, gt=0)
    structural: float = Field(default=1.0, gt=0)
    civil: float = Field(default=1.0, gt=0)
    electrical: float = Field(default=1.0, gt=0)
    plumbing: float = Field(default=1.0, gt=0)
    finishing: float = Field(default=1.0, gt=0)
    hvac: float = Field(default=1.0, gt=0)

    def factor_for(self, category: str) -> float:
        """Multiplier for a category name; unknown categories are unadjusted."""
        key = (category or "").strip().lower()
        if key in COST_CATEGORIES:
            return getattr(self, key)
        return 1.0

    def to_dict(self) -> Dict[str, float]:
        return self.model_dump()
