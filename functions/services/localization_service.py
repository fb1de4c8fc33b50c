"""Localization registry for CostScan.

Holds the country profiles, exchange-rate table and regional cost factors as
process-wide immutable state. The registry is built once (from the built-in
tables or a JSON asset) and replaced wholesale on exchange-rate refresh.
"""

import json
import threading
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import structlog

from config.settings import settings
from models.localization import CountryProfile, RegionalCostFactors
from services import localization_data

logger = structlog.get_logger()


class LocalizationRegistry:
    """Country, currency and cost-factor lookups.

    Instances are never mutated after construction. Use with_exchange_rates()
    to derive a registry with a new rate table.
    """

    def __init__(
        self,
        countries: Iterable[Union[CountryProfile, Dict[str, Any]]],
        exchange_rates: Mapping[str, float],
        cost_factors: Mapping[str, Union[RegionalCostFactors, Dict[str, float]]],
        base_country: str = localization_data.BASE_COUNTRY,
        base_currency: str = localization_data.BASE_CURRENCY,
    ):
        """Build and validate a registry.

        Args:
            countries: Country profiles (models or camelCase dicts).
            exchange_rates: Currency code -> units per one base currency.
            cost_factors: Country code -> per-category multipliers.
            base_country: Country used when nothing else resolves.
            base_currency: Currency whose rate must be exactly 1.0.

        Raises:
            ValueError: If the tables are inconsistent.
        """
        profiles: Dict[str, CountryProfile] = {}
        for entry in countries:
            profile = entry if isinstance(entry, CountryProfile) else CountryProfile.model_validate(entry)
            if profile.code in profiles:
                raise ValueError(f"Duplicate country code: {profile.code}")
            profiles[profile.code] = profile

        rates: Dict[str, float] = {}
        for currency, value in exchange_rates.items():
            value = float(value)
            if value <= 0:
                raise ValueError(f"Exchange rate for {currency} must be positive, got {value}")
            rates[currency.upper()] = value

        base_currency = base_currency.upper()
        if rates.get(base_currency) != 1.0:
            raise ValueError(f"Base currency {base_currency} must have rate 1.0")

        missing = sorted({p.currency for p in profiles.values()} - set(rates))
        if missing:
            raise ValueError(f"Currencies without exchange rates: {', '.join(missing)}")

        base_country = base_country.upper()
        if base_country not in profiles:
            raise ValueError(f"Base country {base_country} is not a known country")

        factors: Dict[str, RegionalCostFactors] = {}
        for code, entry in cost_factors.items():
            if isinstance(entry, RegionalCostFactors):
                factors[code.upper()] = entry
            else:
                try:
                    factors[code.upper()] = RegionalCostFactors(**entry)
                except Exception as e:
                    raise ValueError(f"Invalid cost factors for {code}: {e}") from e
        factors.setdefault(base_country, RegionalCostFactors())

        self._countries = MappingProxyType(profiles)
        self._rates = MappingProxyType(rates)
        self._factors = MappingProxyType(factors)
        self._by_locale = MappingProxyType({p.locale.lower(): p for p in profiles.values()})
        self._by_timezone = MappingProxyType({p.timezone: p for p in reversed(list(profiles.values()))})
        self.base_country = base_country
        self.base_currency = base_currency

    # =========================================================================
    # READ-ONLY TABLES
    # =========================================================================

    @property
    def countries(self) -> Mapping[str, CountryProfile]:
        return self._countries

    @property
    def exchange_rates(self) -> Mapping[str, float]:
        return self._rates

    @property
    def regional_cost_factors(self) -> Mapping[str, RegionalCostFactors]:
        return self._factors

    def list_countries(self) -> List[CountryProfile]:
        """Countries sorted by display name."""
        return sorted(self._countries.values(), key=lambda p: p.name)

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def get_country(self, code: Optional[str]) -> Optional[CountryProfile]:
        if not code:
            return None
        return self._countries.get(code.strip().upper())

    @property
    def base_profile(self) -> CountryProfile:
        return self._countries[self.base_country]

    def resolve_country(
        self,
        locale: Optional[str] = None,
        timezone: Optional[str] = None,
        explicit_code: Optional[str] = None,
    ) -> CountryProfile:
        """Resolve the viewer's country. Always returns a profile.

        Order: explicit code, exact locale, exact timezone, language prefix,
        then the base country.
        """
        profile = self.get_country(explicit_code)
        if profile:
            return profile

        normalized_locale = (locale or "").strip().replace("_", "-").lower()
        if normalized_locale:
            profile = self._by_locale.get(normalized_locale)
            if profile:
                return profile

        if timezone:
            profile = self._by_timezone.get(timezone.strip())
            if profile:
                return profile

        if normalized_locale:
            language = normalized_locale.split("-")[0]
            for candidate in self._countries.values():
                if candidate.language == language:
                    return candidate

        return self.base_profile

    def cost_factors(self, code: Optional[str]) -> RegionalCostFactors:
        """Regional factors for a country, defaulting to the base country's."""
        if code:
            factors = self._factors.get(code.strip().upper())
            if factors:
                return factors
        return self._factors[self.base_country]

    def rate(self, currency: Optional[str]) -> float:
        """Units of currency per base currency; unknown currencies use 1.0."""
        if not currency:
            return 1.0
        return self._rates.get(currency.upper(), 1.0)

    # =========================================================================
    # DERIVATION
    # =========================================================================

    def with_exchange_rates(self, rates: Mapping[str, float]) -> "LocalizationRegistry":
        """New registry sharing these countries and factors with a new rate table."""
        return LocalizationRegistry(
            countries=self._countries.values(),
            exchange_rates=rates,
            cost_factors=self._factors,
            base_country=self.base_country,
            base_currency=self.base_currency,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "baseCountry": self.base_country,
            "baseCurrency": self.base_currency,
            "countries": [p.to_dict() for p in self.list_countries()],
            "exchangeRates": dict(self._rates),
        }


# =============================================================================
# PROCESS-WIDE REGISTRY
# =============================================================================

_registry: Optional[LocalizationRegistry] = None
_registry_lock = threading.Lock()


def build_default_registry() -> LocalizationRegistry:
    """Registry from the built-in tables."""
    return LocalizationRegistry(
        countries=localization_data.COUNTRIES,
        exchange_rates=localization_data.EXCHANGE_RATES,
        cost_factors=localization_data.COST_FACTORS,
    )


def load_registry(path: str) -> LocalizationRegistry:
    """Registry from a JSON asset with countries/exchangeRates/costFactors keys.

    Missing keys fall back to the built-in tables.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    registry = LocalizationRegistry(
        countries=data.get("countries", localization_data.COUNTRIES),
        exchange_rates=data.get("exchangeRates", localization_data.EXCHANGE_RATES),
        cost_factors=data.get("costFactors", localization_data.COST_FACTORS),
        base_country=data.get("baseCountry", localization_data.BASE_COUNTRY),
        base_currency=data.get("baseCurrency", localization_data.BASE_CURRENCY),
    )
    logger.info("localization_config_loaded", path=path, countries=len(registry.countries))
    return registry


def get_registry() -> LocalizationRegistry:
    """Process-wide registry, built on first use."""
    global _registry
    registry = _registry
    if registry is not None:
        return registry

    with _registry_lock:
        if _registry is None:
            if settings.localization_config_path:
                _registry = load_registry(settings.localization_config_path)
            else:
                _registry = build_default_registry()
        return _registry


def set_registry(registry: Optional[LocalizationRegistry]) -> None:
    """Swap the process-wide registry. None resets to lazy defaults."""
    global _registry
    with _registry_lock:
        _registry = registry


def reload_exchange_rates(rates: Mapping[str, float]) -> LocalizationRegistry:
    """Build a registry with new rates and swap it in.

    Raises:
        ValueError: If the new table is inconsistent (the current registry
            stays in place).
    """
    new_registry = get_registry().with_exchange_rates(rates)
    set_registry(new_registry)
    logger.info("exchange_rates_reloaded", currencies=len(new_registry.exchange_rates))
    return new_registry
