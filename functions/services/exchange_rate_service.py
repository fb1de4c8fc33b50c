"""Exchange-rate refresh for CostScan.

Fetches current USD-based rates from a JSON API and swaps a new localization
registry in. The response may be either {"rates": {...}} or a flat mapping.
Only currencies already known to the registry are taken from the response.

With a store, a refresh also persists the table so every instance can pick
it up through apply_stored_rates().
"""

from typing import Any, Dict, Mapping, Optional

import math

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)
import structlog

from config.errors import CostScanError, ErrorCode
from config.settings import settings
from services.localization_service import LocalizationRegistry, get_registry, reload_exchange_rates

logger = structlog.get_logger()


class ExchangeRateService:
    """Refreshes the process-wide exchange-rate table."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        store=None,
    ):
        self.store = store
        self.api_url = api_url if api_url is not None else settings.exchange_rate_api_url
        self.timeout = timeout or settings.exchange_rate_timeout_seconds
        self._client = client

    @property
    def enabled(self) -> bool:
        return bool(self.api_url)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((httpx.HTTPError, httpx.TimeoutException)),
        reraise=True,
    )
    async def _get(self) -> Dict[str, Any]:
        if self._client is not None:
            response = await self._client.get(self.api_url)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(self.api_url)
        response.raise_for_status()
        return response.json()

    async def fetch_rates(self) -> Dict[str, float]:
        """Fetch rates from the API.

        Raises:
            CostScanError: EXCHANGE_RATE_ERROR on HTTP failure after retries or
                an unexpected payload.
        """
        try:
            payload = await self._get()
        except (httpx.HTTPError, httpx.TimeoutException) as e:
            logger.warning("exchange_rate_fetch_failed", url=self.api_url, error=str(e))
            raise CostScanError(
                code=ErrorCode.EXCHANGE_RATE_ERROR,
                message=f"Failed to fetch exchange rates: {str(e)}",
                details={"url": self.api_url}
            )

        rates = payload.get("rates", payload) if isinstance(payload, dict) else None
        if not isinstance(rates, dict):
            raise CostScanError(
                code=ErrorCode.EXCHANGE_RATE_ERROR,
                message="Exchange rate response has no rates mapping",
                details={"url": self.api_url}
            )

        return _parse_rates(rates)

    async def refresh(self) -> Mapping[str, float]:
        """Fetch rates and swap them into the registry.

        Currencies missing from the response keep their current rate. When
        no API URL is configured this is a no-op.

        Returns:
            The exchange-rate table now in effect.
        """
        registry = get_registry()
        if not self.enabled:
            logger.info("exchange_rate_refresh_disabled")
            return registry.exchange_rates

        fetched = await self.fetch_rates()
        merged = _merge(registry, fetched)

        updated = [c for c in merged if merged[c] != registry.exchange_rates.get(c)]
        new_registry = reload_exchange_rates(merged)
        logger.info("exchange_rates_refreshed", updated=len(updated), currencies=len(merged))

        if self.store is not None:
            await self.store.save_exchange_rates(new_registry.exchange_rates)
        return new_registry.exchange_rates

    async def apply_stored_rates(self) -> Mapping[str, float]:
        """Swap in the last stored table when it differs from the registry's.

        Returns:
            The exchange-rate table now in effect.
        """
        registry = get_registry()
        if self.store is None:
            return registry.exchange_rates

        stored = await self.store.get_exchange_rates()
        if not stored:
            return registry.exchange_rates

        merged = _merge(registry, _parse_rates(stored))
        if merged == dict(registry.exchange_rates):
            return registry.exchange_rates

        logger.info("exchange_rates_synced", currencies=len(merged))
        return reload_exchange_rates(merged).exchange_rates


def _parse_rates(rates: Mapping[str, Any]) -> Dict[str, float]:
    """Upper-cased currency -> positive finite rate; anything else is skipped."""
    parsed: Dict[str, float] = {}
    for currency, value in rates.items():
        try:
            rate = float(value)
        except (TypeError, ValueError):
            continue
        if math.isfinite(rate) and rate > 0:
            parsed[str(currency).upper()] = rate
    return parsed


def _merge(registry: LocalizationRegistry, rates: Mapping[str, float]) -> Dict[str, float]:
    """Known currencies take the new rate when present; the base stays 1.0."""
    merged = {
        currency: rates.get(currency, current)
        for currency, current in registry.exchange_rates.items()
    }
    merged[registry.base_currency] = 1.0
    return merged
