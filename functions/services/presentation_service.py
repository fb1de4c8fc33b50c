"""Localized estimate presentation for CostScan.

Transforms a project's canonical line items (USD, metric, factor-free) into a
viewer's country: unit system, regional cost factors, currency and number
formatting. Canonical records are never modified.
"""

from collections import OrderedDict
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from models.localization import CountryProfile
from models.project import LineItem, Project
from services.converter import (
    apply_cost_factor,
    convert_currency,
    convert_unit,
    display_unit,
    format_currency,
    format_date,
    format_number,
    fraction_digits,
)
from services.localization_service import LocalizationRegistry, get_registry


class LocalizedLineItem(BaseModel):
    """Line item in the viewer's units and currency."""

    category: str
    description: str
    quantity: float
    unit: str
    rate: float
    amount: float
    quantity_display: str
    rate_display: str
    amount_display: str


class CategoryBreakdown(BaseModel):
    """Localized total for one category."""

    category: str
    amount: float
    amount_display: str
    percentage: float = Field(..., ge=0, le=100)


class LocalizedEstimate(BaseModel):
    """A project's estimate as displayed for one country."""

    project_id: str
    project_name: str
    country: CountryProfile
    currency: str
    items: List[LocalizedLineItem]
    total: float
    total_display: str
    breakdown: List[CategoryBreakdown]
    accuracy: float
    created_display: str

    def to_dict(self) -> Dict:
        data = self.model_dump(exclude={"country"})
        data["country"] = self.country.to_dict()
        return data


def localize_item(
    item: LineItem,
    country: CountryProfile,
    registry: Optional[LocalizationRegistry] = None,
) -> LocalizedLineItem:
    """Localize one canonical line item.

    The quantity moves to the country's unit and the rate scales inversely, so
    the amount only changes by the regional factor and currency conversion.
    """
    registry = registry or get_registry()
    currency = country.currency
    digits = fraction_digits(currency)

    target_unit = display_unit(item.unit, country)
    unit_factor = convert_unit(1.0, item.unit, target_unit)
    quantity = item.quantity * unit_factor

    adjusted_amount = apply_cost_factor(item.amount, item.category, country.code, registry)
    adjusted_rate = apply_cost_factor(item.rate, item.category, country.code, registry) / unit_factor

    amount = round(convert_currency(adjusted_amount, registry.base_currency, currency, registry), digits)
    rate = round(convert_currency(adjusted_rate, registry.base_currency, currency, registry), digits)

    return LocalizedLineItem(
        category=item.category,
        description=item.description,
        quantity=round(quantity, 2),
        unit=target_unit,
        rate=rate,
        amount=amount,
        quantity_display=f"{format_number(quantity, country)} {target_unit}",
        rate_display=format_currency(rate, country, from_currency=currency, registry=registry),
        amount_display=format_currency(amount, country, from_currency=currency, registry=registry),
    )


def localize_estimate(
    project: Project,
    items: List[LineItem],
    country: CountryProfile,
    registry: Optional[LocalizationRegistry] = None,
) -> LocalizedEstimate:
    """Localize a project's line items, total and category breakdown."""
    registry = registry or get_registry()
    currency = country.currency
    digits = fraction_digits(currency)

    localized = [localize_item(item, country, registry) for item in items]
    total = round(sum(item.amount for item in localized), digits)

    by_category: "OrderedDict[str, float]" = OrderedDict()
    for item in localized:
        by_category[item.category] = by_category.get(item.category, 0.0) + item.amount

    breakdown = [
        CategoryBreakdown(
            category=category,
            amount=round(amount, digits),
            amount_display=format_currency(amount, country, from_currency=currency, registry=registry),
            percentage=round(amount / total * 100, 1) if total else 0.0,
        )
        for category, amount in sorted(by_category.items(), key=lambda kv: kv[1], reverse=True)
    ]

    return LocalizedEstimate(
        project_id=project.id,
        project_name=project.name,
        country=country,
        currency=currency,
        items=localized,
        total=total,
        total_display=format_currency(total, country, from_currency=currency, registry=registry),
        breakdown=breakdown,
        accuracy=project.accuracy,
        created_display=format_date(project.created_at, country),
    )
