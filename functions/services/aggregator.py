"""Estimation aggregator for CostScan.

Combines per-document AnalysisResults into one project-level estimate, or
substitutes the fallback estimator when there is nothing usable to combine.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import structlog

from models.analysis import AnalysisResult
from models.project import EstimateSource, LineItem
from services.fallback_estimator import FallbackEstimator

logger = structlog.get_logger()


# Fixed accuracy reported when analysis ran but produced no items
DEGRADED_ACCURACY = 85.0


@dataclass
class AggregatedEstimate:
    """Project-level estimate ready to persist."""

    items: List[LineItem]
    total_cost: float
    accuracy: float
    source: EstimateSource
    insights: List[str] = field(default_factory=list)


class EstimationAggregator:
    """Reduces analysis results into line items, totals and accuracy."""

    def __init__(self, fallback: Optional[FallbackEstimator] = None):
        self.fallback = fallback or FallbackEstimator()

    def aggregate(
        self,
        results: Sequence[AnalysisResult],
        fallback_used: bool,
        project_type: Optional[str] = None,
    ) -> AggregatedEstimate:
        """Aggregate successful per-document results.

        Args:
            results: Results of documents that analyzed successfully. Errored
                documents are excluded by the caller.
            fallback_used: True when no analysis provider is configured.
            project_type: Declared project type, used by the fallback.

        Returns:
            AggregatedEstimate whose total_cost is the sum of its item amounts.
        """
        if fallback_used or not results:
            estimate = self.fallback.generate(project_type)
            logger.info(
                "aggregate_simulation",
                reason="not_configured" if fallback_used else "no_results",
                item_count=len(estimate.items),
            )
            return AggregatedEstimate(
                items=estimate.items,
                total_cost=estimate.total_cost,
                accuracy=estimate.accuracy,
                source=EstimateSource.SIMULATION,
            )

        items = []
        for result in results:
            for item in result.identified_items:
                if not math.isfinite(item.quantity * item.estimated_rate):
                    logger.warning("aggregate_item_overflow", description=item.description)
                    continue
                items.append(LineItem.create(
                    category=item.category,
                    description=item.description,
                    quantity=item.quantity,
                    unit=item.unit,
                    rate=item.estimated_rate,
                ))
        insights = [insight for result in results for insight in result.insights]

        if not items:
            estimate = self.fallback.generate(project_type)
            logger.warning(
                "aggregate_degraded",
                document_count=len(results),
                item_count=len(estimate.items),
            )
            return AggregatedEstimate(
                items=estimate.items,
                total_cost=estimate.total_cost,
                accuracy=DEGRADED_ACCURACY,
                source=EstimateSource.DEGRADED,
                insights=insights,
            )

        total_cost = round(sum(item.amount for item in items), 2)
        accuracy = round(sum(r.accuracy for r in results) / len(results), 1)

        logger.info(
            "aggregate_analysis",
            document_count=len(results),
            item_count=len(items),
            total_cost=total_cost,
            accuracy=accuracy,
        )

        return AggregatedEstimate(
            items=items,
            total_cost=total_cost,
            accuracy=accuracy,
            source=EstimateSource.ANALYSIS,
            insights=insights,
        )


def aggregate(
    results: Sequence[AnalysisResult],
    fallback_used: bool,
    project_type: Optional[str] = None,
) -> AggregatedEstimate:
    """Aggregate with a default aggregator."""
    return EstimationAggregator().aggregate(results, fallback_used, project_type)
