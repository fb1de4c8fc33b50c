"""Unit tests for the fallback estimator and the aggregator."""

import random

import pytest

from models.analysis import AnalysisItem, AnalysisResult
from models.project import EstimateSource
from services.aggregator import DEGRADED_ACCURACY, EstimationAggregator, aggregate
from services.fallback_estimator import (
    FALLBACK_CATALOG,
    MAX_ACCURACY,
    MIN_ACCURACY,
    PROJECT_TYPE_CATALOGS,
    FallbackEstimator,
)


@pytest.fixture
def estimator():
    return FallbackEstimator(rng=random.Random(42))


class TestFallbackEstimator:
    """Tests for FallbackEstimator.generate."""

    @pytest.mark.parametrize("seed", range(20))
    def test_estimate_is_internally_consistent(self, seed):
        estimate = FallbackEstimator(rng=random.Random(seed)).generate()

        assert 8 <= len(estimate.items) <= 12
        assert MIN_ACCURACY <= estimate.accuracy <= MAX_ACCURACY
        assert estimate.total_cost == pytest.approx(sum(i.amount for i in estimate.items), abs=0.01)
        for item in estimate.items:
            assert item.quantity > 0
            assert item.rate > 0
            assert item.amount == round(item.quantity * item.rate, 2)

    def test_items_come_from_catalog_with_jittered_rates(self, estimator):
        catalog = {entry.description: entry for entry in FALLBACK_CATALOG}
        for item in estimator.generate().items:
            entry = catalog[item.description]
            assert item.category == entry.category
            assert item.unit == entry.unit
            assert entry.base_rate * 0.8 - 0.01 <= item.rate <= entry.base_rate * 1.2 + 0.01

    def test_no_duplicate_items(self, estimator):
        descriptions = [item.description for item in estimator.generate().items]
        assert len(descriptions) == len(set(descriptions))

    def test_same_seed_same_estimate(self):
        first = FallbackEstimator(rng=random.Random(7)).generate("Industrial")
        second = FallbackEstimator(rng=random.Random(7)).generate("Industrial")
        assert first.items == second.items
        assert first.accuracy == second.accuracy

    def test_known_project_type_uses_its_catalog(self, estimator):
        estimate = estimator.generate("Renovation")
        allowed = {entry.description for entry in PROJECT_TYPE_CATALOGS["renovation"]}
        assert {item.description for item in estimate.items} <= allowed
        # The renovation catalog is smaller than the item minimum
        assert len(estimate.items) == len(allowed)

    def test_unknown_project_type_uses_full_catalog(self, estimator):
        assert estimator.catalog_for("Spaceport") is None
        assert len(estimator.generate("Spaceport").items) >= 8

    def test_catalog_lookup_ignores_case_and_whitespace(self, estimator):
        assert estimator.catalog_for("  Commercial Building ") is PROJECT_TYPE_CATALOGS["commercial building"]


def _result(*rates, accuracy=90.0):
    return AnalysisResult(
        identified_items=[
            AnalysisItem(category="Civil", description=f"Item {i}", quantity=2, unit="m²", estimated_rate=rate)
            for i, rate in enumerate(rates)
        ],
        accuracy=accuracy,
        insights=[f"insight {accuracy}"],
    )


class TestAggregator:
    """Tests for EstimationAggregator.aggregate."""

    @pytest.fixture
    def aggregator(self):
        return EstimationAggregator(FallbackEstimator(rng=random.Random(3)))

    def test_analysis_results_are_combined(self, aggregator):
        estimate = aggregator.aggregate([_result(10.0, 20.0, accuracy=90), _result(5.5, accuracy=95)], fallback_used=False)

        assert estimate.source == EstimateSource.ANALYSIS
        assert len(estimate.items) == 3
        assert estimate.total_cost == 71.0
        assert estimate.accuracy == 92.5
        assert estimate.insights == ["insight 90", "insight 95"]

    def test_not_configured_uses_simulation(self, aggregator):
        estimate = aggregator.aggregate([_result(10.0)], fallback_used=True)

        assert estimate.source == EstimateSource.SIMULATION
        assert MIN_ACCURACY <= estimate.accuracy <= MAX_ACCURACY
        assert estimate.items

    def test_no_results_uses_simulation(self, aggregator):
        estimate = aggregator.aggregate([], fallback_used=False)
        assert estimate.source == EstimateSource.SIMULATION
        assert estimate.items

    def test_results_without_items_degrade(self, aggregator):
        estimate = aggregator.aggregate([AnalysisResult.empty(), AnalysisResult.empty()], fallback_used=False)

        assert estimate.source == EstimateSource.DEGRADED
        assert estimate.accuracy == DEGRADED_ACCURACY
        assert estimate.items
        assert estimate.total_cost == pytest.approx(sum(i.amount for i in estimate.items), abs=0.01)

    def test_degraded_uses_declared_project_type(self, aggregator):
        estimate = aggregator.aggregate([AnalysisResult.empty()], fallback_used=False, project_type="renovation")
        allowed = {entry.description for entry in PROJECT_TYPE_CATALOGS["renovation"]}
        assert {item.description for item in estimate.items} <= allowed

    def test_overflowing_item_is_dropped(self, aggregator):
        huge = AnalysisItem(category="Civil", description="Runaway", quantity=1e200, unit="m²", estimated_rate=1e200)
        result = _result(10.0)
        result.identified_items.append(huge)

        estimate = aggregator.aggregate([result], fallback_used=False)

        assert [i.description for i in estimate.items] == ["Item 0"]
        assert estimate.total_cost == 20.0

    def test_module_level_aggregate(self):
        estimate = aggregate([_result(1.0)], fallback_used=False)
        assert estimate.total_cost == 2.0
