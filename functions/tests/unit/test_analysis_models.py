"""Unit tests for analysis models and provider response parsing."""

import json
import math

import pytest
from pydantic import ValidationError as PydanticValidationError

from models.analysis import (
    DEFAULT_CATEGORY,
    DEFAULT_CONFIDENCE,
    DEFAULT_PROJECT_TYPE,
    UNPARSEABLE_ACCURACY,
    AnalysisItem,
    AnalysisResult,
    parse_analysis_response,
)
from models.project import LineItem


VALID_RESPONSE = {
    "extractedText": "Two-storey residence, ground floor plan",
    "identifiedItems": [
        {
            "category": "Structural",
            "description": "Concrete Foundation",
            "quantity": 45,
            "unit": "m³",
            "estimatedRate": 450,
            "confidence": 88,
        },
        {
            "category": "Finishing",
            "description": "Interior Painting",
            "quantity": "320",
            "unit": "m²",
            "estimatedRate": 35.5,
            "confidence": 75,
        },
    ],
    "projectType": "Residential",
    "totalEstimatedCost": 31610,
    "accuracy": 91,
    "insights": ["Soil report missing", "Consider precast stairs"],
}


class TestParseAnalysisResponse:
    """Tests for parse_analysis_response."""

    def test_parses_valid_json(self):
        result = parse_analysis_response(json.dumps(VALID_RESPONSE))

        assert result.has_items
        assert len(result.identified_items) == 2
        assert result.identified_items[1].quantity == 320.0
        assert result.identified_items[1].estimated_rate == 35.5
        assert result.project_type == "Residential"
        assert result.accuracy == 91
        assert result.insights == ["Soil report missing", "Consider precast stairs"]

    def test_extracts_json_from_surrounding_prose(self):
        text = "Here is the analysis:\n```json\n" + json.dumps(VALID_RESPONSE) + "\n```\nLet me know!"
        result = parse_analysis_response(text)
        assert len(result.identified_items) == 2

    @pytest.mark.parametrize("text", [
        None,
        "",
        "I could not read this drawing.",
        "{not valid json}",
        '{"extractedText": "no items key"}',
        '{"identifiedItems": "not a list"}',
        "[1, 2, 3]",
    ])
    def test_malformed_output_yields_empty_result(self, text):
        result = parse_analysis_response(text)

        assert not result.has_items
        assert result.accuracy == UNPARSEABLE_ACCURACY
        assert result.insights

    def test_empty_items_list_is_not_malformed(self):
        result = parse_analysis_response('{"identifiedItems": [], "accuracy": 88}')
        assert not result.has_items
        assert result.accuracy == 88

    def test_defaults_fill_missing_fields(self):
        result = parse_analysis_response('{"identifiedItems": [{}]}')
        item = result.identified_items[0]

        assert item.category == DEFAULT_CATEGORY
        assert item.quantity == 1.0
        assert item.estimated_rate == 0.0
        assert item.confidence == DEFAULT_CONFIDENCE
        assert result.project_type == DEFAULT_PROJECT_TYPE

    def test_non_dict_items_are_skipped(self):
        result = parse_analysis_response('{"identifiedItems": [{"description": "Slab"}, "junk", 4]}')
        assert [i.description for i in result.identified_items] == ["Slab"]


class TestAnalysisItem:
    """Tests for lenient item coercion."""

    def test_negative_values_become_positive(self):
        item = AnalysisItem.from_raw({"quantity": -12, "estimatedRate": -3.5})
        assert item.quantity == 12
        assert item.estimated_rate == 3.5

    def test_confidence_is_clamped(self):
        assert AnalysisItem.from_raw({"confidence": 250}).confidence == 100
        assert AnalysisItem.from_raw({"confidence": "high"}).confidence == DEFAULT_CONFIDENCE

    def test_snake_case_rate_accepted(self):
        assert AnalysisItem.from_raw({"estimated_rate": 12}).estimated_rate == 12

    def test_blank_text_uses_defaults(self):
        item = AnalysisItem.from_raw({"category": "  ", "unit": None})
        assert item.category == DEFAULT_CATEGORY
        assert item.unit == "unit"


class TestAnalysisResult:
    """Tests for AnalysisResult helpers."""

    def test_empty_with_reason(self):
        result = AnalysisResult.empty("Provider returned prose")
        assert result.insights == ["Provider returned prose"]
        assert result.accuracy == UNPARSEABLE_ACCURACY

    def test_insights_coerced_to_strings(self):
        result = AnalysisResult(insights=["a", 3, None])
        assert result.insights == ["a", "3"]

    def test_insights_non_list_dropped(self):
        assert AnalysisResult(insights="just text").insights == []


class TestNonFiniteNumbers:
    """Provider numbers outside the float range fall back to defaults."""

    @pytest.mark.parametrize("literal", ["1e400", "Infinity", "-Infinity", "NaN"])
    def test_non_finite_quantity_and_rate(self, literal):
        text = (
            '{"identifiedItems": [{"category": "Civil", "quantity": %s, "estimatedRate": %s}],'
            ' "accuracy": %s, "totalEstimatedCost": %s}' % (literal, literal, literal, literal)
        )

        result = parse_analysis_response(text)

        item = result.identified_items[0]
        assert item.quantity == 1.0
        assert item.estimated_rate == 0.0
        assert result.accuracy == 85.0
        assert result.total_estimated_cost == 0.0

    def test_aggregated_total_stays_finite(self):
        from services.aggregator import aggregate

        result = parse_analysis_response(
            '{"identifiedItems": [{"category": "Civil", "quantity": 1e400, "estimatedRate": 10},'
            ' {"category": "Civil", "quantity": 4, "estimatedRate": 2.5}], "accuracy": 90}'
        )

        estimate = aggregate([result], False)

        assert math.isfinite(estimate.total_cost)
        assert estimate.total_cost == 20.0
        assert json.dumps([i.model_dump() for i in estimate.items], allow_nan=False)

    def test_models_refuse_infinity(self):
        with pytest.raises(PydanticValidationError):
            AnalysisItem(quantity=float("inf"))
        with pytest.raises(PydanticValidationError):
            LineItem(category="Civil", description="Slab", quantity=1, unit="m²", rate=1, amount=float("inf"))
