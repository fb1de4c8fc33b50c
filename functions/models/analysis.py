"""Document analysis Pydantic models for CostScan.

AnalysisResult is the transient, per-document output of the document analysis
capability. It is never persisted directly; the aggregator reduces it into
LineItems.
"""

import json
import math
import re
from typing import Any, Dict, List, Optional

import structlog
from pydantic import BaseModel, Field, field_validator

logger = structlog.get_logger()


DEFAULT_CATEGORY = "General"
DEFAULT_DESCRIPTION = "Construction item"
DEFAULT_UNIT = "unit"
DEFAULT_CONFIDENCE = 80.0
DEFAULT_PROJECT_TYPE = "Construction Project"
DEFAULT_ACCURACY = 85.0

# Accuracy reported for a response that could not be parsed
UNPARSEABLE_ACCURACY = 75.0


def _number(value: Any, default: float) -> float:
    """Coerce to a float, using default for missing, invalid, infinite or zero values."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number) or number == 0:
        return default
    return number


def _text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


# =============================================================================
# ANALYSIS ITEM
# =============================================================================


class AnalysisItem(BaseModel):
    """One cost item identified in a document."""

    category: str = Field(default=DEFAULT_CATEGORY, description="Category (e.g., Structural, Civil)")
    description: str = Field(default=DEFAULT_DESCRIPTION, description="Item description")
    quantity: float = Field(default=1.0, ge=0, allow_inf_nan=False, description="Quantity in the item's unit")
    unit: str = Field(default=DEFAULT_UNIT, description="Unit of measurement")
    estimated_rate: float = Field(default=0.0, ge=0, allow_inf_nan=False, description="USD per unit")
    confidence: float = Field(default=DEFAULT_CONFIDENCE, ge=0, le=100, description="Confidence 0-100")

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "AnalysisItem":
        """Leniently build an item from provider JSON (camelCase keys)."""
        rate = raw.get("estimatedRate", raw.get("estimated_rate"))
        return cls(
            category=_text(raw.get("category"), DEFAULT_CATEGORY),
            description=_text(raw.get("description"), DEFAULT_DESCRIPTION),
            quantity=abs(_number(raw.get("quantity"), 1.0)),
            unit=_text(raw.get("unit"), DEFAULT_UNIT),
            estimated_rate=abs(_number(rate, 0.0)),
            confidence=min(max(_number(raw.get("confidence"), DEFAULT_CONFIDENCE), 0.0), 100.0),
        )


# =============================================================================
# ANALYSIS RESULT
# =============================================================================


class AnalysisResult(BaseModel):
    """Structured cost analysis of one document."""

    extracted_text: str = Field(default="", description="Brief summary of document content")
    identified_items: List[AnalysisItem] = Field(default_factory=list)
    project_type: str = Field(default=DEFAULT_PROJECT_TYPE)
    total_estimated_cost: float = Field(default=0.0, ge=0, allow_inf_nan=False, description="Provider-reported total (informational)")
    accuracy: float = Field(default=DEFAULT_ACCURACY, ge=0, le=100)
    insights: List[str] = Field(default_factory=list)

    @field_validator("insights", mode="before")
    @classmethod
    def stringify_insights(cls, v: Any) -> List[str]:
        if not isinstance(v, list):
            return []
        return [str(i) for i in v if i is not None]

    @classmethod
    def empty(cls, reason: Optional[str] = None) -> "AnalysisResult":
        """Result for a response with no usable structure."""
        return cls(
            extracted_text="Document processed with limited analysis",
            identified_items=[],
            accuracy=UNPARSEABLE_ACCURACY,
            insights=[reason or "AI analysis encountered an error. Manual review recommended."],
        )

    @property
    def has_items(self) -> bool:
        return bool(self.identified_items)


_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def parse_analysis_response(text: Optional[str]) -> AnalysisResult:
    """Parse a provider's text response into an AnalysisResult.

    The first {...} span is parsed as JSON. Anything malformed yields
    AnalysisResult.empty() rather than an error.
    """
    if not text:
        logger.warning("analysis_response_empty")
        return AnalysisResult.empty()

    match = _JSON_OBJECT.search(text)
    if not match:
        logger.warning("analysis_response_no_json", preview=text[:200])
        return AnalysisResult.empty()

    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.warning("analysis_response_invalid_json", error=str(e))
        return AnalysisResult.empty()

    raw_items = parsed.get("identifiedItems") if isinstance(parsed, dict) else None
    if not isinstance(raw_items, list):
        logger.warning("analysis_response_missing_items")
        return AnalysisResult.empty()

    items = [AnalysisItem.from_raw(item) for item in raw_items if isinstance(item, dict)]
    accuracy = min(max(_number(parsed.get("accuracy"), DEFAULT_ACCURACY), 0.0), 100.0)

    return AnalysisResult(
        extracted_text=_text(parsed.get("extractedText"), "Document analyzed"),
        identified_items=items,
        project_type=_text(parsed.get("projectType"), DEFAULT_PROJECT_TYPE),
        total_estimated_cost=abs(_number(parsed.get("totalEstimatedCost"), 0.0)),
        accuracy=accuracy,
        insights=parsed.get("insights", []),
    )
