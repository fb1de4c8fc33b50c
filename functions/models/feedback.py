"""Feedback and training-data models for CostScan.

Users annotate completed estimates (corrections, verifications, additions).
A completed project plus its annotations is collected into one training
record per project, scored for how useful it is as training data.
"""

import math
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.project import utc_now


class AnnotationType(str, Enum):
    """Kind of user feedback on an estimate."""

    CORRECTION = "correction"       # A line item's quantity or rate was wrong
    VERIFICATION = "verification"   # A line item was checked and is right
    ADDITION = "addition"           # A cost the estimate missed


class DocumentType(str, Enum):
    """Training-data classification of an uploaded document."""

    DRAWING = "drawing"
    SPECIFICATION = "specification"
    BOQ = "boq"
    OTHER = "other"


BOQ_EXTENSIONS = (".xlsx", ".xls", ".csv")
SPECIFICATION_EXTENSIONS = (".docx", ".doc", ".txt")


def classify_document(file_name: str, file_type: str = "") -> DocumentType:
    """Classify a document by extension, then MIME type."""
    name = (file_name or "").lower()
    if name.endswith(BOQ_EXTENSIONS):
        return DocumentType.BOQ
    if name.endswith(SPECIFICATION_EXTENSIONS):
        return DocumentType.SPECIFICATION
    if name.endswith(".pdf") or (file_type or "").startswith("image/") or file_type == "application/pdf":
        return DocumentType.DRAWING
    return DocumentType.OTHER


# =============================================================================
# ANNOTATIONS
# =============================================================================


class UserAnnotation(BaseModel):
    """One piece of user feedback on a completed project."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    project_id: str = Field(..., min_length=1, alias="projectId")
    user_id: str = Field(..., min_length=1, alias="userId")
    annotation_type: AnnotationType = Field(..., alias="annotationType")
    item_index: Optional[int] = Field(
        default=None,
        ge=0,
        alias="itemIndex",
        description="Position of the annotated line item (corrections and verifications)"
    )
    original_value: Dict[str, Any] = Field(default_factory=dict, alias="originalValue")
    corrected_value: Dict[str, Any] = Field(default_factory=dict, alias="correctedValue")
    confidence: float = Field(default=1.0, ge=0.0, le=1.0, allow_inf_nan=False)
    notes: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")

    @field_validator("corrected_value")
    @classmethod
    def numbers_are_finite(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        for key in ("quantity", "rate", "amount"):
            if key not in value:
                continue
            number = value[key]
            if isinstance(number, bool) or not isinstance(number, (int, float)):
                raise ValueError(f"{key} must be a number")
            if not math.isfinite(number) or number < 0:
                raise ValueError(f"{key} must be a finite, non-negative number")
        return value

    def corrected_amount(self) -> Optional[float]:
        """Corrected line amount, if the correction carries enough to compute one."""
        value = self.corrected_value
        if "amount" in value:
            return float(value["amount"])
        if "quantity" in value and "rate" in value:
            return round(float(value["quantity"]) * float(value["rate"]), 2)
        return None

    def to_firestore(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude={"id"})
        data["annotationType"] = self.annotation_type.value
        return data

    @classmethod
    def from_firestore(cls, doc_id: str, data: Dict[str, Any]) -> "UserAnnotation":
        return cls.model_validate({**data, "id": doc_id})

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# TRAINING DATA
# =============================================================================


class TrainingDocument(BaseModel):
    """A document of a collected project."""

    model_config = ConfigDict(populate_by_name=True)

    file_id: str = Field(..., alias="fileId")
    file_name: str = Field(..., alias="fileName")
    document_type: DocumentType = Field(..., alias="documentType")
    confidence: float = Field(..., ge=0.0, le=1.0)


class CostRecord(BaseModel):
    """Estimated versus user-reported cost for one line item."""

    model_config = ConfigDict(populate_by_name=True)

    category: str
    description: str
    estimated_amount: float = Field(..., ge=0, allow_inf_nan=False, alias="estimatedAmount")
    actual_amount: float = Field(..., ge=0, allow_inf_nan=False, alias="actualAmount")
    variance_percent: float = Field(default=0.0, allow_inf_nan=False, alias="variancePercent")

    @classmethod
    def create(cls, category: str, description: str, estimated: float, actual: float) -> "CostRecord":
        """Record with variance as a percentage of the estimate (0 when nothing was estimated)."""
        variance = (actual - estimated) / estimated * 100 if estimated > 0 else 0.0
        return cls(
            category=category,
            description=description,
            estimated_amount=estimated,
            actual_amount=actual,
            variance_percent=round(variance, 2),
        )


class TrainingRecord(BaseModel):
    """One completed project collected as training data."""

    model_config = ConfigDict(populate_by_name=True)

    project_id: str = Field(..., min_length=1, alias="projectId")
    project_name: str = Field(..., alias="projectName")
    project_type: str = Field(..., alias="projectType")
    region: str = Field(..., min_length=1)
    documents: List[TrainingDocument] = Field(default_factory=list)
    costs: List[CostRecord] = Field(default_factory=list)
    annotation_count: int = Field(default=0, ge=0, alias="annotationCount")
    verification_count: int = Field(default=0, ge=0, alias="verificationCount")
    quality_score: float = Field(..., ge=0.0, le=1.0, alias="qualityScore")
    completed_at: datetime = Field(..., alias="completedAt")
    collected_at: datetime = Field(default_factory=utc_now, alias="collectedAt")

    def to_firestore(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json", by_alias=True, exclude={"completed_at", "collected_at"})
        data["completedAt"] = self.completed_at
        data["collectedAt"] = self.collected_at
        return data

    @classmethod
    def from_firestore(cls, data: Dict[str, Any]) -> "TrainingRecord":
        return cls.model_validate(data)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def quality_score(
    documents: List[TrainingDocument],
    costs: List[CostRecord],
    annotation_count: int,
    verification_count: int,
) -> float:
    """Score a training record between 0.5 and 1.0.

    Starts at 0.5 and adds weighted document confidence (0.3), cost accuracy
    (0.4, falling to zero at 100% average absolute variance) and the share of
    annotations that are verifications (0.3), capped at 1.0.
    """
    doc_confidence = sum(d.confidence for d in documents) / (len(documents) or 1)
    avg_variance = sum(abs(c.variance_percent) for c in costs) / (len(costs) or 1)
    accuracy = max(0.0, 1 - avg_variance / 100)
    verification_share = verification_count / (annotation_count or 1)

    score = 0.5 + doc_confidence * 0.3 + accuracy * 0.4 + verification_share * 0.3
    return round(min(score, 1.0), 4)


class TrainingStats(BaseModel):
    """Aggregate view over a user's training records."""

    total_projects: int = 0
    total_documents: int = 0
    total_annotations: int = 0
    avg_quality_score: float = 0.0
    data_by_region: Dict[str, int] = Field(default_factory=dict)
    data_by_type: Dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_records(cls, records: List[TrainingRecord]) -> "TrainingStats":
        by_region: Dict[str, int] = {}
        by_type: Dict[str, int] = {}
        for record in records:
            by_region[record.region] = by_region.get(record.region, 0) + 1
            by_type[record.project_type] = by_type.get(record.project_type, 0) + 1

        return cls(
            total_projects=len(records),
            total_documents=sum(len(r.documents) for r in records),
            total_annotations=sum(r.annotation_count for r in records),
            avg_quality_score=round(sum(r.quality_score for r in records) / len(records), 4) if records else 0.0,
            data_by_region=by_region,
            data_by_type=by_type,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalProjects": self.total_projects,
            "totalDocuments": self.total_documents,
            "totalAnnotations": self.total_annotations,
            "avgQualityScore": self.avg_quality_score,
            "dataByRegion": self.data_by_region,
            "dataByType": self.data_by_type,
        }
