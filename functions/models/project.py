"""Project Pydantic models for CostScan.

This module defines the persisted records: projects, uploaded file records
and estimation line items. All monetary values are canonical (USD) and all
quantities are in metric units.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# =============================================================================
# ENUMS
# =============================================================================


class ProjectStatus(str, Enum):
    """Project lifecycle status."""

    DRAFT = "draft"
    PROCESSING = "processing"
    COMPLETED = "completed"
    REVIEW = "review"


class FileStatus(str, Enum):
    """Per-file processing status."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class EstimateSource(str, Enum):
    """Where a project's line items came from."""

    ANALYSIS = "analysis"       # Live document analysis
    SIMULATION = "simulation"   # No provider configured
    DEGRADED = "degraded"       # Provider returned no usable items


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# LINE ITEM
# =============================================================================


class LineItem(BaseModel):
    """One cost line of an estimate.

    Immutable once created; superseded only by re-running processing.
    """

    model_config = ConfigDict(frozen=True)

    category: str = Field(..., min_length=1, description="Cost category (e.g., 'Structural')")
    description: str = Field(..., min_length=1, description="Item description")
    quantity: float = Field(..., ge=0, allow_inf_nan=False, description="Quantity in canonical (metric) units")
    unit: str = Field(..., description="Canonical unit symbol")
    rate: float = Field(..., ge=0, allow_inf_nan=False, description="Canonical USD rate per unit")
    amount: float = Field(..., ge=0, allow_inf_nan=False, description="quantity x rate, rounded to cents")

    @classmethod
    def create(cls, category: str, description: str, quantity: float, unit: str, rate: float) -> "LineItem":
        """Build a line item with its amount computed from quantity and rate."""
        return cls(
            category=category,
            description=description,
            quantity=quantity,
            unit=unit,
            rate=rate,
            amount=round(quantity * rate, 2),
        )

    def to_firestore(self) -> Dict[str, Any]:
        return self.model_dump()

    @classmethod
    def from_firestore(cls, data: Dict[str, Any]) -> "LineItem":
        return cls(**{k: data[k] for k in cls.model_fields if k in data})


# =============================================================================
# PROJECT
# =============================================================================


class Project(BaseModel):
    """A user's estimation project."""

    id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, description="Project name")
    type: str = Field(..., min_length=1, description="Project type (e.g., 'Residential')")
    status: ProjectStatus = Field(default=ProjectStatus.DRAFT)
    total_cost: float = Field(default=0.0, ge=0, allow_inf_nan=False, description="Sum of line item amounts (USD)")
    accuracy: float = Field(default=0.0, ge=0, le=100, description="Confidence score 0-100")
    processing_time: Optional[str] = Field(default=None, description="Elapsed processing time, e.g. '12s'")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("name", "type")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    def to_firestore(self) -> Dict[str, Any]:
        """Firestore document shape (camelCase, id stored as document key)."""
        return {
            "userId": self.user_id,
            "name": self.name,
            "type": self.type,
            "status": self.status.value,
            "totalCost": self.total_cost,
            "accuracy": self.accuracy,
            "processingTime": self.processing_time,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_firestore(cls, doc_id: str, data: Dict[str, Any]) -> "Project":
        return cls(
            id=doc_id,
            user_id=data.get("userId", ""),
            name=data.get("name", ""),
            type=data.get("type", ""),
            status=data.get("status", ProjectStatus.DRAFT.value),
            total_cost=data.get("totalCost") or 0.0,
            accuracy=data.get("accuracy") or 0.0,
            processing_time=data.get("processingTime"),
            created_at=data.get("createdAt") or utc_now(),
            updated_at=data.get("updatedAt") or utc_now(),
        )

    def to_dict(self) -> Dict[str, Any]:
        """API response shape."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "status": self.status.value,
            "totalCost": self.total_cost,
            "accuracy": self.accuracy,
            "processingTime": self.processing_time,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


# =============================================================================
# FILE RECORD
# =============================================================================


class ProjectFile(BaseModel):
    """Metadata for one uploaded document."""

    id: str = Field(..., min_length=1)
    project_id: str = Field(..., min_length=1)
    file_name: str = Field(..., min_length=1)
    file_size: int = Field(..., ge=0, description="Size in bytes")
    file_type: str = Field(default="application/octet-stream", description="MIME type")
    storage_path: str = Field(..., min_length=1, description="Object path in the storage bucket")
    processing_status: FileStatus = Field(default=FileStatus.PENDING)
    error: Optional[str] = Field(default=None, description="Error message when status is error")
    created_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def error_only_when_failed(self) -> "ProjectFile":
        if self.error and self.processing_status != FileStatus.ERROR:
            raise ValueError("error message requires processing_status=error")
        return self

    def to_firestore(self) -> Dict[str, Any]:
        return {
            "projectId": self.project_id,
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "fileType": self.file_type,
            "storagePath": self.storage_path,
            "processingStatus": self.processing_status.value,
            "error": self.error,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_firestore(cls, doc_id: str, data: Dict[str, Any]) -> "ProjectFile":
        return cls(
            id=doc_id,
            project_id=data.get("projectId", ""),
            file_name=data.get("fileName", ""),
            file_size=data.get("fileSize") or 0,
            file_type=data.get("fileType") or "application/octet-stream",
            storage_path=data.get("storagePath", ""),
            processing_status=data.get("processingStatus", FileStatus.PENDING.value),
            error=data.get("error"),
            created_at=data.get("createdAt") or utc_now(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "fileType": self.file_type,
            "processingStatus": self.processing_status.value,
            "error": self.error,
            "createdAt": self.created_at.isoformat(),
        }


class ProjectDetail(BaseModel):
    """Project with its line items and file records."""

    project: Project
    items: List[LineItem] = Field(default_factory=list)
    files: List[ProjectFile] = Field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project": self.project.to_dict(),
            "items": [item.model_dump() for item in self.items],
            "files": [f.to_dict() for f in self.files],
        }


# =============================================================================
# PROCESSING RESULT
# =============================================================================


class ProcessingResult(BaseModel):
    """Outcome of one pipeline run."""

    project_id: str
    total_cost: float = Field(..., ge=0)
    items: List[LineItem] = Field(..., min_length=1)
    accuracy: float = Field(..., ge=0, le=100)
    processing_time: str
    source: EstimateSource
    file_statuses: Dict[str, FileStatus] = Field(default_factory=dict, description="file id -> final status")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "projectId": self.project_id,
            "status": ProjectStatus.COMPLETED.value,
            "totalCost": self.total_cost,
            "accuracy": self.accuracy,
            "processingTime": self.processing_time,
            "source": self.source.value,
            "itemCount": len(self.items),
            "items": [item.model_dump() for item in self.items],
            "fileStatuses": {k: v.value for k, v in self.file_statuses.items()},
        }
