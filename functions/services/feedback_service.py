"""Estimate feedback and training-data collection for CostScan.

Users annotate a completed project's line items. Collecting a project turns
its estimate, files and annotations into one scored training record; records
can be summarized or exported as JSON or CSV.
"""

import csv
import io
import json
from typing import Any, Dict, List, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from config.errors import CostScanError, ErrorCode, ValidationError
from config.settings import settings
from models.feedback import (
    AnnotationType,
    CostRecord,
    TrainingDocument,
    TrainingRecord,
    TrainingStats,
    UserAnnotation,
    classify_document,
    quality_score,
)
from models.project import FileStatus, LineItem, Project, ProjectStatus

logger = structlog.get_logger()

EXPORT_FORMATS = ("json", "csv")
CSV_HEADERS = ["project_id", "project_name", "project_type", "quality_score", "region", "completion_date"]


class FeedbackService:
    """Annotations and training records for one store."""

    def __init__(self, store):
        self.store = store

    async def _require_completed(self, user_id: str, project_id: str) -> Project:
        project = await self.store.get_project(user_id, project_id)
        if project is None:
            raise CostScanError(
                code=ErrorCode.PROJECT_NOT_FOUND,
                message=f"Project not found: {project_id}",
                details={"projectId": project_id}
            )
        if project.status != ProjectStatus.COMPLETED:
            raise CostScanError(
                code=ErrorCode.PIPELINE_INVALID_STATE,
                message=f"Project must be completed (is {project.status.value})",
                details={"projectId": project_id, "status": project.status.value}
            )
        return project

    # =========================================================================
    # ANNOTATIONS
    # =========================================================================

    async def submit_annotation(
        self,
        user_id: str,
        project_id: str,
        annotation_type: str,
        item_index: Optional[int] = None,
        corrected_value: Optional[Dict[str, Any]] = None,
        confidence: float = 1.0,
        notes: Optional[str] = None,
    ) -> UserAnnotation:
        """Record feedback on a completed project.

        Corrections and verifications name a line item by position; the
        item's current values are kept as the original value. Corrections
        and additions must carry a corrected value.

        Raises:
            ValidationError: INVALID_FIELD / MISSING_FIELD for bad input.
            CostScanError: PROJECT_NOT_FOUND, or PIPELINE_INVALID_STATE if
                the project is not completed.
        """
        try:
            kind = AnnotationType(annotation_type)
        except ValueError:
            raise ValidationError(
                message=f"Unknown annotation type: {annotation_type}",
                field="annotationType",
                details={"supported": [t.value for t in AnnotationType]},
                code=ErrorCode.INVALID_FIELD
            )

        await self._require_completed(user_id, project_id)

        original_value: Dict[str, Any] = {}
        if kind in (AnnotationType.CORRECTION, AnnotationType.VERIFICATION):
            items = await self.store.list_line_items(user_id, project_id)
            if isinstance(item_index, bool) or not isinstance(item_index, int) \
                    or not 0 <= item_index < len(items):
                raise ValidationError(
                    message=f"itemIndex must name one of the project's {len(items)} line items",
                    field="itemIndex",
                    code=ErrorCode.INVALID_FIELD
                )
            original_value = items[item_index].model_dump()
        else:
            item_index = None

        if kind != AnnotationType.VERIFICATION and not corrected_value:
            raise ValidationError(
                message=f"A {kind.value} needs a correctedValue",
                field="correctedValue",
                code=ErrorCode.MISSING_FIELD
            )

        try:
            annotation = UserAnnotation(
                id=self.store.new_annotation_id(user_id, project_id),
                project_id=project_id,
                user_id=user_id,
                annotation_type=kind,
                item_index=item_index,
                original_value=original_value,
                corrected_value=corrected_value or {},
                confidence=confidence,
                notes=notes,
            )
        except PydanticValidationError as e:
            raise ValidationError(
                message=f"Invalid annotation: {e.errors()[0]['msg']}",
                field="annotation",
                code=ErrorCode.INVALID_FIELD
            )

        return await self.store.add_annotation(user_id, annotation)

    async def list_annotations(self, user_id: str, project_id: str) -> List[UserAnnotation]:
        project = await self.store.get_project(user_id, project_id)
        if project is None:
            raise CostScanError(
                code=ErrorCode.PROJECT_NOT_FOUND,
                message=f"Project not found: {project_id}",
                details={"projectId": project_id}
            )
        return await self.store.list_annotations(user_id, project_id)

    # =========================================================================
    # TRAINING DATA
    # =========================================================================

    async def collect_training_data(
        self,
        user_id: str,
        project_id: str,
        region: Optional[str] = None,
    ) -> TrainingRecord:
        """Build and store the training record of a completed project.

        Actual costs come from the latest correction of each line item;
        items nobody corrected count as estimated. Additions are recorded
        as costs the estimate missed. Collecting again replaces the record.
        """
        project = await self._require_completed(user_id, project_id)
        items = await self.store.list_line_items(user_id, project_id)
        files = await self.store.list_files(user_id, project_id)
        annotations = sorted(
            await self.store.list_annotations(user_id, project_id),
            key=lambda a: a.created_at,
        )

        file_confidence = project.accuracy / 100
        documents = [
            TrainingDocument(
                file_id=f.id,
                file_name=f.file_name,
                document_type=classify_document(f.file_name, f.file_type),
                confidence=file_confidence if f.processing_status == FileStatus.COMPLETED else 0.0,
            )
            for f in files
        ]

        costs = self._cost_records(items, annotations)
        verifications = sum(1 for a in annotations if a.annotation_type == AnnotationType.VERIFICATION)

        record = TrainingRecord(
            project_id=project.id,
            project_name=project.name,
            project_type=project.type,
            region=(region or settings.default_country).strip().upper(),
            documents=documents,
            costs=costs,
            annotation_count=len(annotations),
            verification_count=verifications,
            quality_score=quality_score(documents, costs, len(annotations), verifications),
            completed_at=project.updated_at,
        )
        await self.store.save_training_record(user_id, record)

        logger.info(
            "training_data_collected",
            project_id=project_id,
            documents=len(documents),
            annotations=len(annotations),
            quality_score=record.quality_score,
        )
        return record

    @staticmethod
    def _cost_records(items: List[LineItem], annotations: List[UserAnnotation]) -> List[CostRecord]:
        corrected: Dict[int, float] = {}
        missed: List[CostRecord] = []
        for annotation in annotations:
            amount = annotation.corrected_amount()
            if amount is None:
                continue
            if annotation.annotation_type == AnnotationType.CORRECTION:
                corrected[annotation.item_index] = amount
            elif annotation.annotation_type == AnnotationType.ADDITION:
                value = annotation.corrected_value
                missed.append(CostRecord.create(
                    category=str(value.get("category") or "Other"),
                    description=str(value.get("description") or "Missed item"),
                    estimated=0.0,
                    actual=amount,
                ))

        records = [
            CostRecord.create(item.category, item.description, item.amount, corrected.get(index, item.amount))
            for index, item in enumerate(items)
        ]
        return records + missed

    async def training_stats(self, user_id: str) -> TrainingStats:
        return TrainingStats.from_records(await self.store.list_training_records(user_id))

    async def export_training_data(self, user_id: str, fmt: str = "json") -> str:
        """Export the user's training records.

        Raises:
            ValidationError: INVALID_FIELD for a format other than json or csv.
        """
        fmt = (fmt or "json").strip().lower()
        if fmt not in EXPORT_FORMATS:
            raise ValidationError(
                message=f"Unsupported export format: {fmt}",
                field="format",
                details={"supported": list(EXPORT_FORMATS)},
                code=ErrorCode.INVALID_FIELD
            )

        records = await self.store.list_training_records(user_id)
        logger.info("training_data_exported", user_id=user_id, format=fmt, records=len(records))

        if fmt == "json":
            return json.dumps([r.to_dict() for r in records], indent=2, ensure_ascii=False)

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for record in records:
            writer.writerow([
                record.project_id,
                record.project_name,
                record.project_type,
                record.quality_score,
                record.region,
                record.completed_at.isoformat(),
            ])
        return buffer.getvalue()
