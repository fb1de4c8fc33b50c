"""Unit tests for estimate feedback and training-data collection."""

import json
from datetime import datetime, timezone

import pytest

from config.errors import CostScanError, ErrorCode, ValidationError
from models.feedback import (
    AnnotationType,
    CostRecord,
    DocumentType,
    TrainingDocument,
    TrainingRecord,
    TrainingStats,
    classify_document,
    quality_score,
)
from models.project import FileStatus, LineItem, Project, ProjectFile, ProjectStatus
from services.feedback_service import CSV_HEADERS, FeedbackService

USER = "user-1"
PROJECT = "proj-1"

ITEMS = [
    LineItem.create("Structural", "Concrete Foundation", 10, "m³", 100.0),
    LineItem.create("Civil", "Brick Work", 5, "m²", 100.0),
]


async def _completed_project(store, project_id=PROJECT, project_type="Residential", accuracy=90.0):
    await store.create_project(Project(id=project_id, user_id=USER, name="Riverside Villa", type=project_type))
    await store.add_file(USER, ProjectFile(
        id=f"{project_id}-plan", project_id=project_id, file_name="plan.pdf", file_size=10,
        file_type="application/pdf", storage_path=f"users/{USER}/plan.pdf",
        processing_status=FileStatus.COMPLETED,
    ))
    await store.add_file(USER, ProjectFile(
        id=f"{project_id}-boq", project_id=project_id, file_name="boq.xlsx", file_size=10,
        file_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        storage_path=f"users/{USER}/boq.xlsx",
        processing_status=FileStatus.ERROR, error="EXTRACTION_FAILED: unreadable sheet",
    ))
    await store.complete_project(USER, project_id, ITEMS, 1500.0, accuracy, "3s")


@pytest.fixture
def service(memory_store):
    return FeedbackService(memory_store)


class TestAnnotations:
    """Tests for submit_annotation."""

    @pytest.mark.asyncio
    async def test_correction_keeps_original_values(self, service, memory_store):
        await _completed_project(memory_store)

        annotation = await service.submit_annotation(
            USER, PROJECT, "correction", item_index=0,
            corrected_value={"quantity": 11, "rate": 100.0}, confidence=0.8, notes="Measured on site",
        )

        assert annotation.annotation_type == AnnotationType.CORRECTION
        assert annotation.original_value["amount"] == 1000.0
        assert annotation.corrected_amount() == 1100.0
        assert await service.list_annotations(USER, PROJECT) == [annotation]

    @pytest.mark.asyncio
    async def test_addition_has_no_item(self, service, memory_store):
        await _completed_project(memory_store)

        annotation = await service.submit_annotation(
            USER, PROJECT, "addition", item_index=7,
            corrected_value={"category": "Civil", "description": "Fencing", "amount": 200},
        )

        assert annotation.item_index is None
        assert annotation.original_value == {}

    @pytest.mark.asyncio
    async def test_unknown_type(self, service, memory_store):
        await _completed_project(memory_store)

        with pytest.raises(ValidationError) as exc_info:
            await service.submit_annotation(USER, PROJECT, "complaint")
        assert exc_info.value.code == ErrorCode.INVALID_FIELD
        assert exc_info.value.field == "annotationType"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("item_index", [None, -1, 2, True, "0"])
    async def test_item_index_must_name_an_item(self, service, memory_store, item_index):
        await _completed_project(memory_store)

        with pytest.raises(ValidationError) as exc_info:
            await service.submit_annotation(USER, PROJECT, "verification", item_index=item_index)
        assert exc_info.value.field == "itemIndex"

    @pytest.mark.asyncio
    async def test_correction_needs_corrected_value(self, service, memory_store):
        await _completed_project(memory_store)

        with pytest.raises(ValidationError) as exc_info:
            await service.submit_annotation(USER, PROJECT, "correction", item_index=0)
        assert exc_info.value.code == ErrorCode.MISSING_FIELD

    @pytest.mark.asyncio
    @pytest.mark.parametrize("corrected_value,confidence", [
        ({"amount": float("inf")}, 1.0),
        ({"rate": -5.0, "quantity": 1}, 1.0),
        ({"quantity": "lots"}, 1.0),
        ({"amount": 10.0}, 1.5),
    ])
    async def test_invalid_values_rejected(self, service, memory_store, corrected_value, confidence):
        await _completed_project(memory_store)

        with pytest.raises(ValidationError) as exc_info:
            await service.submit_annotation(
                USER, PROJECT, "correction", item_index=0,
                corrected_value=corrected_value, confidence=confidence,
            )
        assert exc_info.value.code == ErrorCode.INVALID_FIELD
        assert memory_store.annotations == {}

    @pytest.mark.asyncio
    async def test_project_must_be_completed(self, service, memory_store):
        await memory_store.create_project(Project(id=PROJECT, user_id=USER, name="Villa", type="Residential"))

        with pytest.raises(CostScanError) as exc_info:
            await service.submit_annotation(USER, PROJECT, "verification", item_index=0)
        assert exc_info.value.code == ErrorCode.PIPELINE_INVALID_STATE

    @pytest.mark.asyncio
    async def test_missing_project(self, service):
        with pytest.raises(CostScanError) as exc_info:
            await service.submit_annotation(USER, "proj-missing", "verification", item_index=0)
        assert exc_info.value.code == ErrorCode.PROJECT_NOT_FOUND


class TestTrainingData:
    """Tests for collect_training_data, training_stats and export_training_data."""

    @pytest.mark.asyncio
    async def test_collect_uses_annotations(self, service, memory_store):
        await _completed_project(memory_store)
        await service.submit_annotation(USER, PROJECT, "correction", item_index=0, corrected_value={"amount": 1300.0})
        await service.submit_annotation(USER, PROJECT, "correction", item_index=0, corrected_value={"amount": 1100.0})
        await service.submit_annotation(USER, PROJECT, "verification", item_index=1)
        await service.submit_annotation(
            USER, PROJECT, "addition",
            corrected_value={"category": "Civil", "description": "Fencing", "amount": 200.0},
        )

        record = await service.collect_training_data(USER, PROJECT, region="de")

        assert record.region == "DE"
        assert [(d.document_type, d.confidence) for d in record.documents] == [
            (DocumentType.DRAWING, 0.9),
            (DocumentType.BOQ, 0.0),
        ]
        # Latest correction wins; the verified item keeps its estimate
        assert [(c.description, c.actual_amount, c.variance_percent) for c in record.costs] == [
            ("Concrete Foundation", 1100.0, 10.0),
            ("Brick Work", 500.0, 0.0),
            ("Fencing", 200.0, 0.0),
        ]
        assert record.annotation_count == 4
        assert record.verification_count == 1
        assert record.quality_score == 1.0
        assert memory_store.training_records[(USER, PROJECT)] == record

    @pytest.mark.asyncio
    async def test_collect_defaults_region_and_replaces_record(self, service, memory_store):
        await _completed_project(memory_store)

        await service.collect_training_data(USER, PROJECT)
        record = await service.collect_training_data(USER, PROJECT)

        assert record.region == "US"
        assert record.annotation_count == 0
        assert len(memory_store.training_records) == 1

    @pytest.mark.asyncio
    async def test_collect_requires_completed_project(self, service, memory_store):
        await memory_store.create_project(Project(
            id=PROJECT, user_id=USER, name="Villa", type="Residential", status=ProjectStatus.PROCESSING
        ))

        with pytest.raises(CostScanError) as exc_info:
            await service.collect_training_data(USER, PROJECT)
        assert exc_info.value.code == ErrorCode.PIPELINE_INVALID_STATE
        assert memory_store.training_records == {}

    @pytest.mark.asyncio
    async def test_stats(self, service, memory_store):
        await _completed_project(memory_store, "proj-1", "Residential")
        await _completed_project(memory_store, "proj-2", "Industrial")
        await service.submit_annotation(USER, "proj-2", "verification", item_index=0)
        await service.collect_training_data(USER, "proj-1", region="US")
        await service.collect_training_data(USER, "proj-2", region="DE")

        stats = await service.training_stats(USER)

        assert stats.total_projects == 2
        assert stats.total_documents == 4
        assert stats.total_annotations == 1
        assert stats.data_by_region == {"US": 1, "DE": 1}
        assert stats.data_by_type == {"Residential": 1, "Industrial": 1}
        assert 0.5 <= stats.avg_quality_score <= 1.0
        assert (await service.training_stats("user-2")).to_dict()["totalProjects"] == 0

    @pytest.mark.asyncio
    async def test_export_json(self, service, memory_store):
        await _completed_project(memory_store)
        await service.collect_training_data(USER, PROJECT)

        exported = json.loads(await service.export_training_data(USER, "json"))

        assert exported[0]["projectId"] == PROJECT
        assert exported[0]["documents"][0]["documentType"] == "drawing"

    @pytest.mark.asyncio
    async def test_export_csv_quotes_names(self, service, memory_store):
        await memory_store.create_project(Project(id=PROJECT, user_id=USER, name="Villa, Phase 2", type="Residential"))
        await memory_store.complete_project(USER, PROJECT, ITEMS, 1500.0, 90.0, "3s")
        record = await service.collect_training_data(USER, PROJECT)

        lines = (await service.export_training_data(USER, "csv")).splitlines()

        assert lines[0] == ",".join(CSV_HEADERS)
        assert lines[1] == f'{PROJECT},"Villa, Phase 2",Residential,{record.quality_score},US,{record.completed_at.isoformat()}'

    @pytest.mark.asyncio
    async def test_export_unknown_format(self, service):
        with pytest.raises(ValidationError) as exc_info:
            await service.export_training_data(USER, "parquet")
        assert exc_info.value.code == ErrorCode.INVALID_FIELD


class TestFeedbackModels:
    """Tests for document classification and scoring."""

    @pytest.mark.parametrize("file_name,file_type,expected", [
        ("boq.XLSX", "", DocumentType.BOQ),
        ("rates.csv", "text/csv", DocumentType.BOQ),
        ("finishes.docx", "", DocumentType.SPECIFICATION),
        ("notes.txt", "text/plain", DocumentType.SPECIFICATION),
        ("plan.pdf", "", DocumentType.DRAWING),
        ("site", "image/png", DocumentType.DRAWING),
        ("model.ifc", "application/octet-stream", DocumentType.OTHER),
    ])
    def test_classify_document(self, file_name, file_type, expected):
        assert classify_document(file_name, file_type) == expected

    def test_quality_score_weights(self):
        documents = [TrainingDocument(file_id="f", file_name="plan.pdf", document_type=DocumentType.DRAWING, confidence=0.5)]
        costs = [CostRecord.create("Civil", "Brick Work", 100.0, 250.0)]

        # 0.5 base + 0.5 * 0.3 documents; variance 150% leaves no accuracy credit
        assert quality_score(documents, costs, 0, 0) == 0.65
        assert quality_score([], [CostRecord.create("Civil", "Brick Work", 100.0, 150.0)], 2, 1) == 0.85

    def test_variance_without_estimate(self):
        assert CostRecord.create("Civil", "Fencing", 0.0, 200.0).variance_percent == 0.0

    def test_empty_stats(self):
        assert TrainingStats.from_records([]).avg_quality_score == 0.0

    def test_training_record_firestore_shape(self):
        completed = datetime(2024, 3, 5, tzinfo=timezone.utc)
        record = TrainingRecord(
            project_id=PROJECT, project_name="Villa", project_type="Residential", region="US",
            documents=[TrainingDocument(file_id="f", file_name="plan.pdf", document_type=DocumentType.DRAWING, confidence=0.9)],
            quality_score=0.8, completed_at=completed,
        )

        data = record.to_firestore()

        assert data["completedAt"] == completed
        assert data["documents"][0]["documentType"] == "drawing"
        assert TrainingRecord.from_firestore(data) == record
