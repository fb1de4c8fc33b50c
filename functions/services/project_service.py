"""Project service for CostScan.

The exposed surface: create/list/fetch/delete projects, upload files, start
processing, reset, localize. Every operation is scoped to the authenticated
user's id, and every result/error shape is the same whichever provider (if
any) produced the estimate.
"""

from dataclasses import dataclass
from typing import List, Optional

import structlog

from config.ai_config import get_ai_config
from config.errors import CostScanError, ErrorCode, StorageError, ValidationError
from config.settings import settings
from models.project import (
    FileStatus,
    ProcessingResult,
    Project,
    ProjectDetail,
    ProjectFile,
    ProjectStatus,
)
from services.aggregator import EstimationAggregator
from services.document_analysis import DocumentAnalyzer, create_document_analyzer
from services.intake_pipeline import DocumentIntakePipeline
from services.localization_service import LocalizationRegistry, get_registry
from services.presentation_service import LocalizedEstimate, localize_estimate
from validators.file_validator import ensure_valid_upload

logger = structlog.get_logger()


@dataclass
class UploadedFile:
    """An incoming upload."""

    file_name: str
    data: bytes
    content_type: Optional[str] = None


class ProjectService:
    """Project operations for one backend (store, storage, analyzer)."""

    def __init__(
        self,
        store,
        storage,
        analyzer: Optional[DocumentAnalyzer] = None,
        aggregator: Optional[EstimationAggregator] = None,
        registry: Optional[LocalizationRegistry] = None,
    ):
        """Initialize ProjectService.

        Args:
            store: Project metadata store (FirestoreService interface).
            storage: Object storage (StorageService interface).
            analyzer: Document analyzer (default: from the resolved AI config).
            aggregator: Estimation aggregator (default: new instance).
            registry: Localization registry (default: process-wide registry).
        """
        self.store = store
        self.storage = storage
        self.analyzer = analyzer or create_document_analyzer(get_ai_config())
        self.aggregator = aggregator or EstimationAggregator()
        self._registry = registry

    @property
    def registry(self) -> LocalizationRegistry:
        return self._registry or get_registry()

    async def _require_project(self, user_id: str, project_id: str) -> Project:
        project = await self.store.get_project(user_id, project_id)
        if project is None:
            raise CostScanError(
                code=ErrorCode.PROJECT_NOT_FOUND,
                message=f"Project not found: {project_id}",
                details={"projectId": project_id}
            )
        return project

    # =========================================================================
    # PROJECTS
    # =========================================================================

    async def create_project(self, user_id: str, name: str, project_type: str) -> Project:
        """Create a draft project.

        Raises:
            ValidationError: MISSING_FIELD if name or type is blank.
        """
        if not name or not name.strip():
            raise ValidationError(message="Project name is required", field="name", code=ErrorCode.MISSING_FIELD)
        if not project_type or not project_type.strip():
            raise ValidationError(message="Project type is required", field="type", code=ErrorCode.MISSING_FIELD)

        project = Project(
            id=self.store.new_project_id(user_id),
            user_id=user_id,
            name=name,
            type=project_type,
            status=ProjectStatus.DRAFT,
        )
        return await self.store.create_project(project)

    async def get_project(self, user_id: str, project_id: str) -> ProjectDetail:
        """Project with its line items and files."""
        project = await self._require_project(user_id, project_id)
        items = await self.store.list_line_items(user_id, project_id)
        files = await self.store.list_files(user_id, project_id)
        return ProjectDetail(project=project, items=items, files=files)

    async def list_projects(self, user_id: str) -> List[Project]:
        """User's projects, newest first."""
        projects = await self.store.list_projects(user_id)
        return sorted(projects, key=lambda p: p.created_at, reverse=True)

    async def delete_project(self, user_id: str, project_id: str) -> None:
        """Delete a project's stored objects, then its records.

        Raises:
            CostScanError: PIPELINE_INVALID_STATE while the project is processing.
        """
        project = await self._require_project(user_id, project_id)
        if project.status == ProjectStatus.PROCESSING:
            raise CostScanError(
                code=ErrorCode.PIPELINE_INVALID_STATE,
                message="Cannot delete a project while it is processing",
                details={"projectId": project_id}
            )

        files = await self.store.list_files(user_id, project_id)
        for project_file in files:
            await self.storage.delete(user_id, project_file.storage_path)

        await self.store.delete_project(user_id, project_id)
        logger.info("project_removed", project_id=project_id, file_count=len(files))

    async def reset_project(self, user_id: str, project_id: str) -> Project:
        """Return a completed or review project to draft so it can be re-run.

        Raises:
            CostScanError: PIPELINE_INVALID_STATE from any other status.
        """
        project = await self._require_project(user_id, project_id)
        if project.status == ProjectStatus.DRAFT:
            return project
        if project.status not in (ProjectStatus.COMPLETED, ProjectStatus.REVIEW):
            raise CostScanError(
                code=ErrorCode.PIPELINE_INVALID_STATE,
                message=f"Cannot reset a project in {project.status.value}",
                details={"projectId": project_id, "status": project.status.value}
            )

        await self.store.set_project_status(user_id, project_id, ProjectStatus.DRAFT)
        logger.info("project_reset", project_id=project_id, previous_status=project.status.value)
        return project.model_copy(update={"status": ProjectStatus.DRAFT})

    # =========================================================================
    # FILES
    # =========================================================================

    async def upload_files(self, user_id: str, project_id: str, files: List[UploadedFile]) -> List[ProjectFile]:
        """Store files and record their metadata.

        Every file is validated before any storage call. If the metadata
        insert fails, the stored object is removed.

        Raises:
            ValidationError: If any file fails validation (nothing is stored).
        """
        if not files:
            raise ValidationError(message="No files provided", field="files", code=ErrorCode.MISSING_FIELD)

        project = await self._require_project(user_id, project_id)
        if project.status == ProjectStatus.PROCESSING:
            raise CostScanError(
                code=ErrorCode.PIPELINE_INVALID_STATE,
                message="Cannot upload files while the project is processing",
                details={"projectId": project_id}
            )

        mime_types = [ensure_valid_upload(f.file_name, len(f.data), f.content_type) for f in files]

        records: List[ProjectFile] = []
        for upload, mime_type in zip(files, mime_types):
            path = await self.storage.upload(user_id, project_id, upload.file_name, upload.data, mime_type)
            record = ProjectFile(
                id=self.store.new_file_id(user_id, project_id),
                project_id=project_id,
                file_name=upload.file_name,
                file_size=len(upload.data),
                file_type=mime_type,
                storage_path=path,
                processing_status=FileStatus.PENDING,
            )
            try:
                records.append(await self.store.add_file(user_id, record))
            except CostScanError:
                try:
                    await self.storage.delete(user_id, path)
                except StorageError as cleanup_error:
                    logger.error("orphaned_upload", path=path, error=cleanup_error.message)
                raise

        logger.info("files_uploaded", project_id=project_id, count=len(records))
        return records

    async def delete_file(self, user_id: str, project_id: str, file_id: str) -> None:
        """Delete one file. A storage failure is logged; the record is still removed."""
        await self._require_project(user_id, project_id)
        record = await self.store.get_file(user_id, project_id, file_id)
        if record is None:
            raise CostScanError(
                code=ErrorCode.FILE_NOT_FOUND,
                message=f"File not found: {file_id}",
                details={"projectId": project_id, "fileId": file_id}
            )

        try:
            await self.storage.delete(user_id, record.storage_path)
        except StorageError as e:
            logger.warning("file_storage_delete_failed", file_id=file_id, path=record.storage_path, error=e.message)

        await self.store.delete_file(user_id, project_id, file_id)

    # =========================================================================
    # PROCESSING & PRESENTATION
    # =========================================================================

    async def start_processing(self, user_id: str, project_id: str) -> ProcessingResult:
        """Run the intake pipeline for a draft project."""
        pipeline = DocumentIntakePipeline(
            store=self.store,
            storage=self.storage,
            analyzer=self.analyzer,
            aggregator=self.aggregator,
            per_file_timeout=settings.file_timeout_seconds,
        )
        return await pipeline.run(user_id, project_id)

    async def localize_project(
        self,
        user_id: str,
        project_id: str,
        country_code: Optional[str] = None,
        locale: Optional[str] = None,
        timezone: Optional[str] = None,
    ) -> LocalizedEstimate:
        """Project estimate in the viewer's country format.

        With no country, locale or timezone given, settings.default_country is used.
        """
        if not (country_code or locale or timezone):
            country_code = settings.default_country

        registry = self.registry
        country = registry.resolve_country(locale, timezone, country_code)

        detail = await self.get_project(user_id, project_id)
        return localize_estimate(detail.project, detail.items, country, registry)
