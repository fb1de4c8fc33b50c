"""Document intake pipeline for CostScan.

Runs a draft project's uploaded files through validation, extraction and
analysis, aggregates the results and persists them.

Project states: draft -> processing -> completed, or back to draft on any
pipeline-level failure. File states: pending -> processing -> completed | error.
A failing file never aborts the run; the project is never left in processing.
"""

import asyncio
import time
from typing import Dict, List, Optional

import structlog

from config.errors import CostScanError, ErrorCode, PipelineError
from config.settings import settings
from models.analysis import AnalysisResult
from models.project import FileStatus, ProcessingResult, ProjectFile, ProjectStatus
from services.aggregator import EstimationAggregator
from services.content_extractor import extract_content
from services.document_analysis import DocumentAnalyzer
from utils.pipeline_logger import (
    log_file_result,
    log_pipeline_complete,
    log_pipeline_failed,
    log_pipeline_start,
)
from validators.file_validator import ensure_valid_upload

logger = structlog.get_logger()


class DocumentIntakePipeline:
    """Processes one project's documents into an estimate.

    Files are processed one after another in a single task; each is bounded
    by per_file_timeout, and a timeout counts as that file's error.
    """

    def __init__(
        self,
        store,
        storage,
        analyzer: DocumentAnalyzer,
        aggregator: Optional[EstimationAggregator] = None,
        per_file_timeout: Optional[float] = None,
    ):
        """Initialize the pipeline.

        Args:
            store: Project metadata store (FirestoreService interface).
            storage: Object storage (StorageService interface).
            analyzer: Document analysis capability.
            aggregator: Estimation aggregator (default: new instance).
            per_file_timeout: Seconds allowed per file (default from settings).
        """
        self.store = store
        self.storage = storage
        self.analyzer = analyzer
        self.aggregator = aggregator or EstimationAggregator()
        self.per_file_timeout = per_file_timeout or settings.file_timeout_seconds

    async def run(self, user_id: str, project_id: str) -> ProcessingResult:
        """Process a draft project.

        The draft check and the move to processing are one store operation,
        so two concurrent runs cannot both start.

        Raises:
            CostScanError: PROJECT_NOT_FOUND if the project does not exist.
            PipelineError: PIPELINE_INVALID_STATE if the project is not a
                draft, NO_FILES if it has no files, or the underlying error
                code when the run fails (the project is back in draft).
        """
        project = await self.store.claim_for_processing(user_id, project_id)
        if project is None:
            raise CostScanError(
                code=ErrorCode.PROJECT_NOT_FOUND,
                message=f"Project not found: {project_id}",
                details={"projectId": project_id}
            )

        if project.status != ProjectStatus.DRAFT:
            raise PipelineError(
                code=ErrorCode.PIPELINE_INVALID_STATE,
                message=f"Project must be in draft to start processing (is {project.status.value})",
                project_id=project_id,
                details={"status": project.status.value}
            )

        try:
            files = await self.store.list_files(user_id, project_id)
        except CostScanError:
            await self._revert_to_draft(user_id, project_id)
            raise
        if not files:
            await self._revert_to_draft(user_id, project_id)
            raise PipelineError(
                code=ErrorCode.NO_FILES,
                message="Project has no files to process",
                project_id=project_id
            )

        start_time = time.time()
        log_pipeline_start(project_id, len(files), self.analyzer.provider)

        try:
            results, file_statuses = await self._process_files(user_id, project_id, files)

            estimate = self.aggregator.aggregate(
                results,
                fallback_used=not self.analyzer.is_configured,
                project_type=project.type,
            )

            elapsed = time.time() - start_time
            processing_time = f"{round(elapsed)}s"

            await self.store.complete_project(
                user_id,
                project_id,
                items=estimate.items,
                total_cost=estimate.total_cost,
                accuracy=estimate.accuracy,
                processing_time=processing_time,
            )

            log_pipeline_complete(
                project_id,
                source=estimate.source.value,
                total_cost=estimate.total_cost,
                accuracy=estimate.accuracy,
                duration_ms=int(elapsed * 1000),
                file_statuses={k: v.value for k, v in file_statuses.items()},
            )

            return ProcessingResult(
                project_id=project_id,
                total_cost=estimate.total_cost,
                items=estimate.items,
                accuracy=estimate.accuracy,
                processing_time=processing_time,
                source=estimate.source,
                file_statuses=file_statuses,
            )

        except Exception as e:
            code = e.code if isinstance(e, CostScanError) else ErrorCode.PIPELINE_FAILED
            message = e.message if isinstance(e, CostScanError) else str(e)
            log_pipeline_failed(project_id, message, code)
            await self._revert_to_draft(user_id, project_id)

            if isinstance(e, PipelineError):
                raise
            raise PipelineError(
                code=code,
                message=f"Processing failed: {message}",
                project_id=project_id,
                details=e.details if isinstance(e, CostScanError) else None
            ) from e

    async def _revert_to_draft(self, user_id: str, project_id: str) -> None:
        try:
            await self.store.set_project_status(user_id, project_id, ProjectStatus.DRAFT)
        except Exception as revert_error:
            logger.error("project_revert_failed", project_id=project_id, error=str(revert_error))

    async def _process_files(
        self,
        user_id: str,
        project_id: str,
        files: List[ProjectFile],
    ):
        """Process every file; per-file failures are recorded, not raised.

        Store failures while recording statuses are raised.
        """
        results: List[AnalysisResult] = []
        file_statuses: Dict[str, FileStatus] = {}

        if not self.analyzer.is_configured:
            for project_file in files:
                await self.store.update_file_status(user_id, project_id, project_file.id, FileStatus.COMPLETED)
                file_statuses[project_file.id] = FileStatus.COMPLETED
            logger.info("pipeline_simulation_mode", project_id=project_id, file_count=len(files))
            return results, file_statuses

        for project_file in files:
            await self.store.update_file_status(user_id, project_id, project_file.id, FileStatus.PROCESSING)
            file_start = time.time()
            result: Optional[AnalysisResult] = None
            error: Optional[str] = None

            try:
                result = await asyncio.wait_for(
                    self._process_file(user_id, project_file),
                    timeout=self.per_file_timeout,
                )
            except asyncio.TimeoutError:
                error = f"{ErrorCode.ANALYSIS_TIMEOUT}: Timed out after {self.per_file_timeout:g}s"
            except CostScanError as e:
                error = f"{e.code}: {e.message}"
            except Exception as e:
                error = str(e) or e.__class__.__name__

            duration_ms = int((time.time() - file_start) * 1000)

            if error is None:
                results.append(result)
                status = FileStatus.COMPLETED
            else:
                status = FileStatus.ERROR

            await self.store.update_file_status(user_id, project_id, project_file.id, status, error=error)
            file_statuses[project_file.id] = status

            log_file_result(
                project_id,
                project_file.file_name,
                status.value,
                duration_ms=duration_ms,
                item_count=len(result.identified_items) if error is None else 0,
                error=error,
            )

        return results, file_statuses

    async def _process_file(self, user_id: str, project_file: ProjectFile) -> AnalysisResult:
        """Validate, download, extract and analyze one file."""
        mime_type = ensure_valid_upload(
            project_file.file_name,
            project_file.file_size,
            project_file.file_type,
        )
        data = await self.storage.download(user_id, project_file.storage_path)
        content = await asyncio.to_thread(extract_content, data, project_file.file_name, mime_type)
        return await self.analyzer.analyze(content, project_file.file_name, mime_type)
