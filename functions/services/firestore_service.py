"""Firestore service for CostScan.

Provides CRUD operations for projects, uploaded file records, estimation
line items, user annotations and training records, plus the stored
exchange-rate table.

Data layout:
  /users/{userId}/projects/{projectId}
  /users/{userId}/projects/{projectId}/files/{fileId}
  /users/{userId}/projects/{projectId}/estimationItems/{itemId}
  /users/{userId}/projects/{projectId}/annotations/{annotationId}
  /users/{userId}/trainingData/{projectId}
  /config/exchangeRates

Every user path is rooted at the owner's uid, so a caller can only ever reach
the documents of the user it was given. The exchange-rate document is shared.
"""

from typing import Dict, Any, Mapping, Optional, List
import inspect
import structlog

from firebase_admin import firestore

from config.errors import CostScanError, ErrorCode, PersistenceError
from models.feedback import TrainingRecord, UserAnnotation
from models.project import FileStatus, LineItem, Project, ProjectFile, ProjectStatus

logger = structlog.get_logger()

# Firestore write-batch operation limit
MAX_BATCH_OPERATIONS = 500


class FirestoreService:
    """Service for Firestore operations.

    Note: Firebase Admin SDK for Python is synchronous. Methods are
    marked async for interface compatibility but operations are sync.
    """

    COLLECTION_USERS = "users"
    SUBCOLLECTION_PROJECTS = "projects"
    SUBCOLLECTION_FILES = "files"
    SUBCOLLECTION_ITEMS = "estimationItems"
    SUBCOLLECTION_ANNOTATIONS = "annotations"
    SUBCOLLECTION_TRAINING_DATA = "trainingData"
    COLLECTION_CONFIG = "config"
    DOCUMENT_EXCHANGE_RATES = "exchangeRates"

    def __init__(self, db=None):
        """Initialize FirestoreService.

        Args:
            db: Optional Firestore client. If not provided, uses default.
        """
        self._db = db

    @property
    def db(self):
        """Get Firestore client (lazy initialization)."""
        if self._db is None:
            self._db = firestore.client()
        return self._db

    async def _maybe_await(self, result: Any) -> Any:
        """Await result if it is awaitable (supports AsyncMock in unit tests)."""
        if inspect.isawaitable(result):
            return await result
        return result

    # =========================================================================
    # REFERENCES
    # =========================================================================

    def _projects(self, user_id: str):
        return (
            self.db
            .collection(self.COLLECTION_USERS)
            .document(user_id)
            .collection(self.SUBCOLLECTION_PROJECTS)
        )

    def _project_ref(self, user_id: str, project_id: str):
        return self._projects(user_id).document(project_id)

    def _files(self, user_id: str, project_id: str):
        return self._project_ref(user_id, project_id).collection(self.SUBCOLLECTION_FILES)

    def _items(self, user_id: str, project_id: str):
        return self._project_ref(user_id, project_id).collection(self.SUBCOLLECTION_ITEMS)

    def _annotations(self, user_id: str, project_id: str):
        return self._project_ref(user_id, project_id).collection(self.SUBCOLLECTION_ANNOTATIONS)

    def _training_ref(self, user_id: str, project_id: str):
        return (
            self.db
            .collection(self.COLLECTION_USERS)
            .document(user_id)
            .collection(self.SUBCOLLECTION_TRAINING_DATA)
            .document(project_id)
        )

    def new_project_id(self, user_id: str) -> str:
        return self._projects(user_id).document().id

    def new_file_id(self, user_id: str, project_id: str) -> str:
        return self._files(user_id, project_id).document().id

    def new_annotation_id(self, user_id: str, project_id: str) -> str:
        return self._annotations(user_id, project_id).document().id

    # =========================================================================
    # PROJECTS
    # =========================================================================

    async def create_project(self, project: Project) -> Project:
        """Create a project document.

        Raises:
            PersistenceError: If Firestore operation fails.
        """
        try:
            doc_ref = self._project_ref(project.user_id, project.id)
            await self._maybe_await(doc_ref.set(project.to_firestore()))
            logger.info("project_created", project_id=project.id, user_id=project.user_id)
            return project
        except Exception as e:
            logger.error("project_create_failed", project_id=project.id, error=str(e))
            raise PersistenceError(
                message=f"Failed to create project: {str(e)}",
                details={"project_id": project.id}
            )

    async def get_project(self, user_id: str, project_id: str) -> Optional[Project]:
        """Fetch a project by ID.

        Returns:
            Project or None if not found.

        Raises:
            CostScanError: If Firestore operation fails.
        """
        try:
            doc = await self._maybe_await(self._project_ref(user_id, project_id).get())
            if doc.exists:
                return Project.from_firestore(doc.id, doc.to_dict() or {})
            return None
        except Exception as e:
            logger.error("firestore_get_failed", project_id=project_id, error=str(e))
            raise CostScanError(
                code=ErrorCode.FIRESTORE_ERROR,
                message=f"Failed to get project: {str(e)}",
                details={"project_id": project_id}
            )

    async def list_projects(self, user_id: str) -> List[Project]:
        """List a user's projects, newest first."""
        try:
            query = self._projects(user_id).order_by("createdAt", direction=firestore.Query.DESCENDING)
            return [Project.from_firestore(doc.id, doc.to_dict() or {}) for doc in query.stream()]
        except Exception as e:
            logger.error("project_list_failed", user_id=user_id, error=str(e))
            raise CostScanError(
                code=ErrorCode.FIRESTORE_ERROR,
                message=f"Failed to list projects: {str(e)}",
                details={"user_id": user_id}
            )

    async def update_project(self, user_id: str, project_id: str, data: Dict[str, Any]) -> None:
        """Update project fields.

        Raises:
            PersistenceError: If Firestore operation fails.
        """
        try:
            data = {**data, "updatedAt": firestore.SERVER_TIMESTAMP}
            await self._maybe_await(self._project_ref(user_id, project_id).update(data))
            logger.info("project_updated", project_id=project_id, fields=list(data.keys()))
        except Exception as e:
            logger.error("firestore_update_failed", project_id=project_id, error=str(e))
            raise PersistenceError(
                message=f"Failed to update project: {str(e)}",
                details={"project_id": project_id}
            )

    async def set_project_status(self, user_id: str, project_id: str, status: ProjectStatus) -> None:
        await self.update_project(user_id, project_id, {"status": ProjectStatus(status).value})

    async def claim_for_processing(self, user_id: str, project_id: str) -> Optional[Project]:
        """Move a draft project to processing inside one transaction.

        Returns:
            The project as read before the claim (its status tells whether
            the claim happened), or None if it does not exist.

        Raises:
            CostScanError: If the transaction fails.
        """
        project_ref = self._project_ref(user_id, project_id)

        @firestore.transactional
        def claim(transaction):
            snapshot = project_ref.get(transaction=transaction)
            if not snapshot.exists:
                return None
            project = Project.from_firestore(snapshot.id, snapshot.to_dict() or {})
            if project.status == ProjectStatus.DRAFT:
                transaction.update(project_ref, {
                    "status": ProjectStatus.PROCESSING.value,
                    "updatedAt": firestore.SERVER_TIMESTAMP,
                })
            return project

        try:
            project = claim(self.db.transaction())
        except Exception as e:
            logger.error("project_claim_failed", project_id=project_id, error=str(e))
            raise CostScanError(
                code=ErrorCode.FIRESTORE_ERROR,
                message=f"Failed to start processing: {str(e)}",
                details={"project_id": project_id}
            )

        if project is not None and project.status == ProjectStatus.DRAFT:
            logger.info("project_claimed", project_id=project_id, user_id=user_id)
        return project

    async def complete_project(
        self,
        user_id: str,
        project_id: str,
        items: List[LineItem],
        total_cost: float,
        accuracy: float,
        processing_time: str,
    ) -> None:
        """Replace the project's line items and mark it completed.

        Writes go out in batches of at most MAX_BATCH_OPERATIONS. The project
        update is always in the last batch, so the project only leaves
        processing once every item is written.

        Raises:
            PersistenceError: If a commit fails.
        """
        try:
            items_ref = self._items(user_id, project_id)
            existing = list(items_ref.stream())

            batch = self.db.batch()
            pending = 0
            commits = 0

            async def add(operation: str, *args) -> None:
                nonlocal batch, pending, commits
                if pending == MAX_BATCH_OPERATIONS:
                    await self._maybe_await(batch.commit())
                    commits += 1
                    batch = self.db.batch()
                    pending = 0
                getattr(batch, operation)(*args)
                pending += 1

            for doc in existing:
                await add("delete", doc.reference)
            for index, item in enumerate(items):
                data = item.to_firestore()
                data["position"] = index
                data["createdAt"] = firestore.SERVER_TIMESTAMP
                await add("set", items_ref.document(), data)
            await add("update", self._project_ref(user_id, project_id), {
                "status": ProjectStatus.COMPLETED.value,
                "totalCost": total_cost,
                "accuracy": accuracy,
                "processingTime": processing_time,
                "updatedAt": firestore.SERVER_TIMESTAMP,
            })
            await self._maybe_await(batch.commit())

            logger.info(
                "project_results_saved",
                project_id=project_id,
                item_count=len(items),
                replaced=len(existing),
                batches=commits + 1,
                total_cost=total_cost,
            )
        except Exception as e:
            logger.error("project_results_save_failed", project_id=project_id, error=str(e))
            raise PersistenceError(
                message=f"Failed to save estimation results: {str(e)}",
                details={"project_id": project_id}
            )

    async def delete_project(self, user_id: str, project_id: str) -> None:
        """Delete a project and its subcollections.

        Raises:
            CostScanError: If Firestore operation fails.
        """
        try:
            project_ref = self._project_ref(user_id, project_id)

            for subcollection_name in (
                self.SUBCOLLECTION_ITEMS,
                self.SUBCOLLECTION_FILES,
                self.SUBCOLLECTION_ANNOTATIONS,
            ):
                for doc in project_ref.collection(subcollection_name).stream():
                    await self._maybe_await(doc.reference.delete())

            await self._maybe_await(self._training_ref(user_id, project_id).delete())
            await self._maybe_await(project_ref.delete())
            logger.info("project_deleted", project_id=project_id, user_id=user_id)
        except Exception as e:
            logger.error("project_delete_failed", project_id=project_id, error=str(e))
            raise CostScanError(
                code=ErrorCode.FIRESTORE_ERROR,
                message=f"Failed to delete project: {str(e)}",
                details={"project_id": project_id}
            )

    # =========================================================================
    # FILES
    # =========================================================================

    async def add_file(self, user_id: str, file: ProjectFile) -> ProjectFile:
        """Insert a file record.

        Raises:
            PersistenceError: If Firestore operation fails.
        """
        try:
            doc_ref = self._files(user_id, file.project_id).document(file.id)
            await self._maybe_await(doc_ref.set(file.to_firestore()))
            logger.info("file_record_created", project_id=file.project_id, file_id=file.id)
            return file
        except Exception as e:
            logger.error("file_record_create_failed", project_id=file.project_id, error=str(e))
            raise PersistenceError(
                message=f"Failed to save file record: {str(e)}",
                details={"project_id": file.project_id, "file_name": file.file_name}
            )

    async def list_files(self, user_id: str, project_id: str) -> List[ProjectFile]:
        """List a project's file records in upload order."""
        try:
            query = self._files(user_id, project_id).order_by("createdAt")
            return [ProjectFile.from_firestore(doc.id, doc.to_dict() or {}) for doc in query.stream()]
        except Exception as e:
            logger.error("file_list_failed", project_id=project_id, error=str(e))
            raise CostScanError(
                code=ErrorCode.FIRESTORE_ERROR,
                message=f"Failed to list files: {str(e)}",
                details={"project_id": project_id}
            )

    async def get_file(self, user_id: str, project_id: str, file_id: str) -> Optional[ProjectFile]:
        try:
            doc = await self._maybe_await(self._files(user_id, project_id).document(file_id).get())
            if doc.exists:
                return ProjectFile.from_firestore(doc.id, doc.to_dict() or {})
            return None
        except Exception as e:
            logger.error("file_get_failed", project_id=project_id, file_id=file_id, error=str(e))
            raise CostScanError(
                code=ErrorCode.FIRESTORE_ERROR,
                message=f"Failed to get file: {str(e)}",
                details={"project_id": project_id, "file_id": file_id}
            )

    async def update_file_status(
        self,
        user_id: str,
        project_id: str,
        file_id: str,
        status: FileStatus,
        error: Optional[str] = None,
    ) -> None:
        """Update a file's processing status.

        Raises:
            PersistenceError: If Firestore operation fails.
        """
        try:
            data = {"processingStatus": FileStatus(status).value, "error": error}
            await self._maybe_await(self._files(user_id, project_id).document(file_id).update(data))
            logger.info("file_status_updated", project_id=project_id, file_id=file_id, status=data["processingStatus"])
        except Exception as e:
            logger.error("file_status_update_failed", project_id=project_id, file_id=file_id, error=str(e))
            raise PersistenceError(
                message=f"Failed to update file status: {str(e)}",
                details={"project_id": project_id, "file_id": file_id}
            )

    async def delete_file(self, user_id: str, project_id: str, file_id: str) -> None:
        try:
            await self._maybe_await(self._files(user_id, project_id).document(file_id).delete())
            logger.info("file_record_deleted", project_id=project_id, file_id=file_id)
        except Exception as e:
            logger.error("file_record_delete_failed", project_id=project_id, file_id=file_id, error=str(e))
            raise CostScanError(
                code=ErrorCode.FIRESTORE_ERROR,
                message=f"Failed to delete file record: {str(e)}",
                details={"project_id": project_id, "file_id": file_id}
            )

    # =========================================================================
    # LINE ITEMS
    # =========================================================================

    async def list_line_items(self, user_id: str, project_id: str) -> List[LineItem]:
        """List a project's line items in their written order."""
        try:
            query = self._items(user_id, project_id).order_by("position")
            return [LineItem.from_firestore(doc.to_dict() or {}) for doc in query.stream()]
        except Exception as e:
            logger.error("line_items_list_failed", project_id=project_id, error=str(e))
            raise CostScanError(
                code=ErrorCode.FIRESTORE_ERROR,
                message=f"Failed to list line items: {str(e)}",
                details={"project_id": project_id}
            )

    # =========================================================================
    # ANNOTATIONS & TRAINING DATA
    # =========================================================================

    async def add_annotation(self, user_id: str, annotation: UserAnnotation) -> UserAnnotation:
        """Insert a user annotation.

        Raises:
            PersistenceError: If Firestore operation fails.
        """
        try:
            doc_ref = self._annotations(user_id, annotation.project_id).document(annotation.id)
            await self._maybe_await(doc_ref.set(annotation.to_firestore()))
            logger.info(
                "annotation_created",
                project_id=annotation.project_id,
                annotation_id=annotation.id,
                annotation_type=annotation.annotation_type.value,
            )
            return annotation
        except Exception as e:
            logger.error("annotation_create_failed", project_id=annotation.project_id, error=str(e))
            raise PersistenceError(
                message=f"Failed to save annotation: {str(e)}",
                details={"project_id": annotation.project_id}
            )

    async def list_annotations(self, user_id: str, project_id: str) -> List[UserAnnotation]:
        """List a project's annotations, oldest first."""
        try:
            query = self._annotations(user_id, project_id).order_by("createdAt")
            return [UserAnnotation.from_firestore(doc.id, doc.to_dict() or {}) for doc in query.stream()]
        except Exception as e:
            logger.error("annotation_list_failed", project_id=project_id, error=str(e))
            raise CostScanError(
                code=ErrorCode.FIRESTORE_ERROR,
                message=f"Failed to list annotations: {str(e)}",
                details={"project_id": project_id}
            )

    async def save_training_record(self, user_id: str, record: TrainingRecord) -> TrainingRecord:
        """Write (or replace) the training record of one project.

        Raises:
            PersistenceError: If Firestore operation fails.
        """
        try:
            doc_ref = self._training_ref(user_id, record.project_id)
            await self._maybe_await(doc_ref.set(record.to_firestore()))
            logger.info("training_record_saved", project_id=record.project_id, quality_score=record.quality_score)
            return record
        except Exception as e:
            logger.error("training_record_save_failed", project_id=record.project_id, error=str(e))
            raise PersistenceError(
                message=f"Failed to save training data: {str(e)}",
                details={"project_id": record.project_id}
            )

    async def list_training_records(self, user_id: str) -> List[TrainingRecord]:
        try:
            collection = (
                self.db
                .collection(self.COLLECTION_USERS)
                .document(user_id)
                .collection(self.SUBCOLLECTION_TRAINING_DATA)
            )
            return [TrainingRecord.from_firestore(doc.to_dict() or {}) for doc in collection.stream()]
        except Exception as e:
            logger.error("training_record_list_failed", user_id=user_id, error=str(e))
            raise CostScanError(
                code=ErrorCode.FIRESTORE_ERROR,
                message=f"Failed to list training data: {str(e)}",
                details={"user_id": user_id}
            )

    # =========================================================================
    # EXCHANGE RATES
    # =========================================================================

    def _exchange_rates_ref(self):
        return self.db.collection(self.COLLECTION_CONFIG).document(self.DOCUMENT_EXCHANGE_RATES)

    async def get_exchange_rates(self) -> Optional[Dict[str, float]]:
        """Last refreshed exchange-rate table, or None if none was stored."""
        try:
            doc = await self._maybe_await(self._exchange_rates_ref().get())
            if not doc.exists:
                return None
            rates = (doc.to_dict() or {}).get("rates")
            return dict(rates) if isinstance(rates, dict) else None
        except Exception as e:
            logger.error("exchange_rates_get_failed", error=str(e))
            raise CostScanError(
                code=ErrorCode.FIRESTORE_ERROR,
                message=f"Failed to get exchange rates: {str(e)}"
            )

    async def save_exchange_rates(self, rates: Mapping[str, float]) -> None:
        """Store the exchange-rate table.

        Raises:
            PersistenceError: If Firestore operation fails.
        """
        try:
            await self._maybe_await(self._exchange_rates_ref().set({
                "rates": dict(rates),
                "updatedAt": firestore.SERVER_TIMESTAMP,
            }))
            logger.info("exchange_rates_saved", currencies=len(rates))
        except Exception as e:
            logger.error("exchange_rates_save_failed", error=str(e))
            raise PersistenceError(message=f"Failed to save exchange rates: {str(e)}")
