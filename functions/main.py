"""Cloud Function entry points for CostScan.

Provides HTTP endpoints for:
- Project CRUD (create, get, list, delete, reset)
- File upload and deletion
- Starting document processing
- Localized estimate presentation and the country list
- The project assistant (chat)
- Estimate feedback and training-data collection

And a scheduled daily exchange-rate refresh.
"""

import asyncio
import base64
import binascii
import json
from typing import Any, Awaitable, Callable, Dict, List
from datetime import datetime, date

import structlog
from firebase_functions import https_fn, options, scheduler_fn
from firebase_admin import auth, initialize_app

from config.ai_config import get_ai_config
from config.errors import CostScanError, ErrorCode, ValidationError
from config.secrets import is_emulator_mode
from config.settings import settings

# Initialize Firebase Admin SDK
try:
    initialize_app(options={"storageBucket": settings.storage_bucket} if settings.storage_bucket else None)
except ValueError:
    # Already initialized
    pass

logger = structlog.get_logger()

# ============================================================================
# Helper Functions
# ============================================================================

BAD_REQUEST_CODES = {
    ErrorCode.VALIDATION_ERROR,
    ErrorCode.MISSING_FIELD,
    ErrorCode.INVALID_FIELD,
    ErrorCode.EMPTY_FILE,
    ErrorCode.FILE_TOO_LARGE,
    ErrorCode.UNSUPPORTED_FILE_TYPE,
    ErrorCode.NO_FILES,
}
NOT_FOUND_CODES = {ErrorCode.PROJECT_NOT_FOUND, ErrorCode.FILE_NOT_FOUND}


def success_response(data: Any) -> Dict[str, Any]:
    """Build success response."""
    return {"success": True, "data": data}


def error_response(code: str, message: str, details: Dict[str, Any] = None) -> Dict[str, Any]:
    """Build error response."""
    return {
        "success": False,
        "error": {
            "code": code,
            "message": message,
            "details": details or {}
        }
    }


def status_for_error(error: CostScanError) -> int:
    """HTTP status for a CostScanError."""
    if isinstance(error, ValidationError) or error.code in BAD_REQUEST_CODES:
        return 400
    if error.code == ErrorCode.UNAUTHENTICATED:
        return 401
    if error.code in NOT_FOUND_CODES:
        return 404
    if error.code == ErrorCode.PIPELINE_INVALID_STATE:
        return 409
    return 500


def get_request_json(req: https_fn.Request) -> Dict[str, Any]:
    """Extract JSON from request body.

    Raises:
        ValidationError: If JSON is invalid.
    """
    try:
        data = req.get_json(force=True, silent=False) or {}
    except Exception as e:
        raise ValidationError(
            message=f"Invalid JSON in request body: {str(e)}"
        )
    if not isinstance(data, dict):
        raise ValidationError(message="Request body must be a JSON object")
    return data


def get_user_id(req: https_fn.Request, data: Dict[str, Any]) -> str:
    """Resolve the authenticated user.

    A Firebase ID token in the Authorization header is verified. In emulator
    mode a userId in the body is accepted instead.

    Raises:
        CostScanError: UNAUTHENTICATED if no valid identity is present.
    """
    header = req.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        token = header[len("Bearer "):].strip()
        try:
            decoded = auth.verify_id_token(token)
        except Exception as e:
            logger.warning("id_token_rejected", error=str(e))
            raise CostScanError(
                code=ErrorCode.UNAUTHENTICATED,
                message="Invalid or expired ID token"
            )
        return decoded["uid"]

    if settings.is_emulator_mode or is_emulator_mode():
        user_id = data.get("userId")
        if user_id:
            return user_id

    raise CostScanError(
        code=ErrorCode.UNAUTHENTICATED,
        message="Missing Authorization bearer token"
    )


def require_field(data: Dict[str, Any], name: str) -> str:
    """Non-blank string field from the request body."""
    value = data.get(name)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(
            message=f"Missing {name} in request",
            field=name,
            code=ErrorCode.MISSING_FIELD
        )
    return value.strip()


def _project_service():
    from services.firestore_service import FirestoreService
    from services.project_service import ProjectService
    from services.storage_service import StorageService

    return ProjectService(store=FirestoreService(), storage=StorageService())


def _feedback_service():
    from services.feedback_service import FeedbackService
    from services.firestore_service import FirestoreService

    return FeedbackService(store=FirestoreService())


def _exchange_rate_service():
    from services.exchange_rate_service import ExchangeRateService
    from services.firestore_service import FirestoreService

    return ExchangeRateService(store=FirestoreService())


async def _sync_exchange_rates() -> None:
    """Pick up rates stored by the last refresh; a failure keeps the current table."""
    try:
        await _exchange_rate_service().apply_stored_rates()
    except CostScanError as e:
        logger.warning("exchange_rate_sync_failed", code=e.code, error=e.message)


def _handle(
    req: https_fn.Request,
    event: str,
    handler: Callable[[str, Dict[str, Any]], Awaitable[Any]],
    parse_json: bool = True,
) -> https_fn.Response:
    """Run an authenticated endpoint handler and map errors to responses."""
    if req.method == "OPTIONS":
        return _cors_response()

    try:
        data = get_request_json(req) if parse_json else dict(req.form or {})
        user_id = get_user_id(req, data)
        result = asyncio.run(handler(user_id, data))
        return _json_response(success_response(result))

    except CostScanError as e:
        status = status_for_error(e)
        log = logger.error if status >= 500 else logger.info
        log(f"{event}_error", code=e.code, error=e.message)
        return _json_response(
            error_response(e.code, e.message, e.details),
            status=status
        )
    except Exception as e:
        logger.exception(f"{event}_exception", error=str(e))
        return _json_response(
            error_response(
                ErrorCode.PIPELINE_FAILED if event == "start_processing" else ErrorCode.FIRESTORE_ERROR,
                f"Request failed: {str(e)}"
            ),
            status=500
        )


# ============================================================================
# Project Endpoints
# ============================================================================

CRUD_ENDPOINT_CONFIG = {
    "timeout_sec": 60,
    "memory": options.MemoryOption.MB_256,
    "region": "us-central1"
}


async def _create_project_async(user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    project = await _project_service().create_project(
        user_id,
        name=data.get("name") or "",
        project_type=data.get("type") or data.get("projectType") or "",
    )
    return project.to_dict()


@https_fn.on_request(**CRUD_ENDPOINT_CONFIG)
def create_project(req: https_fn.Request) -> https_fn.Response:
    """Create a draft project.

    Request body:
    {
        "name": "Riverside Villa",
        "type": "Residential"
    }

    Response:
    {
        "success": true,
        "data": {"id": "...", "status": "draft", ...}
    }
    """
    return _handle(req, "create_project", _create_project_async)


async def _get_project_async(user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    detail = await _project_service().get_project(user_id, require_field(data, "projectId"))
    return detail.to_dict()


@https_fn.on_request(**CRUD_ENDPOINT_CONFIG)
def get_project(req: https_fn.Request) -> https_fn.Response:
    """Get a project with its line items and files.

    Request body: {"projectId": "..."}
    """
    return _handle(req, "get_project", _get_project_async)


async def _list_projects_async(user_id: str, data: Dict[str, Any]) -> List[Dict[str, Any]]:
    projects = await _project_service().list_projects(user_id)
    return [p.to_dict() for p in projects]


@https_fn.on_request(**CRUD_ENDPOINT_CONFIG)
def list_projects(req: https_fn.Request) -> https_fn.Response:
    """List the caller's projects, newest first."""
    return _handle(req, "list_projects", _list_projects_async)


async def _delete_project_async(user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    await _project_service().delete_project(user_id, require_field(data, "projectId"))
    return {"deleted": True}


@https_fn.on_request(**CRUD_ENDPOINT_CONFIG)
def delete_project(req: https_fn.Request) -> https_fn.Response:
    """Delete a project, its files and its line items.

    Request body: {"projectId": "..."}
    """
    return _handle(req, "delete_project", _delete_project_async)


async def _reset_project_async(user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    project = await _project_service().reset_project(user_id, require_field(data, "projectId"))
    return project.to_dict()


@https_fn.on_request(**CRUD_ENDPOINT_CONFIG)
def reset_project(req: https_fn.Request) -> https_fn.Response:
    """Return a completed project to draft so it can be processed again.

    Request body: {"projectId": "..."}
    """
    return _handle(req, "reset_project", _reset_project_async)


# ============================================================================
# File Endpoints
# ============================================================================


def _uploads_from_request(req: https_fn.Request, data: Dict[str, Any]):
    """Uploads from multipart form files or base64 JSON entries."""
    from services.project_service import UploadedFile

    uploads = []
    for storage_file in req.files.getlist("files") if req.files else []:
        uploads.append(UploadedFile(
            file_name=storage_file.filename or "",
            data=storage_file.read(),
            content_type=storage_file.mimetype,
        ))

    for entry in data.get("files") or []:
        if not isinstance(entry, dict):
            continue
        try:
            content = base64.b64decode(entry.get("data") or "", validate=True)
        except (binascii.Error, ValueError):
            raise ValidationError(
                message=f"File data is not valid base64: {entry.get('fileName')}",
                field="files",
                code=ErrorCode.INVALID_FIELD
            )
        uploads.append(UploadedFile(
            file_name=entry.get("fileName") or "",
            data=content,
            content_type=entry.get("contentType"),
        ))
    return uploads


@https_fn.on_request(
    timeout_sec=120,
    memory=options.MemoryOption.GB_1,
    region="us-central1"
)
def upload_project_files(req: https_fn.Request) -> https_fn.Response:
    """Upload files to a project.

    Accepts multipart/form-data (field "files", form field "projectId") or JSON:
    {
        "projectId": "...",
        "files": [{"fileName": "plan.pdf", "contentType": "application/pdf", "data": "<base64>"}]
    }
    """
    is_multipart = (req.content_type or "").startswith("multipart/form-data")

    async def _upload_async(user_id: str, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        uploads = _uploads_from_request(req, data)
        records = await _project_service().upload_files(user_id, require_field(data, "projectId"), uploads)
        return [r.to_dict() for r in records]

    return _handle(req, "upload_project_files", _upload_async, parse_json=not is_multipart)


async def _delete_file_async(user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    await _project_service().delete_file(
        user_id,
        require_field(data, "projectId"),
        require_field(data, "fileId"),
    )
    return {"deleted": True}


@https_fn.on_request(**CRUD_ENDPOINT_CONFIG)
def delete_project_file(req: https_fn.Request) -> https_fn.Response:
    """Delete one uploaded file.

    Request body: {"projectId": "...", "fileId": "..."}
    """
    return _handle(req, "delete_project_file", _delete_file_async)


# ============================================================================
# Processing Endpoint
# ============================================================================


async def _start_processing_async(user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    result = await _project_service().start_processing(user_id, require_field(data, "projectId"))
    return result.to_dict()


@https_fn.on_request(
    timeout_sec=540,
    memory=options.MemoryOption.GB_1,
    region="us-central1"
)
def start_processing(req: https_fn.Request) -> https_fn.Response:
    """Process a draft project's files into an estimate.

    Runs to completion (each file bounded by FILE_TIMEOUT_SECONDS).

    Request body: {"projectId": "..."}

    Response:
    {
        "success": true,
        "data": {
            "projectId": "...",
            "status": "completed",
            "totalCost": 123456.78,
            "accuracy": 94.2,
            "processingTime": "12s",
            "source": "analysis",
            ...
        }
    }
    """
    return _handle(req, "start_processing", _start_processing_async)


# ============================================================================
# Localization & Assistant Endpoints
# ============================================================================


async def _localized_estimate_async(user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    await _sync_exchange_rates()
    estimate = await _project_service().localize_project(
        user_id,
        require_field(data, "projectId"),
        country_code=data.get("countryCode"),
        locale=data.get("locale"),
        timezone=data.get("timezone"),
    )
    return estimate.to_dict()


@https_fn.on_request(**CRUD_ENDPOINT_CONFIG)
def get_localized_estimate(req: https_fn.Request) -> https_fn.Response:
    """Project estimate in a country's currency, units and number format.

    Request body:
    {
        "projectId": "...",
        "countryCode": "DE",      // Optional
        "locale": "en-GB",        // Optional, used when countryCode is absent
        "timezone": "Asia/Tokyo"  // Optional
    }
    """
    return _handle(req, "get_localized_estimate", _localized_estimate_async)


@https_fn.on_request(**CRUD_ENDPOINT_CONFIG)
def list_countries(req: https_fn.Request) -> https_fn.Response:
    """Supported countries and current exchange rates (no auth required)."""
    if req.method == "OPTIONS":
        return _cors_response()

    from services.localization_service import get_registry

    asyncio.run(_sync_exchange_rates())
    return _json_response(success_response(get_registry().to_dict()))


async def _assistant_async(user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    from services.assistant_service import ProjectAssistant
    from services.llm_service import LLMService

    detail = await _project_service().get_project(user_id, require_field(data, "projectId"))

    ai_config = get_ai_config()
    assistant = ProjectAssistant(LLMService.from_config(ai_config) if ai_config else None)
    answer = await assistant.answer(data.get("question") or "", detail.project, detail.items)
    return {"answer": answer, "configured": assistant.is_configured}


@https_fn.on_request(
    timeout_sec=120,
    memory=options.MemoryOption.MB_512,
    region="us-central1"
)
def project_assistant(req: https_fn.Request) -> https_fn.Response:
    """Answer a question about a project's estimate.

    Request body: {"projectId": "...", "question": "How can I reduce costs?"}
    """
    return _handle(req, "project_assistant", _assistant_async)


# ============================================================================
# Feedback & Training Data Endpoints
# ============================================================================


async def _submit_annotation_async(user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    annotation = await _feedback_service().submit_annotation(
        user_id,
        require_field(data, "projectId"),
        annotation_type=require_field(data, "annotationType"),
        item_index=data.get("itemIndex"),
        corrected_value=data.get("correctedValue"),
        confidence=data.get("confidence", 1.0),
        notes=data.get("notes"),
    )
    return annotation.to_dict()


@https_fn.on_request(**CRUD_ENDPOINT_CONFIG)
def submit_annotation(req: https_fn.Request) -> https_fn.Response:
    """Record feedback on a completed project's estimate.

    Request body:
    {
        "projectId": "...",
        "annotationType": "correction",   // correction | verification | addition
        "itemIndex": 2,                   // correction and verification
        "correctedValue": {"quantity": 52, "rate": 430},
        "confidence": 0.9,                // Optional, 0-1
        "notes": "Measured on site"       // Optional
    }
    """
    return _handle(req, "submit_annotation", _submit_annotation_async)


async def _list_annotations_async(user_id: str, data: Dict[str, Any]) -> List[Dict[str, Any]]:
    annotations = await _feedback_service().list_annotations(user_id, require_field(data, "projectId"))
    return [a.to_dict() for a in annotations]


@https_fn.on_request(**CRUD_ENDPOINT_CONFIG)
def list_annotations(req: https_fn.Request) -> https_fn.Response:
    """List a project's annotations, oldest first.

    Request body: {"projectId": "..."}
    """
    return _handle(req, "list_annotations", _list_annotations_async)


async def _collect_training_data_async(user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    record = await _feedback_service().collect_training_data(
        user_id,
        require_field(data, "projectId"),
        region=data.get("region"),
    )
    return record.to_dict()


@https_fn.on_request(**CRUD_ENDPOINT_CONFIG)
def collect_training_data(req: https_fn.Request) -> https_fn.Response:
    """Collect a completed project as a scored training record.

    Request body: {"projectId": "...", "region": "DE"}
    """
    return _handle(req, "collect_training_data", _collect_training_data_async)


async def _training_stats_async(user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    stats = await _feedback_service().training_stats(user_id)
    return stats.to_dict()


@https_fn.on_request(**CRUD_ENDPOINT_CONFIG)
def get_training_stats(req: https_fn.Request) -> https_fn.Response:
    """Counts, average quality and breakdowns of the caller's training records."""
    return _handle(req, "get_training_stats", _training_stats_async)


async def _export_training_data_async(user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    fmt = str(data.get("format") or "json").strip().lower()
    content = await _feedback_service().export_training_data(user_id, fmt)
    return {"format": fmt, "content": content}


@https_fn.on_request(**CRUD_ENDPOINT_CONFIG)
def export_training_data(req: https_fn.Request) -> https_fn.Response:
    """Export the caller's training records.

    Request body: {"format": "csv"}   // json (default) or csv
    """
    return _handle(req, "export_training_data", _export_training_data_async)


# ============================================================================
# Scheduled Jobs
# ============================================================================


def run_exchange_rate_refresh() -> Dict[str, float]:
    """Refresh exchange rates and store them for every instance.

    Raises:
        CostScanError: EXCHANGE_RATE_ERROR or a store error; logged first.
    """
    try:
        rates = asyncio.run(_exchange_rate_service().refresh())
    except CostScanError as e:
        logger.error("scheduled_exchange_rate_refresh_failed", code=e.code, error=e.message)
        raise
    logger.info("scheduled_exchange_rate_refresh", currencies=len(rates))
    return dict(rates)


@scheduler_fn.on_schedule(
    schedule="every 24 hours",
    timeout_sec=120,
    memory=options.MemoryOption.MB_256,
    region="us-central1"
)
def refresh_exchange_rates(event: scheduler_fn.ScheduledEvent) -> None:
    """Daily exchange-rate refresh (no-op without EXCHANGE_RATE_API_URL)."""
    run_exchange_rate_refresh()


CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Max-Age": "3600"
}


def _cors_response() -> https_fn.Response:
    """Return CORS preflight response."""
    return https_fn.Response(
        "",
        status=204,
        headers=CORS_HEADERS
    )


def _json_response(data: dict, status: int = 200) -> https_fn.Response:
    """Return JSON response with CORS headers."""

    def _json_default(o: Any):
        """JSON serializer for objects not serializable by default.

        Firestore returns timestamp types like `DatetimeWithNanoseconds` which
        behave like datetime objects but are not JSON serializable.
        """
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        if hasattr(o, "isoformat"):
            return o.isoformat()
        return str(o)

    return https_fn.Response(
        json.dumps(data, default=_json_default, ensure_ascii=False),
        status=status,
        mimetype="application/json",
        headers=CORS_HEADERS
    )
