"""Upload validation for CostScan.

Every check here runs before any storage or analysis call is made. A failed
validation is never retried.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import structlog

from config.errors import ErrorCode, ValidationError
from config.settings import settings

logger = structlog.get_logger(__name__)


# MIME type -> accepted extensions
ALLOWED_FILE_TYPES: Dict[str, List[str]] = {
    "application/pdf": [".pdf"],
    "image/jpeg": [".jpg", ".jpeg"],
    "image/png": [".png"],
    "image/gif": [".gif"],
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": [".docx"],
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": [".xlsx"],
    "text/plain": [".txt"],
    "text/csv": [".csv"],
}

EXTENSION_TYPES: Dict[str, str] = {
    ext: mime for mime, extensions in ALLOWED_FILE_TYPES.items() for ext in extensions
}


@dataclass
class FileValidationResult:
    """Result of upload validation."""
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    code: Optional[str] = None
    mime_type: Optional[str] = None  # Resolved type when valid


def file_extension(file_name: str) -> str:
    return os.path.splitext(file_name or "")[1].lower()


def resolve_mime_type(file_name: str, mime_type: Optional[str] = None) -> Optional[str]:
    """Allowed MIME type for a file, by declared type first and then extension."""
    declared = (mime_type or "").split(";")[0].strip().lower()
    if declared in ALLOWED_FILE_TYPES:
        return declared
    return EXTENSION_TYPES.get(file_extension(file_name))


def validate_upload(
    file_name: str,
    size: int,
    mime_type: Optional[str] = None,
    max_bytes: Optional[int] = None,
) -> FileValidationResult:
    """Validate an upload's name, size and type.

    Args:
        file_name: Original file name.
        size: Size in bytes.
        mime_type: Declared MIME type (may be empty).
        max_bytes: Size cap (default settings.max_upload_bytes).

    Returns:
        FileValidationResult; the first failing check sets the error code.
    """
    max_bytes = max_bytes if max_bytes is not None else settings.max_upload_bytes

    if not file_name or not file_name.strip():
        return FileValidationResult(
            is_valid=False,
            errors=["File name is required"],
            code=ErrorCode.MISSING_FIELD,
        )

    if size is None or size <= 0:
        return FileValidationResult(
            is_valid=False,
            errors=[f"File is empty: {file_name}"],
            code=ErrorCode.EMPTY_FILE,
        )

    if size > max_bytes:
        return FileValidationResult(
            is_valid=False,
            errors=[f"File exceeds {max_bytes // (1024 * 1024)}MB limit: {file_name}"],
            code=ErrorCode.FILE_TOO_LARGE,
        )

    resolved = resolve_mime_type(file_name, mime_type)
    if resolved is None:
        return FileValidationResult(
            is_valid=False,
            errors=[f"Unsupported file type: {mime_type or file_extension(file_name) or 'unknown'}"],
            code=ErrorCode.UNSUPPORTED_FILE_TYPE,
        )

    return FileValidationResult(is_valid=True, mime_type=resolved)


def ensure_valid_upload(
    file_name: str,
    size: int,
    mime_type: Optional[str] = None,
    max_bytes: Optional[int] = None,
) -> str:
    """Validate an upload or raise.

    Returns:
        The resolved MIME type.

    Raises:
        ValidationError: With the failing check's error code.
    """
    result = validate_upload(file_name, size, mime_type, max_bytes)
    if not result.is_valid:
        logger.info("upload_rejected", file_name=file_name, size=size, code=result.code)
        raise ValidationError(
            message=result.errors[0],
            field="file",
            details={"fileName": file_name, "errors": result.errors},
            code=result.code,
        )
    return result.mime_type
