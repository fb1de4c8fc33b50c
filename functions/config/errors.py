"""CostScan error handling.

Custom exceptions and error codes for the estimation pipeline and API surface.
"""

from typing import Optional, Dict, Any


# Error Codes
class ErrorCode:
    """Error code constants."""

    # Validation Errors (1xxx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_FIELD = "INVALID_FIELD"
    EMPTY_FILE = "EMPTY_FILE"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    UNSUPPORTED_FILE_TYPE = "UNSUPPORTED_FILE_TYPE"
    UNAUTHENTICATED = "UNAUTHENTICATED"

    # Analysis Errors (2xxx)
    ANALYSIS_NOT_CONFIGURED = "ANALYSIS_NOT_CONFIGURED"
    ANALYSIS_TIMEOUT = "ANALYSIS_TIMEOUT"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"

    # Pipeline Errors (3xxx)
    PIPELINE_FAILED = "PIPELINE_FAILED"
    PIPELINE_INVALID_STATE = "PIPELINE_INVALID_STATE"
    NO_FILES = "NO_FILES"

    # Firestore Errors (5xxx)
    FIRESTORE_ERROR = "FIRESTORE_ERROR"
    PROJECT_NOT_FOUND = "PROJECT_NOT_FOUND"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    FIRESTORE_WRITE_FAILED = "FIRESTORE_WRITE_FAILED"

    # LLM Errors (6xxx)
    LLM_ERROR = "LLM_ERROR"
    LLM_RATE_LIMIT = "LLM_RATE_LIMIT"
    LLM_CONTEXT_TOO_LONG = "LLM_CONTEXT_TOO_LONG"

    # External Service Errors (7xxx)
    STORAGE_ERROR = "STORAGE_ERROR"
    EXCHANGE_RATE_ERROR = "EXCHANGE_RATE_ERROR"


class CostScanError(Exception):
    """Base exception for CostScan errors.

    Provides structured error information for API responses.

    Attributes:
        code: Error code from ErrorCode constants
        message: Human-readable error message
        details: Additional error context
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        """Initialize CostScanError.

        Args:
            code: Error code from ErrorCode constants
            message: Human-readable error message
            details: Additional error context
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for API response.

        Returns:
            Dictionary with code, message, and details.
        """
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }

    def __repr__(self) -> str:
        return f"CostScanError(code={self.code!r}, message={self.message!r})"


class ValidationError(CostScanError):
    """Validation-specific error.

    Raised before any external call is made; never retried.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict] = None,
        code: str = ErrorCode.VALIDATION_ERROR
    ):
        super().__init__(
            code=code,
            message=message,
            details={**(details or {}), "field": field} if field else details
        )
        self.field = field


class PipelineError(CostScanError):
    """Pipeline-specific error."""

    def __init__(
        self,
        code: str,
        message: str,
        project_id: str,
        details: Optional[Dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            details={**(details or {}), "project_id": project_id}
        )
        self.project_id = project_id


class PersistenceError(CostScanError):
    """Metadata store write/read failure."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(
            code=ErrorCode.FIRESTORE_WRITE_FAILED,
            message=message,
            details=details
        )


class StorageError(CostScanError):
    """Object storage failure."""

    def __init__(self, message: str, path: Optional[str] = None, details: Optional[Dict] = None):
        super().__init__(
            code=ErrorCode.STORAGE_ERROR,
            message=message,
            details={**(details or {}), "path": path} if path else details
        )
        self.path = path
