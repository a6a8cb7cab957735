"""
Custom exceptions for the ETL service with structured error context.

Every exception carries a human-readable message, a context dictionary
(pipeline, file key, table, ...) and, when it wraps a lower level error,
the original exception. The orchestrator turns these into per-row,
per-file or per-pipeline failure records; only startup errors end the
process.

Exception Hierarchy:
    ETLException (base)
    ├── ConfigurationError
    │   └── PipelineNotFoundError
    ├── StorageError
    │   └── StorageObjectNotFoundError
    ├── CSVParseError
    ├── LoadError
    │   ├── DatabaseError
    │   │   ├── DatabaseConnectionError (retryable)
    │   │   └── RowInsertError
    │   ├── PostProcessError
    │   └── FileTransactionError
    ├── ExtractionError
    │   └── APIExtractionError
    │       ├── NetworkError (retryable)
    │       ├── RateLimitError (retryable)
    │       ├── AuthenticationError
    │       └── ResourceNotFoundError
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class ETLException(Exception):
    """
    Base exception for all ETL-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (pipeline, file, table, ...)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        context = {k: v for k, v in self.context.items() if k != "error_timestamp"}
        if context:
            context_str = ", ".join(f"{k}={v}" for k, v in context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += (
                f" | Caused by: {type(self.original_exception).__name__}: "
                f"{str(self.original_exception)}"
            )

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(ETLException):
    """
    Mixin for errors that should trigger retry logic.

    Use this for transient errors like:
    - Network timeouts
    - Rate limiting (HTTP 429)
    - Connection pool exhaustion
    - Service unavailable (HTTP 503)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        max_retries: int = 3,
        retry_delay: float = 1.0
    ):
        super().__init__(message, context, original_exception)
        self.max_retries = max_retries
        self.retry_delay = retry_delay


class NonRetryableError(ETLException):
    """
    Mixin for errors that should NOT trigger retry logic.

    Use this for permanent errors like:
    - Authentication failures (HTTP 401, 403)
    - Missing configuration
    - Resource not found (HTTP 404)
    """
    pass


# ============================================================================
# Configuration Errors
# ============================================================================

class ConfigurationError(NonRetryableError):
    """
    Raised when a required setting (source path, credential) is missing.

    Context should include:
        - setting: Name of the missing environment variable
        - pipeline: Pipeline or extractor that needed it
    """
    pass


class PipelineNotFoundError(ConfigurationError):
    """Raised when a pipeline name is not in the registry."""
    pass


# ============================================================================
# Storage Errors
# ============================================================================

class StorageError(ETLException):
    """
    Raised when an object storage operation fails.

    Context should include:
        - bucket: Bucket name
        - key / prefix: Object key or prefix involved
        - operation: list, get, put, copy, delete
    """
    pass


class StorageObjectNotFoundError(NonRetryableError, StorageError):
    """Raised when a source object disappeared before it could be fetched."""
    pass


# ============================================================================
# Parse Errors
# ============================================================================

class CSVParseError(NonRetryableError):
    """
    Raised when a CSV file cannot be parsed.

    Context should include:
        - file_key: Object key of the CSV file
    """
    pass


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(ETLException):
    """Base exception for data loading failures."""
    pass


class DatabaseError(LoadError):
    """
    Exception raised when database operations fail.

    Context should include:
        - operation: Type of database operation (INSERT, TRUNCATE, CALL)
        - table_name: Name of the table
    """
    pass


class DatabaseConnectionError(RetryableError, DatabaseError):
    """Connection could not be acquired (pool timeout, server unreachable)."""
    pass


class RowInsertError(DatabaseError):
    """
    A single row failed to insert.

    Recorded on the row outcome; never raised past the row loop.

    Context should include:
        - row_number: 1-based row number in the file
        - table_name: Target table
    """
    pass


class PostProcessError(LoadError):
    """
    A pipeline's post-process step failed.

    The whole file transaction is rolled back.
    """
    pass


class FileTransactionError(LoadError):
    """
    The file transaction was rolled back.

    Attributes:
        result: FileProcessingResult describing every row as it stood when
            the transaction was abandoned (success=False)
    """

    def __init__(
        self,
        message: str,
        result=None,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(message, context, original_exception)
        self.result = result


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(ETLException):
    """Base exception for data extraction failures."""
    pass


class APIExtractionError(ExtractionError):
    """
    Exception raised when API data extraction fails.

    Context should include:
        - api_url: The API endpoint that failed
        - status_code: HTTP status code (if applicable)
        - response_body: Response body (truncated if large)
        - retry_count: Number of retries attempted
    """
    pass


class NetworkError(RetryableError, APIExtractionError):
    """Network-related errors that should be retried."""
    pass


class RateLimitError(RetryableError, APIExtractionError):
    """Rate limiting errors (HTTP 429) that should be retried with backoff."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_after: Optional[float] = None
    ):
        super().__init__(message, context, original_exception)
        self.retry_after = retry_after  # Seconds to wait before retry
        if retry_after:
            self.context["retry_after"] = retry_after


class AuthenticationError(NonRetryableError, APIExtractionError):
    """Authentication failures (HTTP 401, 403) that should not be retried."""
    pass


class ResourceNotFoundError(NonRetryableError, APIExtractionError):
    """Resource not found errors (HTTP 404) that should not be retried."""
    pass
