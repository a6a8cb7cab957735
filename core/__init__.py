"""
Core utilities and configuration for the lab orders ETL service.

This package provides foundational components used throughout the ETL pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Engine, connection pool and session factory
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and per-pipeline loggers
    storage: S3 object storage access and pipeline path layout

Usage:
    from core.config import settings
    from core.database import create_engine_from_settings, create_session_factory
    from core.exceptions import FileTransactionError, StorageError
    from core.logging import setup_logging, get_pipeline_logger
    from core.storage import S3Storage, build_pipeline_paths

Example:
    # Initialize logging
    setup_logging()

    # Build the shared pool and open one session per file
    engine = create_engine_from_settings()
    session_factory = create_session_factory(engine)
    async with session_factory() as session:
        ...
"""

__all__ = [
    "settings",
    "create_engine_from_settings",
    "create_session_factory",
    "setup_logging",
    "get_pipeline_logger",
    "S3Storage",
    "build_pipeline_paths",
    # Exceptions
    "ETLException",
    "ConfigurationError",
    "PipelineNotFoundError",
    "StorageError",
    "StorageObjectNotFoundError",
    "CSVParseError",
    "LoadError",
    "DatabaseError",
    "DatabaseConnectionError",
    "RowInsertError",
    "PostProcessError",
    "FileTransactionError",
    "ExtractionError",
    "APIExtractionError",
    "NetworkError",
    "RateLimitError",
    "AuthenticationError",
    "ResourceNotFoundError",
    "RetryableError",
    "NonRetryableError",
]
