"""
Logging configuration
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

PIPELINE_LOGGER_PREFIX = "pipeline"


def _file_handler(path: Path, level: int = logging.NOTSET) -> logging.FileHandler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(log_dir: Optional[str] = None, log_to_files: bool = True):
    """Configure application logging"""

    # Get log level from settings
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_to_files:
        directory = Path(log_dir or settings.LOG_DIR)
        handlers.append(_file_handler(directory / "combined.log"))
        handlers.append(_file_handler(directory / "error.log", logging.ERROR))

    # Configure root logger
    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True,
    )

    # Set SQLAlchemy and AWS SDK logging to WARNING to reduce noise
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured at {settings.LOG_LEVEL} level")


def get_pipeline_logger(
    pipeline_name: str,
    log_dir: Optional[str] = None,
    log_to_files: bool = True,
) -> logging.Logger:
    """
    Logger for one pipeline.

    Records go to ``<LOG_DIR>/<pipeline>/combined.log`` and ``error.log`` and
    also propagate to the root handlers, so the main combined log still sees
    everything. Handlers are attached once per process.
    """
    logger = logging.getLogger(f"{PIPELINE_LOGGER_PREFIX}.{pipeline_name}")

    if log_to_files and not getattr(logger, "_pipeline_handlers", False):
        directory = Path(log_dir or settings.LOG_DIR) / pipeline_name
        logger.addHandler(_file_handler(directory / "combined.log"))
        logger.addHandler(_file_handler(directory / "error.log", logging.ERROR))
        logger._pipeline_handlers = True

    return logger
