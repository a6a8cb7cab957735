"""
ETL Orchestrator - discovers source files and runs them through pipelines.

For each pipeline:
- Resolve the base source path from configuration
- Ensure source/, processed/ and logs/ prefixes exist
- List pending CSV files and process them one at a time
- Write a valid-rows copy and a per-row status log back to storage
- Remove the source file once its transaction has committed

Failures are contained at the smallest level that makes sense: a row
failure is recorded on the row, a file failure on the file, a listing
failure on the pipeline. The run always moves on.
"""

import logging
import time
from typing import Callable, List, Optional

from core.config import Settings, settings as default_settings
from core.exceptions import (
    ETLException,
    FileTransactionError,
    StorageObjectNotFoundError,
)
from core.logging import get_pipeline_logger
from core.storage import PipelinePaths, S3Storage, build_pipeline_paths
from ingestion import audit
from ingestion.engine import PipelineEngine
from ingestion.pipelines.base import PipelineDefinition
from ingestion.registry import PipelineRegistry
from schemas.results import (
    CombinedSummary,
    FileProcessingResult,
    FileResult,
    PipelineRunSummary,
)

logger = logging.getLogger(__name__)

LoggerFactory = Callable[[str], logging.Logger]


class ShutdownFlag:
    """
    Cooperative stop request.

    Set from a signal handler; the orchestrator checks it before starting
    each file and each pipeline, so the file in flight always finishes.
    """

    def __init__(self):
        self.requested = False
        self.reason: Optional[str] = None

    def request(self, reason: str = "shutdown requested") -> None:
        if not self.requested:
            logger.warning(f"Shutdown requested ({reason}); finishing current file")
        self.requested = True
        self.reason = reason


class Orchestrator:
    """
    Runs registered pipelines over the files waiting in object storage.

    Responsibilities:
    - File discovery per pipeline
    - Per-file processing with failure isolation
    - Audit output (processed copy + status log)
    - Source cleanup policy
    """

    def __init__(
        self,
        storage: S3Storage,
        engine: PipelineEngine,
        registry: PipelineRegistry,
        config: Optional[Settings] = None,
        shutdown: Optional[ShutdownFlag] = None,
        logger_factory: LoggerFactory = get_pipeline_logger,
    ):
        self.storage = storage
        self.engine = engine
        self.registry = registry
        self.config = config or default_settings
        self.shutdown = shutdown if shutdown is not None else ShutdownFlag()
        self.logger_factory = logger_factory

    def available_pipelines(self) -> List[str]:
        return self.registry.names()

    async def process_all_pipelines(self) -> CombinedSummary:
        """
        Run every registered pipeline in registration order.

        A pipeline that fails does not stop the ones after it.
        """
        started = time.perf_counter()
        combined = CombinedSummary()
        names = self.registry.names()

        logger.info(f"Processing all pipelines: {', '.join(names)}")

        for name in names:
            if self.shutdown.requested:
                logger.warning(f"Shutdown requested, skipping remaining pipelines from {name}")
                break

            try:
                summary = await self.process_pipeline(name)
            except ETLException as e:
                logger.error(f"Pipeline {name} failed: {e}")
                summary = PipelineRunSummary(pipeline=name, success=False, error=str(e))
            except Exception as e:
                logger.exception(f"Pipeline {name} failed unexpectedly: {e}")
                summary = PipelineRunSummary(pipeline=name, success=False, error=str(e))
            combined.pipelines.append(summary)

        combined.duration_seconds = time.perf_counter() - started
        logger.info(
            f"All pipelines completed: files={combined.total_files} "
            f"successful={combined.successful_files} failed={combined.failed_files} "
            f"skipped={combined.skipped_files} ({combined.duration_seconds:.2f}s)"
        )
        return combined

    async def process_pipeline(self, name: str) -> PipelineRunSummary:
        """
        Process every pending file of one pipeline.

        Raises:
            PipelineNotFoundError: ``name`` is not registered
        """
        definition = self.registry.get(name)
        log = self.logger_factory(name)
        started = time.perf_counter()
        summary = PipelineRunSummary(pipeline=name)

        paths = build_pipeline_paths(self.config.source_path(definition.env_key))
        if paths is None:
            log.warning(f"Pipeline {name} not configured (missing {definition.env_key})")
            summary.configured = False
            return summary

        try:
            for prefix in paths:
                await self.storage.ensure_prefix_exists(prefix)

            log.info(f"Scanning for {name} files in {self.storage.bucket}/{paths.source}")
            files = await self.storage.list_files(
                paths.source,
                exclude_prefixes=(paths.processed, paths.logs),
            )
        except Exception as e:
            log.error(f"Error listing files for {name}: {e}")
            summary.success = False
            summary.error = str(e)
            summary.duration_seconds = time.perf_counter() - started
            return summary

        if not files:
            log.info(f"No {name} files found to process")
            summary.duration_seconds = time.perf_counter() - started
            return summary

        log.info(f"Found {len(files)} {name} CSV file(s) to process")

        for file_key in files:
            if self.shutdown.requested:
                log.warning(f"Shutdown requested, leaving {file_key} for the next run")
                summary.interrupted = True
                break

            result = await self.process_file(definition, file_key, paths, log)
            summary.add_file(result)

            if result.skipped:
                log.info(f"File skipped: {file_key}")
            elif result.success:
                log.info(f"File processed successfully: {file_key}")
            else:
                log.warning(f"File processing failed: {file_key}: {result.error}")

        summary.duration_seconds = time.perf_counter() - started
        log.info(
            f"{name} pipeline completed: total={summary.total_files} "
            f"successful={summary.successful_files} failed={summary.failed_files} "
            f"skipped={summary.skipped_files}"
        )
        return summary

    async def process_file(
        self,
        definition: PipelineDefinition,
        file_key: str,
        paths: PipelinePaths,
        log: Optional[logging.Logger] = None,
    ) -> FileResult:
        """Process one source file; never raises for file-level failures"""
        log = log or self.logger_factory(definition.name)
        started = time.perf_counter()
        log.info(f"Starting {definition.name} file processing: {file_key}")

        def failed(error: str, **fields) -> FileResult:
            return FileResult(
                file_key=file_key,
                success=False,
                error=error,
                duration_seconds=time.perf_counter() - started,
                **fields,
            )

        try:
            if not await self.storage.exists(file_key):
                raise StorageObjectNotFoundError(
                    f"File not found in S3: {file_key}",
                    context={"file_key": file_key},
                )
            data = await self.storage.get_object(file_key)
            rows = audit.parse_csv(data, file_key)
        except ETLException as e:
            log.error(f"Error reading {file_key}: {e}")
            return failed(str(e))
        except Exception as e:
            log.exception(f"Unexpected error reading {file_key}: {e}")
            return failed(str(e))

        log.info(f"CSV parsed: {len(rows)} rows")
        if not rows:
            log.warning(f"CSV file is empty, skipping processing: {file_key}")
            return FileResult(
                file_key=file_key,
                success=True,
                skipped=True,
                duration_seconds=time.perf_counter() - started,
            )

        try:
            result = await self.engine.process_file(
                definition,
                rows,
                batch_size=self.config.BATCH_SIZE,
                source_key=file_key,
                logger=log,
            )
        except FileTransactionError as e:
            log.error(f"File transaction failed for {file_key}: {e}")
            log_key = await self._upload_log(e.result, file_key, paths, log) if e.result else None
            return failed(
                str(e),
                total_rows=len(rows),
                error_count=len(rows),
                log_key=log_key,
            )
        except ETLException as e:
            log.error(f"Error processing {file_key}: {e}")
            return failed(str(e), total_rows=len(rows))
        except Exception as e:
            log.exception(f"Unexpected error processing {file_key}: {e}")
            return failed(str(e), total_rows=len(rows))

        processed_key = await self._upload_processed(result, file_key, paths, log)
        log_key = await self._upload_log(result, file_key, paths, log)
        deleted = await self._delete_source(file_key, log)

        duration = time.perf_counter() - started
        log.info(
            f"File processing completed: {file_key} total={result.total_rows} "
            f"valid={result.success_count} invalid={result.error_count} ({duration:.2f}s)"
        )
        return FileResult(
            file_key=file_key,
            success=True,
            total_rows=result.total_rows,
            success_count=result.success_count,
            error_count=result.error_count,
            duration_seconds=duration,
            processed_key=processed_key,
            log_key=log_key,
            source_deleted=deleted,
        )

    async def _upload_processed(
        self,
        result: FileProcessingResult,
        file_key: str,
        paths: PipelinePaths,
        log: logging.Logger,
    ) -> Optional[str]:
        if not result.valid_rows:
            log.info("No valid rows, processed copy skipped")
            return None

        key = audit.processed_key(paths.processed, file_key, audit.key_timestamp())
        try:
            return await self.storage.put_object(key, audit.render_processed_csv(result.outcomes))
        except Exception as e:
            log.error(f"Error uploading valid rows to processed folder: {e}")
            return None

    async def _upload_log(
        self,
        result: FileProcessingResult,
        file_key: str,
        paths: PipelinePaths,
        log: logging.Logger,
    ) -> Optional[str]:
        key = audit.log_key(paths.logs, file_key, audit.key_timestamp())
        try:
            return await self.storage.put_object(key, audit.render_log_csv(result.outcomes))
        except Exception as e:
            log.error(f"Error uploading log file: {e}")
            return None

    async def _delete_source(self, file_key: str, log: logging.Logger) -> bool:
        if not self.config.DELETE_SOURCE_AFTER_PROCESSING:
            return False
        try:
            await self.storage.delete_object(file_key)
            return True
        except Exception as e:
            log.error(f"Error deleting original file from source: {e}")
            return False
