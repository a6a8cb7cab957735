"""
Pipeline execution engine.

Runs one file through one pipeline inside a single database transaction:

1. Optional TRUNCATE of the target table
2. Per row: normalize headers -> map -> validate -> INSERT in a savepoint
3. Post-process hook, once
4. COMMIT, or ROLLBACK of everything if step 3 (or the commit) fails

A bad row never aborts the file: its savepoint is rolled back and the
row is reported with the reason. Only transaction-level failures
(post-process, commit, lost connection) discard the file's work.
"""

import logging
import time
from typing import Dict, List, Optional, Sequence

from sqlalchemy import exc as sa_exc
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import settings
from core.exceptions import (
    DatabaseConnectionError,
    ETLException,
    FileTransactionError,
    PostProcessError,
    RowInsertError,
)
from ingestion.pipelines.base import PipelineDefinition
from ingestion.transformers.normalizer import find_missing_fields, normalize_record
from schemas.results import FileProcessingResult, RowOutcome, RowStatus

CONNECTION_ERRORS = (sa_exc.TimeoutError, sa_exc.OperationalError, sa_exc.InterfaceError, OSError)

ROLLED_BACK_REASON = "Transaction rolled back: {error}"


def _db_error_message(error: Exception) -> str:
    """Driver message without SQLAlchemy's statement and parameter dump"""
    original = getattr(error, "orig", None)
    return str(original) if original is not None else str(error)


class PipelineEngine:
    """
    Executes pipeline definitions against the database.

    One engine is shared by every pipeline; each ``process_file`` call
    takes its own session (one pooled connection) and releases it on
    every exit path.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        logger: Optional[logging.Logger] = None,
        batch_size: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.logger = logger or logging.getLogger(__name__)
        self.batch_size = batch_size or settings.BATCH_SIZE

    async def process_file(
        self,
        pipeline: PipelineDefinition,
        rows: Sequence[Dict[str, str]],
        batch_size: Optional[int] = None,
        source_key: str = "",
        logger: Optional[logging.Logger] = None,
    ) -> FileProcessingResult:
        """
        Load ``rows`` into ``pipeline.table_name``.

        Args:
            pipeline: Pipeline definition
            rows: Parsed source records, raw headers, in file order
            batch_size: Progress logging interval in rows
            source_key: Object key of the file, passed to the insert builder
            logger: Pipeline logger; defaults to the engine's logger

        Returns:
            FileProcessingResult with one outcome per row, in input order

        Raises:
            DatabaseConnectionError: No connection could be acquired
            FileTransactionError: The transaction was rolled back; the
                exception's ``result`` describes every row
        """
        log = logger or self.logger
        batch_size = batch_size or self.batch_size
        started = time.perf_counter()
        total = len(rows)
        outcomes: List[RowOutcome] = []

        log.info(f"Processing {total} rows into {pipeline.table_name} (batch size {batch_size})")

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    await self._connect(session, pipeline)

                    if pipeline.should_truncate:
                        log.info(f"Truncating table {pipeline.table_name}")
                        await session.execute(text(f"TRUNCATE TABLE {pipeline.table_name}"))

                    for row_number, row in enumerate(rows, start=1):
                        outcome = await self._process_row(session, pipeline, row, row_number, source_key, log)
                        outcomes.append(outcome)

                        if row_number % batch_size == 0 or row_number == total:
                            batch = (row_number - 1) // batch_size + 1
                            log.info(f"Batch {batch}: processed {row_number}/{total} rows")

                    if pipeline.post_process is not None:
                        await self._post_process(session, pipeline, log)

        except DatabaseConnectionError:
            raise

        except Exception as e:
            result = self._rolled_back_result(rows, outcomes, e, started)
            log.error(f"Transaction rolled back for {pipeline.table_name}: {e}")
            raise FileTransactionError(
                "File transaction rolled back",
                result=result,
                context={"pipeline": pipeline.name, "table_name": pipeline.table_name, "file_key": source_key},
                original_exception=e,
            )

        success_count = sum(1 for o in outcomes if o.is_valid)
        result = FileProcessingResult(
            total_rows=total,
            success_count=success_count,
            error_count=total - success_count,
            outcomes=outcomes,
            duration_seconds=time.perf_counter() - started,
            success=True,
        )

        log.info(
            f"Transaction committed for {pipeline.table_name}: "
            f"{result.success_count} inserted, {result.error_count} rejected "
            f"in {result.duration_seconds:.2f}s"
        )
        return result

    async def _connect(self, session: AsyncSession, pipeline: PipelineDefinition) -> None:
        """Check out the file's connection before any row is touched"""
        try:
            await session.connection()
        except CONNECTION_ERRORS as e:
            raise DatabaseConnectionError(
                "Could not acquire a database connection",
                context={"pipeline": pipeline.name, "table_name": pipeline.table_name},
                original_exception=e,
            )

    async def _process_row(
        self,
        session: AsyncSession,
        pipeline: PipelineDefinition,
        row: Dict[str, str],
        row_number: int,
        source_key: str,
        log: logging.Logger,
    ) -> RowOutcome:
        try:
            mapped = pipeline.map_row(normalize_record(row))
            missing = find_missing_fields(mapped, pipeline.required_fields)
            if missing:
                return RowOutcome(
                    status=RowStatus.ERROR,
                    row_number=row_number,
                    source_record=row,
                    reason=f"Missing required fields: {', '.join(missing)}",
                    missing_fields=missing,
                )
            statement = pipeline.build_insert_statement(mapped, source_key)
        except Exception as e:
            log.warning(f"Row {row_number}: mapping failed: {e}")
            return RowOutcome(
                status=RowStatus.ERROR,
                row_number=row_number,
                source_record=row,
                reason=str(e),
            )

        try:
            async with session.begin_nested():
                await session.execute(statement)
        except sa_exc.SQLAlchemyError as e:
            error = RowInsertError(
                _db_error_message(e),
                context={"row_number": row_number, "table_name": pipeline.table_name},
                original_exception=e,
            )
            log.warning(str(error))
            return RowOutcome(
                status=RowStatus.ERROR,
                row_number=row_number,
                source_record=row,
                reason=error.message,
            )

        return RowOutcome(status=RowStatus.SUCCESS, row_number=row_number, source_record=row)

    async def _post_process(self, session: AsyncSession, pipeline: PipelineDefinition, log: logging.Logger) -> None:
        log.info(f"Running post-process for {pipeline.name}")
        try:
            await pipeline.post_process(session)
        except Exception as e:
            raise PostProcessError(
                f"Post-process failed: {_db_error_message(e)}",
                context={"pipeline": pipeline.name},
                original_exception=e,
            )

    @staticmethod
    def _rolled_back_result(
        rows: Sequence[Dict[str, str]],
        outcomes: List[RowOutcome],
        error: Exception,
        started: float,
    ) -> FileProcessingResult:
        """
        Every row as it stands after a rollback.

        Rows that had been inserted and rows never reached are reported
        with the rollback reason; rows already rejected keep their own.
        """
        message = error.message if isinstance(error, ETLException) else _db_error_message(error)
        reason = ROLLED_BACK_REASON.format(error=message)

        final: List[RowOutcome] = []
        for outcome in outcomes:
            if outcome.is_valid:
                outcome = RowOutcome(
                    status=RowStatus.ERROR,
                    row_number=outcome.row_number,
                    source_record=outcome.source_record,
                    reason=reason,
                )
            final.append(outcome)

        for row_number in range(len(outcomes) + 1, len(rows) + 1):
            final.append(
                RowOutcome(
                    status=RowStatus.ERROR,
                    row_number=row_number,
                    source_record=rows[row_number - 1],
                    reason=reason,
                )
            )

        return FileProcessingResult(
            total_rows=len(rows),
            success_count=0,
            error_count=len(rows),
            outcomes=final,
            duration_seconds=time.perf_counter() - started,
            success=False,
            error=message,
        )
