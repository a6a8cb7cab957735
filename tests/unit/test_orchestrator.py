"""
Unit tests for the orchestrator: discovery, audit output and failure isolation
"""

import csv
import io

import pytest

from core.exceptions import PipelineNotFoundError, StorageError

SOURCE = "orders/incoming/"
PROCESSED = "orders/incoming/processed/"
LOGS = "orders/incoming/logs/"

VALID_ORDERS = (
    "CaseId,ProductId,Quantity,SubmissionDate,CaseDate,CustomerId\n"
    "1,P1,3,2024-01-01,2024-01-01,C1\n"
    "2,P2,1,2024-01-02,2024-01-02,C2\n"
)


def read_csv(storage, key):
    return list(csv.reader(io.StringIO(storage.text(key))))


class TestProcessPipeline:

    @pytest.mark.asyncio
    async def test_orders_file_end_to_end(self, orchestrator, storage, fake_db, orders_csv):
        storage.add(SOURCE + "orders-1.csv", orders_csv)

        summary = await orchestrator.process_pipeline("orders")

        assert summary.configured is True
        assert summary.total_files == 1
        assert summary.successful_files == 1
        assert summary.failed_files == 0

        file_result = summary.files[0]
        assert file_result.success_count == 1
        assert file_result.error_count == 1
        assert file_result.source_deleted is True
        assert SOURCE + "orders-1.csv" not in storage.objects
        assert len(fake_db.rows("orders_stage")) == 1

        processed = storage.keys_under(PROCESSED)
        assert processed == [file_result.processed_key]
        assert processed[0].endswith("_orders-1.csv")
        assert read_csv(storage, processed[0]) == [
            ["CaseId", "ProductId", "Quantity", "SubmissionDate", "CaseDate", "CustomerId"],
            ["1", "P1", "3", "2024-01-01", "2024-01-01", "C1"],
        ]

        logs = storage.keys_under(LOGS)
        assert logs == [file_result.log_key]
        assert logs[0].startswith(LOGS + "orders-1_log_")
        log_lines = read_csv(storage, logs[0])
        assert log_lines[0][-3:] == ["etl_status", "etl_reason", "missingFields"]
        assert log_lines[1][-3:] == ["success", "", ""]
        assert log_lines[2][-3:] == ["error", "Missing required fields: caseid", "caseid"]

    @pytest.mark.asyncio
    async def test_prefixes_created(self, orchestrator, storage):
        await orchestrator.process_pipeline("orders")

        assert SOURCE in storage.objects
        assert PROCESSED in storage.objects
        assert LOGS in storage.objects

    @pytest.mark.asyncio
    async def test_audit_and_non_csv_files_not_picked_up(self, orchestrator, storage):
        storage.add(PROCESSED + "2024_old.csv", VALID_ORDERS)
        storage.add(LOGS + "old_log_2024.csv", VALID_ORDERS)
        storage.add(SOURCE + "readme.txt", "not a csv")
        storage.add(SOURCE + "new.csv", VALID_ORDERS)

        summary = await orchestrator.process_pipeline("orders")

        assert [f.file_key for f in summary.files] == [SOURCE + "new.csv"]

    @pytest.mark.asyncio
    async def test_files_processed_in_listing_order(self, orchestrator, storage):
        for name in ("b.csv", "a.csv", "c.csv"):
            storage.add(SOURCE + name, VALID_ORDERS)

        summary = await orchestrator.process_pipeline("orders")

        assert [f.file_key for f in summary.files] == [SOURCE + "a.csv", SOURCE + "b.csv", SOURCE + "c.csv"]

    @pytest.mark.asyncio
    async def test_no_files(self, orchestrator):
        summary = await orchestrator.process_pipeline("orders")

        assert summary.success is True
        assert summary.total_files == 0

    @pytest.mark.asyncio
    async def test_unconfigured_pipeline_does_no_work(self, orchestrator, storage):
        summary = await orchestrator.process_pipeline("product-catalog")

        assert summary.configured is False
        assert summary.total_files == 0
        assert storage.objects == {}

    @pytest.mark.asyncio
    async def test_unknown_pipeline(self, orchestrator):
        with pytest.raises(PipelineNotFoundError):
            await orchestrator.process_pipeline("invoices")

    @pytest.mark.asyncio
    async def test_empty_file_skipped(self, orchestrator, storage, fake_db):
        storage.add(SOURCE + "empty.csv", "CaseId,ProductId\n")

        summary = await orchestrator.process_pipeline("orders")

        assert summary.skipped_files == 1
        assert summary.files[0].skipped is True
        assert summary.files[0].success is True
        assert fake_db.sessions_opened == 0

    @pytest.mark.asyncio
    async def test_listing_failure_is_pipeline_level(self, orchestrator, storage):
        storage.failures["list"] = StorageError("Access Denied")

        summary = await orchestrator.process_pipeline("orders")

        assert summary.success is False
        assert "Access Denied" in summary.error


class TestFileFailures:

    @pytest.mark.asyncio
    async def test_bad_file_does_not_stop_the_next(self, orchestrator, storage, fake_db):
        storage.add(SOURCE + "a.csv", 'CaseId,ProductId\n1,"unterminated\n')
        storage.add(SOURCE + "b.csv", VALID_ORDERS)

        summary = await orchestrator.process_pipeline("orders")

        assert summary.failed_files == 1
        assert summary.successful_files == 1
        assert summary.files[0].success is False
        assert "CSVParseError" in summary.files[0].error
        assert SOURCE + "a.csv" in storage.objects
        assert SOURCE + "b.csv" not in storage.objects
        assert len(fake_db.rows("orders_stage")) == 2

    @pytest.mark.asyncio
    async def test_rolled_back_file_gets_log_but_no_processed_copy(self, orchestrator, storage, fake_db):
        fake_db.failing_procedures.add("merge_orders_stage")
        storage.add(SOURCE + "a.csv", VALID_ORDERS)

        summary = await orchestrator.process_pipeline("orders")

        result = summary.files[0]
        assert result.success is False
        assert result.processed_key is None
        assert storage.keys_under(PROCESSED) == []
        assert SOURCE + "a.csv" in storage.objects
        assert fake_db.rows("orders_stage") == []

        log_lines = read_csv(storage, result.log_key)
        assert len(log_lines) == 3
        assert all(line[-3] == "error" for line in log_lines[1:])
        assert all(line[-2].startswith("Transaction rolled back:") for line in log_lines[1:])

    @pytest.mark.asyncio
    async def test_pool_timeout_fails_file(self, orchestrator, storage, fake_db):
        fake_db.fail_connect = True
        storage.add(SOURCE + "a.csv", VALID_ORDERS)

        summary = await orchestrator.process_pipeline("orders")

        assert summary.failed_files == 1
        assert "DatabaseConnectionError" in summary.files[0].error
        assert SOURCE + "a.csv" in storage.objects

    @pytest.mark.asyncio
    async def test_audit_upload_failure_does_not_fail_file(self, orchestrator, storage):
        storage.add(SOURCE + "a.csv", VALID_ORDERS)
        storage.failures["put"] = StorageError("SlowDown")

        summary = await orchestrator.process_pipeline("orders")

        result = summary.files[0]
        assert result.success is True
        assert result.processed_key is None
        assert result.log_key is None
        assert result.source_deleted is True

    @pytest.mark.asyncio
    async def test_source_kept_when_deletion_disabled(self, orchestrator, storage, test_settings):
        test_settings.DELETE_SOURCE_AFTER_PROCESSING = False
        storage.add(SOURCE + "a.csv", VALID_ORDERS)

        summary = await orchestrator.process_pipeline("orders")

        assert summary.files[0].success is True
        assert summary.files[0].source_deleted is False
        assert SOURCE + "a.csv" in storage.objects

    @pytest.mark.asyncio
    async def test_unexpected_read_error_does_not_stop_the_next(self, orchestrator, storage, fake_db):
        storage.add(SOURCE + "a.csv", VALID_ORDERS)
        storage.add(SOURCE + "b.csv", VALID_ORDERS)
        original_get = storage.get_object

        async def reset_on_first(key):
            if key.endswith("a.csv"):
                raise ConnectionResetError("connection reset by peer")
            return await original_get(key)

        storage.get_object = reset_on_first

        summary = await orchestrator.process_pipeline("orders")

        assert [f.success for f in summary.files] == [False, True]
        assert "connection reset by peer" in summary.files[0].error
        assert SOURCE + "a.csv" in storage.objects
        assert len(fake_db.rows("orders_stage")) == 2

    @pytest.mark.asyncio
    async def test_unexpected_engine_error_fails_only_that_file(self, orchestrator, storage, engine):
        storage.add(SOURCE + "a.csv", VALID_ORDERS)
        storage.add(SOURCE + "b.csv", VALID_ORDERS)
        original_process = engine.process_file
        calls = []

        async def fail_first(*args, **kwargs):
            calls.append(kwargs["source_key"])
            if len(calls) == 1:
                raise RuntimeError("event loop is closed")
            return await original_process(*args, **kwargs)

        engine.process_file = fail_first

        summary = await orchestrator.process_pipeline("orders")

        assert summary.failed_files == 1
        assert summary.successful_files == 1
        assert summary.files[0].total_rows == 2
        assert "event loop is closed" in summary.files[0].error

    @pytest.mark.asyncio
    async def test_unexpected_listing_error_is_pipeline_level(self, orchestrator, storage):
        async def timeout(*args, **kwargs):
            raise TimeoutError("listing timed out")

        storage.list_files = timeout

        summary = await orchestrator.process_pipeline("orders")

        assert summary.success is False
        assert "listing timed out" in summary.error


class TestProcessAllPipelines:

    @pytest.mark.asyncio
    async def test_runs_every_pipeline_in_registration_order(self, orchestrator, storage, registry):
        storage.add(SOURCE + "a.csv", VALID_ORDERS)
        storage.add("crm/dental-groups/groups.csv", "Dental Group ID,Name\n10,Bright Smiles\n")

        combined = await orchestrator.process_all_pipelines()

        assert [p.pipeline for p in combined.pipelines] == registry.names()
        assert combined.total_files == 2
        assert combined.successful_files == 2
        by_name = {p.pipeline: p for p in combined.pipelines}
        assert by_name["orders"].configured is True
        assert by_name["dental-groups"].configured is True
        assert by_name["product-catalog"].configured is False

    @pytest.mark.asyncio
    async def test_pipeline_failure_does_not_stop_the_rest(self, orchestrator, storage):
        storage.failures["list"] = StorageError("Access Denied")

        combined = await orchestrator.process_all_pipelines()

        failed = [p.pipeline for p in combined.pipelines if not p.success]
        assert failed == ["orders", "dental-groups"]
        assert len(combined.pipelines) == 8
        assert combined.success is False

    @pytest.mark.asyncio
    async def test_unexpected_pipeline_error_does_not_stop_the_rest(self, orchestrator, storage):
        storage.add("crm/dental-groups/groups.csv", "Dental Group ID,Name\n10,Bright Smiles\n")
        original_process = orchestrator.process_pipeline

        async def broken_orders(name):
            if name == "orders":
                raise RuntimeError("pool closed")
            return await original_process(name)

        orchestrator.process_pipeline = broken_orders

        combined = await orchestrator.process_all_pipelines()

        by_name = {p.pipeline: p for p in combined.pipelines}
        assert len(combined.pipelines) == 8
        assert by_name["orders"].success is False
        assert "pool closed" in by_name["orders"].error
        assert by_name["dental-groups"].successful_files == 1


class TestShutdown:

    @pytest.mark.asyncio
    async def test_no_new_file_after_shutdown_request(self, orchestrator, storage, shutdown):
        storage.add(SOURCE + "a.csv", VALID_ORDERS)
        storage.add(SOURCE + "b.csv", VALID_ORDERS)
        original_get = storage.get_object

        async def get_then_stop(key):
            shutdown.request("SIGTERM")
            return await original_get(key)

        storage.get_object = get_then_stop

        summary = await orchestrator.process_pipeline("orders")

        assert summary.interrupted is True
        assert [f.file_key for f in summary.files] == [SOURCE + "a.csv"]
        assert summary.files[0].success is True
        assert SOURCE + "b.csv" in storage.objects

    @pytest.mark.asyncio
    async def test_no_pipeline_started_after_shutdown(self, orchestrator, shutdown):
        shutdown.request("SIGINT")

        combined = await orchestrator.process_all_pipelines()

        assert combined.pipelines == []

    def test_injected_flag_is_kept(self, orchestrator, shutdown):
        assert shutdown.requested is False
        assert orchestrator.shutdown is shutdown
