"""
Pytest configuration and fixtures
"""

import copy
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple

import pytest
from sqlalchemy import exc as sa_exc
from sqlalchemy.dialects import postgresql
from sqlalchemy.sql.elements import TextClause

from core.config import Settings
from core.exceptions import StorageObjectNotFoundError
from ingestion.engine import PipelineEngine
from ingestion.pipelines import PIPELINES
from ingestion.registry import PipelineRegistry
from ingestion.runner import Orchestrator, ShutdownFlag

# Uniqueness enforced by the fake database, mirroring the models' keys
UNIQUE_KEYS: Dict[str, Tuple[str, ...]] = {
    "dental_groups": ("dental_group_id",),
    "dental_practices": ("practice_id",),
    "incisive_product_catalog": ("incisive_id",),
    "lab_product_mapping": ("lab_id", "lab_product_id"),
    "lab_practice_mapping": ("lab_id", "practice_id"),
    "product_lab_markup": ("lab_id", "lab_product_id"),
    "product_lab_rev_share": ("lab_id", "lab_product_id", "fee_schedule_name"),
}


class FakeDatabase:
    """
    In-memory stand-in for PostgreSQL.

    Models what the engine relies on: one transaction per session,
    savepoints, unique keys with conflict-ignore, TRUNCATE and CALL.
    """

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.unique_keys: Dict[str, Tuple[str, ...]] = dict(UNIQUE_KEYS)
        self.procedures_called: List[str] = []
        self.failing_procedures: Set[str] = set()
        self.fail_insert: Optional[Callable[[str, Dict[str, Any]], Optional[str]]] = None
        self.fail_connect = False
        self.fail_commit = False
        self.executed: List[str] = []
        self.commits = 0
        self.rollbacks = 0
        self.sessions_opened = 0
        self.sessions_closed = 0

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.get(table, [])

    def snapshot(self) -> Dict[str, List[Dict[str, Any]]]:
        return copy.deepcopy(self.tables)

    def restore(self, snapshot: Dict[str, List[Dict[str, Any]]]) -> None:
        self.tables = snapshot

    def execute(self, statement) -> None:
        if isinstance(statement, TextClause):
            self._execute_text(str(statement).strip())
            return

        compiled = statement.compile(dialect=postgresql.dialect())
        table = statement.table.name
        params = dict(compiled.params)
        self.executed.append(f"INSERT {table}")

        if self.fail_insert is not None:
            message = self.fail_insert(table, params)
            if message:
                raise sa_exc.IntegrityError(str(compiled), params, Exception(message))

        key_columns = self.unique_keys.get(table)
        rows = self.tables.setdefault(table, [])
        if key_columns:
            key = tuple(params.get(c) for c in key_columns)
            if any(tuple(r.get(c) for c in key_columns) == key for r in rows):
                if "ON CONFLICT" in str(compiled):
                    return
                raise sa_exc.IntegrityError(
                    str(compiled), params,
                    Exception(f'duplicate key value violates unique constraint "{table}_pkey"'),
                )
        rows.append(params)

    def _execute_text(self, sql: str) -> None:
        self.executed.append(sql)
        upper = sql.upper()
        if upper.startswith("TRUNCATE TABLE"):
            self.tables[sql.split()[2]] = []
        elif upper.startswith("CALL"):
            name = sql.split()[1].split("(")[0]
            if name in self.failing_procedures:
                raise sa_exc.ProgrammingError(sql, {}, Exception(f"procedure {name} failed"))
            self.procedures_called.append(name)


class _Transaction:
    def __init__(self, session: "FakeSession", nested: bool):
        self.session = session
        self.nested = nested
        self._snapshot = None

    async def __aenter__(self):
        self._snapshot = self.session.db.snapshot()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        db = self.session.db
        if exc_type is not None:
            db.restore(self._snapshot)
            if not self.nested:
                db.rollbacks += 1
            return False
        if not self.nested:
            if db.fail_commit:
                db.restore(self._snapshot)
                db.rollbacks += 1
                raise sa_exc.OperationalError("COMMIT", {}, Exception("connection lost during commit"))
            db.commits += 1
        return False


class FakeSession:
    def __init__(self, db: FakeDatabase):
        self.db = db
        self.nested_begins = 0

    async def __aenter__(self):
        self.db.sessions_opened += 1
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.db.sessions_closed += 1
        return False

    def begin(self):
        return _Transaction(self, nested=False)

    def begin_nested(self):
        self.nested_begins += 1
        return _Transaction(self, nested=True)

    async def connection(self):
        if self.db.fail_connect:
            raise sa_exc.TimeoutError("QueuePool limit of size 10 overflow 0 reached, connection timed out")
        return self

    async def execute(self, statement):
        self.db.execute(statement)


class FakeSessionFactory:
    def __init__(self, db: FakeDatabase):
        self.db = db

    def __call__(self) -> FakeSession:
        return FakeSession(self.db)


class InMemoryStorage:
    """Object storage double with the S3Storage interface"""

    def __init__(self, bucket: str = "test-bucket"):
        self.bucket = bucket
        self.objects: Dict[str, bytes] = {}
        self.failures: Dict[str, Exception] = {}
        self.closed = False

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.failures:
            raise self.failures[operation]

    def add(self, key: str, body) -> None:
        self.objects[key] = body.encode("utf-8") if isinstance(body, str) else body

    async def ensure_prefix_exists(self, prefix: str) -> None:
        self._maybe_fail("ensure")
        if not any(k.startswith(prefix) for k in self.objects):
            self.objects[prefix] = b""

    async def exists(self, key: str) -> bool:
        self._maybe_fail("exists")
        return key in self.objects

    async def get_object(self, key: str) -> bytes:
        self._maybe_fail("get")
        if key not in self.objects:
            raise StorageObjectNotFoundError(f"File not found in S3: {key}", context={"key": key})
        return self.objects[key]

    async def list_files(self, prefix: str, exclude_prefixes: Sequence[str] = (), suffix: str = ".csv") -> List[str]:
        self._maybe_fail("list")
        return [
            k for k in sorted(self.objects)
            if k.startswith(prefix) and k != prefix and k.lower().endswith(suffix)
            and not any(k.startswith(e) for e in exclude_prefixes)
        ]

    async def put_object(self, key: str, body: bytes, content_type: str = "text/csv") -> str:
        self._maybe_fail("put")
        self.objects[key] = body
        return key

    async def delete_object(self, key: str) -> None:
        self._maybe_fail("delete")
        self.objects.pop(key, None)

    async def copy_then_delete(self, source_key: str, dest_key: str) -> str:
        self.objects[dest_key] = self.objects[source_key]
        await self.delete_object(source_key)
        return dest_key

    async def close(self) -> None:
        self.closed = True

    def keys_under(self, prefix: str) -> List[str]:
        return [k for k in sorted(self.objects) if k.startswith(prefix) and k != prefix]

    def text(self, key: str) -> str:
        return self.objects[key].decode("utf-8")


def quiet_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"pipeline.{name}")


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def session_factory(fake_db) -> FakeSessionFactory:
    return FakeSessionFactory(fake_db)


@pytest.fixture
def engine(session_factory) -> PipelineEngine:
    return PipelineEngine(session_factory, batch_size=100)


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        SOURCEPATH="orders/incoming",
        DENTAL_GROUPS_SOURCEPATH="crm/dental-groups/",
        PRODUCT_CATALOG_SOURCEPATH=None,
        DENTAL_PRACTICES_SOURCEPATH=None,
        LAB_PRODUCT_MAPPING_SOURCEPATH=None,
        LAB_PRACTICE_MAPPING_SOURCEPATH=None,
        PRODUCT_LAB_MARKUP_SOURCEPATH=None,
        PRODUCT_LAB_REV_SHARE_SOURCEPATH=None,
        DELETE_SOURCE_AFTER_PROCESSING=True,
        BATCH_SIZE=100,
        S3_BUCKET="test-bucket",
    )


@pytest.fixture
def registry() -> PipelineRegistry:
    return PipelineRegistry(PIPELINES)


@pytest.fixture
def shutdown() -> ShutdownFlag:
    return ShutdownFlag()


@pytest.fixture
def orchestrator(storage, engine, registry, test_settings, shutdown) -> Orchestrator:
    return Orchestrator(
        storage=storage,
        engine=engine,
        registry=registry,
        config=test_settings,
        shutdown=shutdown,
        logger_factory=quiet_logger,
    )


ORDERS_HEADER = "CaseId,ProductId,Quantity,SubmissionDate,CaseDate,CustomerId"


@pytest.fixture
def orders_csv() -> str:
    return (
        f"{ORDERS_HEADER}\n"
        "1,P1,3,2024-01-01,2024-01-01,C1\n"
        ",P2,1,2024-01-02,2024-01-02,C2\n"
    )


@pytest.fixture
def orders_rows() -> List[Dict[str, str]]:
    return [
        {"CaseId": "1", "ProductId": "P1", "Quantity": "3", "SubmissionDate": "2024-01-01",
         "CaseDate": "2024-01-01", "CustomerId": "C1"},
        {"CaseId": "", "ProductId": "P2", "Quantity": "1", "SubmissionDate": "2024-01-02",
         "CaseDate": "2024-01-02", "CustomerId": "C2"},
    ]
