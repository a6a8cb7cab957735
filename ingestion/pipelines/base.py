"""
Pipeline definition: the declarative description of one ETL unit.

A pipeline is plain data plus functions. The engine needs nothing else:
it normalizes headers, calls ``map_row``, checks ``required_fields``,
executes ``build_insert_statement`` inside a savepoint and, once every
row is done, awaits ``post_process``.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Tuple, Type

from sqlalchemy.dialects.postgresql import Insert, insert
from sqlalchemy.ext.asyncio import AsyncSession

MappedRecord = Dict[str, Any]
RowMapper = Callable[[Dict[str, Any]], MappedRecord]
InsertBuilder = Callable[[MappedRecord, str], Insert]
PostProcess = Callable[[AsyncSession], Awaitable[None]]


@dataclass(frozen=True)
class PipelineDefinition:
    """
    Attributes:
        name: Registry name, also the per-pipeline logger name
        table_name: Target table
        required_fields: Mapped fields that must be present and non-empty
        env_key: Setting holding the pipeline's base source path
        map_row: Normalized record -> mapped record
        build_insert_statement: (mapped record, source object key) -> INSERT
        should_truncate: Empty the table inside the file transaction first
        post_process: Awaited once after all rows, inside the transaction
    """

    name: str
    table_name: str
    required_fields: Tuple[str, ...]
    env_key: str
    map_row: RowMapper
    build_insert_statement: InsertBuilder
    should_truncate: bool = False
    post_process: Optional[PostProcess] = None


def conflict_ignore_insert(model: Type[Any], index_elements: Sequence[str]) -> InsertBuilder:
    """
    Builder for ``INSERT ... ON CONFLICT (<index_elements>) DO NOTHING``.

    Rows already present under the conflict key are skipped silently, so
    reloading the same file leaves the table unchanged.
    """
    conflict_key = list(index_elements)

    def build(mapped: MappedRecord, source_key: str = "") -> Insert:
        return insert(model).values(**mapped).on_conflict_do_nothing(index_elements=conflict_key)

    return build
