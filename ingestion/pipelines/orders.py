"""
Orders pipeline.

Full refresh of ``orders_stage``: the table is truncated inside the file
transaction, every row is stamped with a content hash and its source
object key, and ``merge_orders_stage()`` folds the stage into the
permanent tables once all rows are in.
"""

import logging
from typing import Any, Dict

from sqlalchemy import text
from sqlalchemy.dialects.postgresql import Insert, insert
from sqlalchemy.ext.asyncio import AsyncSession

from ingestion.pipelines.base import MappedRecord, PipelineDefinition
from ingestion.transformers.values import clean_str, parse_date, parse_float, parse_int, row_hash
from models.orders import OrderStage

logger = logging.getLogger(__name__)

MERGE_PROCEDURE = "merge_orders_stage"

DATE_FIELDS = (
    "submissiondate",
    "shippingdate",
    "casedate",
    "estimatecompletedate",
    "requestedreturndate",
    "estimatedshipdate",
    "holddate",
)

TEXT_FIELDS = (
    "productid",
    "productdescription",
    "patientname",
    "customerid",
    "customername",
    "address",
    "phonenumber",
    "casestatus",
    "holdreason",
    "trackingnumber",
    "deliverystatus",
    "notes",
    "onhold",
    "shade",
    "mold",
    "doctorpreferences",
    "productpreferences",
    "comments",
)


def map_row(row: Dict[str, Any]) -> MappedRecord:
    mapped: MappedRecord = {}
    for field in DATE_FIELDS:
        mapped[field] = parse_date(row.get(field))
    for field in TEXT_FIELDS:
        mapped[field] = clean_str(row.get(field))

    mapped["caseid"] = parse_int(row.get("caseid"))
    mapped["quantity"] = parse_int(row.get("quantity"))
    mapped["productprice"] = parse_float(row.get("productprice"))
    mapped["casetotal"] = parse_float(row.get("casetotal"))
    return mapped


def build_insert_statement(mapped: MappedRecord, source_key: str = "") -> Insert:
    return insert(OrderStage).values(
        **mapped,
        source_file_key=source_key or None,
        row_hash=row_hash(mapped),
    )


async def merge_orders_stage(session: AsyncSession) -> None:
    logger.info(f"Calling {MERGE_PROCEDURE}() stored procedure")
    await session.execute(text(f"CALL {MERGE_PROCEDURE}()"))
    logger.info("Stored procedure executed successfully")


ORDERS = PipelineDefinition(
    name="orders",
    table_name=OrderStage.__tablename__,
    required_fields=("submissiondate", "casedate", "caseid", "productid", "quantity", "customerid"),
    env_key="SOURCEPATH",
    map_row=map_row,
    build_insert_statement=build_insert_statement,
    should_truncate=True,
    post_process=merge_orders_stage,
)
