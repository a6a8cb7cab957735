"""
Product catalog, lab mapping, markup and revenue share pipelines
"""

from typing import Any, Dict

from ingestion.pipelines.base import MappedRecord, PipelineDefinition, conflict_ignore_insert
from ingestion.transformers.values import clean_str, parse_bool, parse_float, parse_int
from models.products import (
    LabPracticeMapping,
    LabProductMapping,
    ProductCatalog,
    ProductLabMarkup,
    ProductLabRevShare,
)


def map_product_catalog(row: Dict[str, Any]) -> MappedRecord:
    return {
        "incisive_id": parse_int(row.get("incisiveid")),
        "incisive_name": clean_str(row.get("incisivename")),
        "category": clean_str(row.get("category")),
        "sub_category": clean_str(row.get("subcategory")),
    }


def map_lab_product(row: Dict[str, Any]) -> MappedRecord:
    return {
        "lab_id": parse_int(row.get("labid")),
        "lab_product_id": clean_str(row.get("labproductid")),
        "incisive_product_id": parse_int(row.get("incisiveproductid")),
    }


def map_lab_practice(row: Dict[str, Any]) -> MappedRecord:
    return {
        "lab_id": parse_int(row.get("labid")),
        "practice_id": parse_int(row.get("practiceid")),
        "lab_practice_id": clean_str(row.get("labpracticeid")),
    }


def map_product_lab_markup(row: Dict[str, Any]) -> MappedRecord:
    return {
        "lab_id": parse_int(row.get("labid")),
        "lab_product_id": clean_str(row.get("labproductid")),
        "incisive_product_id": parse_int(row.get("incisiveproductid")),
        "cost": parse_float(row.get("cost")),
        "standard_price": parse_float(row.get("standardprice")),
        "nf_price": parse_float(row.get("nfprice")),
        "commitment_eligible": parse_bool(row.get("commitmenteligible")),
    }


def map_product_lab_rev_share(row: Dict[str, Any]) -> MappedRecord:
    return {
        "lab_id": parse_int(row.get("labid")),
        "lab_product_id": clean_str(row.get("labproductid")),
        "incisive_product_id": parse_int(row.get("incisiveproductid")),
        "fee_schedule_name": clean_str(row.get("feeschedulename")),
        "revenue_share": parse_float(row.get("revenueshare")),
        "commitment_eligible": parse_bool(row.get("commitmenteligible")),
    }


PRODUCT_CATALOG = PipelineDefinition(
    name="product-catalog",
    table_name=ProductCatalog.__tablename__,
    required_fields=("incisive_id", "incisive_name", "category"),
    env_key="PRODUCT_CATALOG_SOURCEPATH",
    map_row=map_product_catalog,
    build_insert_statement=conflict_ignore_insert(ProductCatalog, ["incisive_id"]),
)

LAB_PRODUCT_MAPPING = PipelineDefinition(
    name="lab-product-mapping",
    table_name=LabProductMapping.__tablename__,
    required_fields=("lab_id", "lab_product_id", "incisive_product_id"),
    env_key="LAB_PRODUCT_MAPPING_SOURCEPATH",
    map_row=map_lab_product,
    build_insert_statement=conflict_ignore_insert(LabProductMapping, ["lab_id", "lab_product_id"]),
)

LAB_PRACTICE_MAPPING = PipelineDefinition(
    name="lab-practice-mapping",
    table_name=LabPracticeMapping.__tablename__,
    required_fields=("lab_id", "practice_id", "lab_practice_id"),
    env_key="LAB_PRACTICE_MAPPING_SOURCEPATH",
    map_row=map_lab_practice,
    build_insert_statement=conflict_ignore_insert(LabPracticeMapping, ["lab_id", "practice_id"]),
)

PRODUCT_LAB_MARKUP = PipelineDefinition(
    name="product-lab-markup",
    table_name=ProductLabMarkup.__tablename__,
    required_fields=("lab_id", "lab_product_id"),
    env_key="PRODUCT_LAB_MARKUP_SOURCEPATH",
    map_row=map_product_lab_markup,
    build_insert_statement=conflict_ignore_insert(ProductLabMarkup, ["lab_id", "lab_product_id"]),
)

PRODUCT_LAB_REV_SHARE = PipelineDefinition(
    name="product-lab-rev-share",
    table_name=ProductLabRevShare.__tablename__,
    required_fields=("lab_id", "lab_product_id", "fee_schedule_name"),
    env_key="PRODUCT_LAB_REV_SHARE_SOURCEPATH",
    map_row=map_product_lab_rev_share,
    build_insert_statement=conflict_ignore_insert(
        ProductLabRevShare, ["lab_id", "lab_product_id", "fee_schedule_name"]
    ),
)
