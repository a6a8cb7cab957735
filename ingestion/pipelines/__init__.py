"""
Registered pipelines.

Adding a pipeline means writing its ``PipelineDefinition`` and appending
it to ``PIPELINES``. Order here is the order ``run all`` processes them.
"""

from ingestion.pipelines.base import PipelineDefinition, conflict_ignore_insert
from ingestion.pipelines.orders import ORDERS
from ingestion.pipelines.practices import DENTAL_GROUPS, DENTAL_PRACTICES
from ingestion.pipelines.products import (
    LAB_PRACTICE_MAPPING,
    LAB_PRODUCT_MAPPING,
    PRODUCT_CATALOG,
    PRODUCT_LAB_MARKUP,
    PRODUCT_LAB_REV_SHARE,
)

PIPELINES = (
    ORDERS,
    PRODUCT_CATALOG,
    DENTAL_GROUPS,
    DENTAL_PRACTICES,
    LAB_PRODUCT_MAPPING,
    LAB_PRACTICE_MAPPING,
    PRODUCT_LAB_MARKUP,
    PRODUCT_LAB_REV_SHARE,
)

__all__ = [
    "PipelineDefinition",
    "conflict_ignore_insert",
    "PIPELINES",
]
