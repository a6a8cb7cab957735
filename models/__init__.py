"""
SQLAlchemy ORM models for the ETL target tables.

Models:
    base: Base declarative class
    orders: Orders staging table (truncate-and-load, merged by procedure)
    practices: Dental groups and dental practices
    products: Product catalog, lab mappings, markup and revenue share

Database Schema:
    All tables live in the ``etl`` schema and are reached through the
    connection search_path. Pipelines build their INSERT statements from
    these models, so column names here are the contract between a
    pipeline's ``map_row`` output and the database.

Usage:
    from models import DentalGroup, OrderStage
    from sqlalchemy.dialects.postgresql import insert

    stmt = insert(DentalGroup).values(dental_group_id=1, name="Smile Group")
    stmt = stmt.on_conflict_do_nothing(index_elements=["dental_group_id"])
"""

from models.base import Base
from models.orders import OrderStage
from models.practices import DentalGroup, DentalPractice
from models.products import (
    ProductCatalog,
    LabProductMapping,
    LabPracticeMapping,
    ProductLabMarkup,
    ProductLabRevShare,
)

__all__ = [
    "Base",
    "OrderStage",
    "DentalGroup",
    "DentalPractice",
    "ProductCatalog",
    "LabProductMapping",
    "LabPracticeMapping",
    "ProductLabMarkup",
    "ProductLabRevShare",
]
