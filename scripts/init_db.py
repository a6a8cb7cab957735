"""
Create the ETL target tables in the configured database.

The ``merge_orders_stage()`` procedure is owned by the warehouse schema
and is not created here.
"""

import asyncio
import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from core.config import settings
from core.database import create_engine_from_settings
from core.logging import setup_logging
from models.base import Base
import models  # noqa: F401  registers every table on Base.metadata

logger = logging.getLogger(__name__)


async def init_database(engine: Optional[AsyncEngine] = None, schema: Optional[str] = None):
    owns_engine = engine is None
    engine = engine or create_engine_from_settings()
    schema = schema or settings.DB_SEARCH_PATH.split(",")[0].strip()

    try:
        async with engine.begin() as conn:
            if schema and schema != "public":
                logger.info(f"Ensuring schema {schema} exists")
                await conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{schema}"'))
            logger.info("Creating tables...")
            await conn.run_sync(Base.metadata.create_all)
            logger.info(f"Tables created successfully: {', '.join(sorted(Base.metadata.tables))}")
    finally:
        if owns_engine:
            await engine.dispose()


def main() -> None:
    setup_logging(log_to_files=False)
    asyncio.run(init_database())


if __name__ == "__main__":
    main()
