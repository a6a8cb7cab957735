"""
Database engine and session management with SQLAlchemy async
"""

import logging
import ssl
from typing import Any, Dict, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def _ssl_context(config: Settings) -> Optional[ssl.SSLContext]:
    if not config.DB_SSL:
        return None

    context = ssl.create_default_context()
    if not config.DB_SSL_REJECT_UNAUTHORIZED:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def _connect_args(config: Settings) -> Dict[str, Any]:
    """asyncpg connect() arguments"""
    connect_args: Dict[str, Any] = {
        "timeout": config.DB_CONNECT_TIMEOUT / 1000,
        "server_settings": {"search_path": config.DB_SEARCH_PATH},
    }
    context = _ssl_context(config)
    if context is not None:
        connect_args["ssl"] = context
    return connect_args


def create_engine_from_settings(config: Optional[Settings] = None) -> AsyncEngine:
    """
    Create the process-wide engine.

    The pool is bounded by ``DB_POOL_MAX`` with no overflow. Waiting longer
    than ``DB_POOL_TIMEOUT`` for a free connection raises
    ``sqlalchemy.exc.TimeoutError``; connections idle past
    ``DB_IDLE_TIMEOUT`` are recycled.
    """
    config = config or default_settings

    engine = create_async_engine(
        config.database_url,
        echo=False,
        pool_size=config.DB_POOL_MAX,
        max_overflow=0,
        pool_timeout=config.DB_POOL_TIMEOUT,
        pool_recycle=max(1, config.DB_IDLE_TIMEOUT // 1000),
        pool_pre_ping=True,
        connect_args=_connect_args(config),
    )

    logger.info(
        f"Database pool initialized: host={config.DB_HOST} "
        f"database={config.DB_NAME} max_connections={config.DB_POOL_MAX}"
    )
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Create session factory; one session holds one pooled connection"""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def check_connection(engine: AsyncEngine) -> bool:
    """Run ``SELECT 1``; used at startup to fail fast"""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False
