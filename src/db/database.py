"""
Database utility functions.

All dependency injection is handled by Dishka in src/ioc.
The Base class is defined in src/models/base.py.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from src.core.logging import get_logger

logger = get_logger(__name__)


async def check_db_connection(engine: AsyncEngine) -> bool:
    """
    Check if database connection is working.

    Args:
        engine: SQLAlchemy async engine

    Returns:
        True if connection successful, False otherwise
    """
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("database_connection_successful")
        return True
    except Exception as e:
        logger.error("database_connection_failed", error=str(e), error_type=type(e).__name__)
        return False
