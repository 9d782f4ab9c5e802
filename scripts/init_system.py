"""
System initialization for the Homezy lifecycle backend.

- Verifies the database connection
- Creates any missing tables from the ORM models
- Reports which lifecycle tables exist

Idempotent and safe to run multiple times.
"""

import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy import inspect, text

from database.connection import get_async_session, get_engine
from database.models import Base
from shared.logging_config import configure_logging

logger = logging.getLogger(__name__)

CRITICAL_TABLES = [
    "users",
    "properties",
    "service_history",
    "service_reminders",
    "service_reminder_sends",
    "leads",
    "notifications",
]


async def check_database_connection() -> bool:
    try:
        logger.info("Checking database connection...")
        async with get_async_session() as session:
            await session.execute(text("SELECT 1"))
        logger.info("Database connection successful")
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False


async def create_tables() -> None:
    logger.info("Creating missing tables...")
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def check_tables_exist() -> dict[str, bool]:
    async with get_engine().connect() as conn:
        existing = set(await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names()))

    table_status = {table: table in existing for table in CRITICAL_TABLES}
    for table, exists in table_status.items():
        logger.info(f"  Table '{table}': {'exists' if exists else 'missing'}")
    return table_status


async def main() -> int:
    configure_logging("homezy-init")
    logger.info("Initializing Homezy lifecycle backend")

    if not await check_database_connection():
        return 1

    await create_tables()
    table_status = await check_tables_exist()

    missing = [table for table, exists in table_status.items() if not exists]
    if missing:
        logger.error(f"Missing tables after initialization: {', '.join(missing)}")
        return 1

    logger.info("System initialization complete")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
