"""
Create any missing fee tables in the connected database.

Run once per environment (idempotent):
  python -m fee_engine.db.schema_check
"""

import asyncio
from typing import List

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine

import fee_engine.core.models  # noqa: F401  registers every table on Base.metadata
from fee_engine.db.session import Base, engine


async def ensure_tables(db_engine: AsyncEngine) -> List[str]:
    """Create tables missing from the database in dependency order. Returns the names created."""
    async with db_engine.begin() as conn:
        existing = set(await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names()))
        missing = [t.name for t in Base.metadata.sorted_tables if t.name not in existing]
        await conn.run_sync(Base.metadata.create_all)
    return missing


async def main() -> None:
    missing = await ensure_tables(engine)
    if missing:
        print("Created missing tables: " + ", ".join(missing))
    else:
        print("All fee tables already exist in the database.")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
