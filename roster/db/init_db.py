"""
Create all tables (tenants, users, courses, students, enrollments, course_schedules).

Run once against a fresh database:
  python -m roster.db.init_db
"""
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from roster.auth import models as auth_models  # noqa: F401  (registers users table)
from roster.core import models as core_models  # noqa: F401
from roster.db.session import Base, engine

logger = logging.getLogger(__name__)


async def create_schema(bind: AsyncEngine) -> None:
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Created tables: %s", ", ".join(sorted(Base.metadata.tables)))


async def main() -> None:
    logging.basicConfig(level=logging.INFO)
    await create_schema(engine)
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
