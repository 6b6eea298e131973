import asyncio
import logging

from sqlalchemy.ext.asyncio import create_async_engine

from app.config import DATABASE_URL
from app.database import Base
import app.models  # noqa: F401 - register research tables with Base.metadata

logger = logging.getLogger(__name__)


async def init_db(*, seed: bool = True):
    """Create the research tables and, optionally, seed the organization table."""
    engine = create_async_engine(DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    logger.info("Database tables created")

    if seed:
        from app.crawler.orchestrator import build_orchestrator
        orchestrator = build_orchestrator()
        try:
            created = await orchestrator.initialize_organizations()
        finally:
            await orchestrator.close()
        logger.info("Seeded organizations (%s new)", created)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    asyncio.run(init_db())
