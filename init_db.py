"""Initialize the database schema.

Creates every table for the question bank, blog, material index and user
tracking. Run this before starting the API server. Pass ``--drop`` to
rebuild from an empty schema.
"""

import argparse
import asyncio
import logging
import sys

from sqlalchemy import text

from be.config import settings
from be.db import engine
from be.logging_config import setup_logging
from be.models import Base

logger = logging.getLogger(__name__)


async def init_database(drop: bool = False) -> None:
    """Create all database tables."""
    logger.info(f"Initializing database: {settings.db.url.split('@')[-1]}")

    async with engine.begin() as conn:
        if engine.dialect.name == "postgresql":
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
            logger.info("Enabled pgvector extension")

        if drop:
            await conn.run_sync(Base.metadata.drop_all)
            logger.info("Dropped existing tables")

        await conn.run_sync(Base.metadata.create_all)

    logger.info(f"Tables ready: {', '.join(Base.metadata.tables.keys())}")
    await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--drop", action="store_true", help="drop existing tables first")
    args = parser.parse_args()

    setup_logging(fmt="text")
    try:
        asyncio.run(init_database(drop=args.drop))
    except Exception as e:
        logger.error(f"Error initializing database: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
