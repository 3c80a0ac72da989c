"""Index the CFA training PDFs for retrieval.

Walks the materials root (``MATERIALS_ROOT``), one folder per curriculum
topic, and replaces each file's chunks in the material index.
"""

import argparse
import asyncio
import logging
import sys

from be.config import settings
from be.db import AsyncSessionMaker, engine
from be.logging_config import setup_logging
from be.pipelines.ingest import IngestSummary, ingest_materials

logger = logging.getLogger(__name__)


async def run(root: str, topic_ids: list[str] | None) -> IngestSummary:
    try:
        async with AsyncSessionMaker() as session:
            return await ingest_materials(session, root, topic_ids)
    finally:
        await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Index CFA training material PDFs")
    parser.add_argument("--root", default=settings.materials.root, help="materials directory")
    parser.add_argument(
        "--topic",
        action="append",
        dest="topics",
        help="curriculum topic id to ingest; repeat for several (default: all)",
    )
    args = parser.parse_args()

    setup_logging(fmt="text")
    summary = asyncio.run(run(args.root, args.topics))

    logger.info(f"Processed {summary.files_processed} files into {summary.chunks_stored} chunks")
    if summary.failed_files:
        logger.error(f"Failed files: {', '.join(summary.failed_files)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
