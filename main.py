"""Main entry point for running the FastAPI application with auto-reload."""
import logging

import uvicorn

from be.config import settings
from be.logging_config import setup_logging

logger = logging.getLogger(__name__)

if __name__ == "__main__":
    setup_logging()
    logger.info(f"Starting {settings.app_name} v{settings.version}")
    logger.info(f"Debug mode: {settings.debug}")
    logger.info(f"Database: {settings.db.url.split('@')[-1] if '@' in settings.db.url else 'SQLite'}")
    logger.info(f"Auto-reload: {'Enabled' if settings.debug else 'Disabled'}")

    uvicorn.run(
        "be.api:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        reload_dirs=["be", "ai", "config"] if settings.debug else None,
        reload_includes=["*.py"] if settings.debug else None,
        log_level=settings.logging.level.lower(),
    )
