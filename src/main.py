"""Amiya memory service entry point."""

import asyncio
import logging

from src.config import settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


async def _serve() -> None:
    from src.api.server import ApiServer

    server = ApiServer()
    await server.start()
    try:
        await asyncio.Event().wait()
    finally:
        await server.stop()


def main() -> None:
    """Run the memory API until interrupted."""
    if settings.turso_database_url:
        logger.info("Using hosted database at %s", settings.turso_database_url)
    else:
        logger.info("Using local database at %s", settings.database_path)

    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    main()
