"""Run the server: ``python -m promptsmith_server``"""

import logging
import sys

import uvicorn

from .config import settings
from .core.database import get_engine, init_db, wait_for_db

logger = logging.getLogger(__name__)


def main() -> None:
    if settings.create_tables:
        engine = get_engine()
        if not wait_for_db(engine):
            logger.error("Database unavailable; not starting")
            sys.exit(1)
        init_db(engine)

    uvicorn.run(
        "promptsmith_server.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
