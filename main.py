from __future__ import annotations

import uvicorn

from tradejournal.utils.config import get_settings
from tradejournal.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def main() -> None:
    settings = get_settings()
    setup_logging(settings)
    logger.info("server_starting", host=settings.host, port=settings.port, db_path=settings.db_path)

    uvicorn.run(
        "tradejournal.api.webapp:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
