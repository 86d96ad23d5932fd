import logging

import uvicorn

from .config import settings, configure_logging
from .main import app

logger = logging.getLogger("firmware_registry")


def main() -> None:
    configure_logging(settings.log_level)
    logger.info("OTA update server running on port %d", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
