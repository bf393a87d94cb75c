"""
Run the Tours API with uvicorn.

    python -m tours_api.server

uvicorn handles SIGINT / SIGTERM: it stops accepting connections, waits for
in-flight requests and then runs the app's shutdown (closing MongoDB).
"""

import logging
import sys

import uvicorn

from tours_api.config import settings

logger = logging.getLogger(__name__)


def main() -> None:
    """Start the server; exit with status 1 if the app never comes up."""
    logger.info(f"Starting Tours API ({settings.ENVIRONMENT}) on port {settings.PORT}")
    try:
        settings.validate()
        config = uvicorn.Config(
            "tours_api.main:app",
            host="0.0.0.0",
            port=settings.PORT,
            log_level=settings.LOG_LEVEL.lower(),
        )
        server = uvicorn.Server(config)
        server.run()
    except Exception as e:
        logger.critical(f"Server failed to start: {e}", exc_info=True)
        sys.exit(1)

    if not server.started:
        logger.critical("Server failed to start, shutting down")
        sys.exit(1)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    main()
