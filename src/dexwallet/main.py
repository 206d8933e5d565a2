"""Main entry point - runs the API server."""

import logging

import uvicorn

from dexwallet.api.app import create_app
from dexwallet.config import get_settings

logger = logging.getLogger(__name__)


def configure_logging(level: str, debug: bool = False) -> None:
    log_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # httpx logs full request URLs at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def main():
    """Run the API server."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.debug)

    logger.info("Starting dexwallet...")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Config: {settings.get_safe_dict()}")

    app = create_app(settings)
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
