"""Run the API with uvicorn: ``python -m census_api``."""

import logging

import uvicorn

from census_api import main as app_main
from census_api.core import config

logger = logging.getLogger("census_api")


def main() -> None:
    settings = config.get_settings()
    app_main.configure_logging(settings)
    base = f"http://localhost:{settings.port}"
    logger.info("Departments: %s/api/departments", base)
    logger.info("Municipalities (example): %s/api/municipalities/05", base)
    logger.info("Clear cache: %s/api/cache", base)
    uvicorn.run(
        "census_api.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
