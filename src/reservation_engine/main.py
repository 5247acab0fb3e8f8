"""
Main entry point for the reservation availability API.

Configures logging, connects to the database and serves the REST API.
"""
import sys

import uvicorn
from dotenv import load_dotenv
from loguru import logger

from .api import create_app
from .config import get_settings
from .error_handling import ConfigurationError, DatabaseError, configure_logging
from .models.database import create_tables, init_db_with_retry


def main() -> int:
    """
    Main entry point for the booking backend.
    """
    load_dotenv()
    try:
        settings = get_settings()
    except ConfigurationError as e:
        logger.error(f"Failed to load configuration: {e}")
        return 1

    configure_logging(
        log_level=settings.log_level,
        log_to_file=settings.log_to_file,
        log_dir=settings.log_dir,
    )

    logger.info("=" * 80)
    logger.info("Reservation Availability & Table Allocation API")
    logger.info("=" * 80)

    try:
        init_db_with_retry(settings.database_url)
        create_tables()
    except DatabaseError as e:
        logger.error(f"Failed to initialize database: {e}")
        logger.error("Please check DATABASE_URL and that the database is reachable")
        return 2

    try:
        uvicorn_level = settings.log_level.lower()
        if uvicorn_level not in {"critical", "error", "warning", "info", "debug", "trace"}:
            uvicorn_level = "info"
        uvicorn.run(create_app(), host="0.0.0.0", port=8000, log_level=uvicorn_level)
    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
        return 130
    finally:
        logger.info("Application shutting down...")
    return 0


if __name__ == "__main__":
    sys.exit(main())
