"""
Stockwatch - application entry point.

Runs the HTTP API together with the catalog sync and rule evaluation jobs.
One-off runs:

    stockwatch -sync        sync the instrument catalog once
    stockwatch -evaluate    run one evaluation cycle, ignoring trading hours
"""

import asyncio
import sys

import uvicorn
from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from .config.logging import get_logger, setup_logging_from_settings
from .config.settings import get_settings
from .exceptions import StockWatchError
from .ormdb.database import create_tables
from .scheduler import (
    add_catalog_sync_job,
    add_rule_evaluation_job,
    list_scheduled_jobs,
    shutdown_scheduler,
    start_scheduler,
)


def initialize_application() -> None:
    """Initialize logging and the database schema."""
    settings = get_settings()
    setup_logging_from_settings(settings)
    create_tables()

    get_logger(__name__).info(
        "Application initialized",
        environment=settings.environment,
        debug=settings.debug,
        data_dir=settings.data_directory,
    )


async def _run_once(command: str) -> None:
    from .services.catalog import CatalogService
    from .services.monitor import PriceEvaluationJob, RuleEvaluationEngine
    from .services.notification import build_default_dispatcher

    if command == "-sync":
        result = await CatalogService().sync()
        print(f"Catalog sync: {result.to_dict()}")
    else:
        job = PriceEvaluationJob(
            engine=RuleEvaluationEngine(dispatcher=build_default_dispatcher())
        )
        result = await job.run(force=True)
        print(f"Evaluation: {result.summary() if result else 'no armed rules'}")


def main() -> None:
    """Main application entry point."""
    initialize_application()

    logger = get_logger(__name__)
    settings = get_settings()

    for command in ("-sync", "-evaluate"):
        if command in sys.argv:
            try:
                asyncio.run(_run_once(command))
            except StockWatchError as e:
                logger.error("One-off run failed", command=command, error=e.message)
                print(f"Error: {e.message}")
                sys.exit(1)
            return

    if not settings.endpoint_auth_token:
        logger.error("ENDPOINT_AUTH_TOKEN is not set")
        print("Please set ENDPOINT_AUTH_TOKEN before starting the API.")
        sys.exit(1)

    logger.info(
        "Starting production mode",
        host=settings.endpoint_host,
        port=settings.endpoint_port,
    )

    start_scheduler()
    add_catalog_sync_job()
    add_rule_evaluation_job()
    list_scheduled_jobs()

    try:
        uvicorn.run(
            "stockwatch.webapi.app:app",
            host=settings.endpoint_host,
            port=settings.endpoint_port,
            log_level=settings.log_level.lower(),
        )
    except KeyboardInterrupt:
        logger.info("Received interrupt signal")
    finally:
        logger.info("Shutting down scheduler")
        shutdown_scheduler()


if __name__ == "__main__":
    main()
