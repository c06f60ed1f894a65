"""
CLI running the sale actions worker.

Usage:
    sale-actions [config.yaml]

Builds the store gateway, mailing client and pipelines once, then runs the
scheduler loop until SIGINT/SIGTERM. The signal takes effect after the pass
in progress.
"""

import argparse
import logging
import signal
import sys

from psycopg import Error as PsycopgError

from sale_actions.config import ConfigError, Settings, load_config
from sale_actions.notify.client import NotificationClient
from sale_actions.observability.alerts import WatchtowerHandler
from sale_actions.observability.logger import get_logger, setup_logger
from sale_actions.observability.metrics import MetricsCollector, start_metrics_server
from sale_actions.processing import (
    DEFINITIONS,
    Dispatcher,
    Pipeline,
    Scheduler,
    StoreUnavailableError,
)
from sale_actions.store.connection import DatabaseConnectionPool
from sale_actions.store.gateway import StoreGateway
from sale_actions.store.memory import InMemoryStoreGateway
from sale_actions.store.postgres import PostgresStoreGateway

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"


def configure_logging(settings: Settings) -> logging.Logger:
    """Set up the ``sale_actions`` logger, forwarding alerts when enabled."""
    extra_handlers: list[logging.Handler] = []
    watchtower = settings.watchtower
    if watchtower.enabled:
        extra_handlers.append(
            WatchtowerHandler(
                endpoint=watchtower.endpoint,
                app_id=watchtower.app_id,
                token=watchtower.token,
                types=watchtower.types,
            )
        )
    return setup_logger(
        level=settings.logging.level,
        format_type=settings.logging.format,
        extra_handlers=extra_handlers,
    )


def build_store(settings: Settings) -> StoreGateway:
    """
    Build the store gateway selected by ``store.backend``.

    Raises:
        StoreUnavailableError: If the connection pool cannot be opened
    """
    if settings.store.backend == "memory":
        logger.warning("Using the in-memory store: nothing is persisted across restarts")
        return InMemoryStoreGateway()

    database = settings.database
    try:
        pool = DatabaseConnectionPool(
            host=database.host,
            port=database.port,
            database=database.name,
            user=database.user,
            password=database.password or None,
            conninfo=database.connection_string,
        )
        pool.open()
    except (PsycopgError, ValueError) as e:
        raise StoreUnavailableError(f"Could not open the database pool: {e}") from e
    return PostgresStoreGateway(pool, join_strategy=database.join_strategy)


def build_pipelines(
    settings: Settings, store: StoreGateway, client: NotificationClient
) -> list[Pipeline]:
    """Build the configured pipelines, all sharing one store and one client."""
    pipelines = []
    for name in settings.general.pipelines:
        definition = DEFINITIONS[name]
        metrics = MetricsCollector(name)
        dispatcher = Dispatcher(
            client=client,
            definition=definition,
            managed_group_id=settings.email.ar_group_id,
            batch_requests=settings.email.batch_requests,
            metrics=metrics,
        )
        pipelines.append(
            Pipeline(
                definition=definition,
                store=store,
                dispatcher=dispatcher,
                batch_size=settings.email.batch_size,
                metrics=metrics,
            )
        )
    return pipelines


def run(settings: Settings, max_passes: int | None = None) -> int:
    """
    Run the scheduler loop with the given settings.

    Returns:
        Exit code (0 for a clean stop, 1 when the store is unavailable)
    """
    try:
        store = build_store(settings)
    except StoreUnavailableError as e:
        logger.critical(str(e))
        return 1

    client = NotificationClient(
        base_url=settings.email.base_url,
        api_key=settings.email.api_key,
        timeout=settings.email.timeout_seconds,
    )
    scheduler = Scheduler(
        store=store,
        pipelines=build_pipelines(settings, store, client),
        interval_seconds=settings.general.check_delay,
    )

    def signal_handler(signum, frame):  # type: ignore[no-untyped-def]
        signal_name = signal.Signals(signum).name
        logger.info(f"Received {signal_name} signal, stopping after the current pass...")
        scheduler.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    if settings.general.metrics_port:
        start_metrics_server(settings.general.metrics_port)
        logger.info(f"Metrics exposed on port {settings.general.metrics_port}")

    try:
        scheduler.run_forever(max_passes=max_passes)
        return 0
    except StoreUnavailableError:
        return 1
    finally:
        client.close()
        store.close()


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the worker CLI."""
    parser = argparse.ArgumentParser(
        description="Notify the mailing service about purchases and auto-renewal changes",
    )
    parser.add_argument(
        "config",
        nargs="?",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to the YAML configuration file (default: {DEFAULT_CONFIG_PATH})",
    )
    args = parser.parse_args(argv)

    try:
        settings = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    configure_logging(settings)
    return run(settings)


if __name__ == "__main__":
    sys.exit(main())
