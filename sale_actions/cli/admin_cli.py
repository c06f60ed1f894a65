"""
Admin CLI for operating the sale actions worker.

Usage:
    sale-actions-admin init-schema [--config <path>]
    sale-actions-admin pending [--config <path>] [--pipeline purchases|renewals]
"""

import argparse
import json
import sys

from sale_actions.cli.run_cli import DEFAULT_CONFIG_PATH, build_store
from sale_actions.config import ConfigError, load_config
from sale_actions.observability.logger import get_logger
from sale_actions.processing import DEFINITIONS, Enricher, StoreUnavailableError
from sale_actions.store.gateway import StoreError, StoreGateway
from sale_actions.store.schema import COLLECTIONS

logger = get_logger(__name__)


def init_schema_command(store: StoreGateway, args: argparse.Namespace) -> int:
    """
    Create every collection table used by the pipelines.

    Args:
        store: Store gateway
        args: Command line arguments
    """
    names = list(COLLECTIONS)
    store.ensure_collections(names)
    print(json.dumps({"status": "ok", "collections": names}, indent=2))
    return 0


def pending_command(store: StoreGateway, args: argparse.Namespace) -> int:
    """
    List the keys the next pass would consider, without dispatching or marking.

    Args:
        store: Store gateway
        args: Command line arguments
    """
    names = [args.pipeline] if args.pipeline else list(DEFINITIONS)
    output = {}
    exit_code = 0
    for name in names:
        definition = DEFINITIONS[name]
        enricher = Enricher(store, definition)
        keys = [definition.key_for(record) for record in enricher.records()]
        output[name] = {
            "pending": keys,
            "count": len(keys),
            "decode_errors": enricher.decode_errors,
        }
        if enricher.aborted:
            output[name]["aborted"] = True
            exit_code = 1

    print(json.dumps(output, indent=2))
    return exit_code


COMMANDS = {
    "init-schema": init_schema_command,
    "pending": pending_command,
}


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the admin CLI."""
    parser = argparse.ArgumentParser(
        description="Operator commands for the sale actions worker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create the collection tables
  %(prog)s init-schema --config config.yaml

  # Show what the next renewals pass would pick up
  %(prog)s pending --pipeline renewals
        """,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    init_parser = subparsers.add_parser("init-schema", help="Create collection tables")
    init_parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to the YAML configuration file (default: {DEFAULT_CONFIG_PATH})",
    )

    pending_parser = subparsers.add_parser("pending", help="List records awaiting dispatch")
    pending_parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to the YAML configuration file (default: {DEFAULT_CONFIG_PATH})",
    )
    pending_parser.add_argument(
        "--pipeline",
        choices=sorted(DEFINITIONS),
        help="Restrict to one pipeline (default: all)",
    )

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        settings = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        store = build_store(settings)
    except StoreUnavailableError as e:
        logger.error(str(e))
        print(json.dumps({"status": "error", "error": str(e)}), file=sys.stderr)
        return 1

    try:
        return COMMANDS[args.command](store, args)
    except StoreError as e:
        logger.error(f"{args.command} failed: {e}", exc_info=True)
        print(json.dumps({"status": "error", "error": str(e)}), file=sys.stderr)
        return 1
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
