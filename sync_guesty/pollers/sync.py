"""
Command-line entry point: run one ETL pass and exit.

Usage:
    python -m sync_guesty.pollers.sync           # honour freshness windows
    python -m sync_guesty.pollers.sync --force   # refetch everything
"""

import argparse
import json
import sys

import structlog

from sync_guesty.db.engine import engine
from sync_guesty.logging_config import setup_logging
from sync_guesty.network.client import GuestyClient
from sync_guesty.services.sync import SyncMode, run_etl_job

# Setup logging
setup_logging()
logger = structlog.get_logger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(description="Run one Guesty ETL pass")
    parser.add_argument("--force", action="store_true", help="Bypass freshness checks")
    parser.add_argument(
        "--property",
        action="append",
        dest="properties",
        help="Listing id to sync (repeatable; default: configured properties)",
    )
    args = parser.parse_args()

    client = GuestyClient.from_config()
    result = run_etl_job(
        client, engine, SyncMode.from_force(args.force), property_ids=args.properties
    )

    print(json.dumps(result.to_dict(), indent=2, default=str))
    sys.exit(0 if result.success else 1)


if __name__ == "__main__":
    main()
