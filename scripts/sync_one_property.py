import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
import json

import structlog

from sync_guesty.db.engine import engine
from sync_guesty.logging_config import setup_logging
from sync_guesty.network.client import GuestyClient
from sync_guesty.services.sync import SyncMode, sync_property

setup_logging()
logger = structlog.get_logger(__name__)


def main() -> None:
    """
    Sync a single Guesty listing (listing, availability, reservations) in FORCE mode.
    """
    parser = argparse.ArgumentParser(description="Force-sync one Guesty property")
    parser.add_argument("listing_id", help="Guesty listing id")
    parser.add_argument("--normal", action="store_true", help="Honour freshness windows")
    args = parser.parse_args()

    mode = SyncMode.NORMAL if args.normal else SyncMode.FORCE
    logger.info("single_property_sync_started", listing_id=args.listing_id, mode=mode.value)

    client = GuestyClient.from_config()
    result = sync_property(client, engine, args.listing_id, mode)

    print(json.dumps(result.to_dict(), indent=2, default=str))
    if not result.success:
        sys.exit(1)


if __name__ == "__main__":
    main()
