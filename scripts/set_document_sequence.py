import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
import json

from sync_guesty.db.engine import engine
from sync_guesty.logging_config import setup_logging
from sync_guesty.services.documents import get_sequence_info, set_sequence

setup_logging()


def main() -> None:
    """
    Show or correct the shared quote/invoice sequence for a year.

    Examples:
        python scripts/set_document_sequence.py 2025            # show
        python scripts/set_document_sequence.py 2025 --value 41 # next number is 42
    """
    parser = argparse.ArgumentParser(description="Show or set the document sequence")
    parser.add_argument("year", type=int)
    parser.add_argument("--value", type=int, help="Last issued number to store")
    args = parser.parse_args()

    if args.value is not None:
        set_sequence(engine, args.year, args.value)

    print(json.dumps(get_sequence_info(engine, args.year), indent=2))


if __name__ == "__main__":
    main()
