import argparse
import logging
import sys
from typing import List, Optional

from pydantic import ValidationError

from config import LOG_LEVELS, get_settings
from engine import AccountEngine
from errors import RejectedTransaction
from policy import policy_for
from reader import read_transactions
from report import write_accounts

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tx-engine",
        description="Apply a CSV stream of transactions and print the final client accounts.",
    )
    parser.add_argument("input", help="CSV file with type, client, tx, amount columns")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--strict", dest="strict", action="store_true", default=None,
                      help="abort on the first rejected record")
    mode.add_argument("--lenient", dest="strict", action="store_false",
                      help="skip noisy dispute records and keep going")
    parser.add_argument("--log-level", default=None, type=str.upper, choices=LOG_LEVELS,
                        help="logging level (default from TX_ENGINE_LOG_LEVEL)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"Invalid TX_ENGINE_ configuration: {e}", file=sys.stderr)
        return 2

    strict = settings.strict if args.strict is None else args.strict
    logging.basicConfig(
        level=args.log_level or settings.log_level,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    policy = policy_for(strict)
    try:
        engine = AccountEngine.from_transaction_iter(read_transactions(args.input), policy)
    except RejectedTransaction as e:
        logger.error(f"Aborting ({policy.name} mode): {e}")
        return 1
    except (OSError, ValueError) as e:
        logger.error(f"Cannot read {args.input}: {e}")
        return 1

    logger.info(f"Processed: {engine.stats.processed}, Skipped: {engine.stats.skipped}")
    write_accounts(engine.accounts(), sys.stdout, settings.output_precision)
    return 0


if __name__ == "__main__":
    sys.exit(main())
