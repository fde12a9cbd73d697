"""Command line entry point for testing a source."""

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

from dotenv import load_dotenv

from sourcekit.core.config import parse_overrides
from sourcekit.core.harness import print_outcome, run_harness
from sourcekit.utils.logging_config import get_logger, setup_logging
from sourcekit.utils.settings import HarnessSettings

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sourcekit-test",
        description="Run a source through start, refresh and stop and validate what it emits",
    )
    parser.add_argument(
        "--dir",
        default=".",
        help="Source directory containing manifest.yaml and src/index.py (default: .)",
    )
    parser.add_argument(
        "--config",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Config override; may be given more than once",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Harness log level (default: $LOG_LEVEL or WARNING)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    setup_logging(args.log_level)
    # Messages sources write through api.log are always shown
    logging.getLogger("sourcekit.source").setLevel(logging.DEBUG)

    overrides = parse_overrides(args.config)
    settings = HarnessSettings.from_env()

    outcome = asyncio.run(
        run_harness(
            args.dir,
            overrides,
            settings,
            on_start=lambda: print("Testing source...\n", flush=True),
        )
    )
    print_outcome(outcome)

    logger.debug(
        "Exiting",
        extra={"status": outcome.status.value, "exit_code": outcome.exit_code},
    )
    return outcome.exit_code


if __name__ == "__main__":
    sys.exit(main())
