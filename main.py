"""Entrypoint for the ribeye CLI."""
from __future__ import annotations

import argparse
import json
import signal
import sys
import threading
from pathlib import Path

from dotenv import load_dotenv

from ribeye.bootstrap import initialize_database
from ribeye.config import get_settings
from ribeye.cook import CookOptions, cook, report_summary
from ribeye.errors import DiscoveryError, UnknownProcessorError
from ribeye.logs import init_logging


def _split(value: str | None) -> list[str] | None:
    if not value:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="RIB dump processing pipeline")
    parser.add_argument("--env", help="Path to an environment variables file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    cook_parser = subparsers.add_parser("cook", help="Process recent RIB dump files")
    cook_parser.add_argument("--days", type=int, default=1, help="Number of days to search back for")
    cook_parser.add_argument("--collectors", help="Comma-separated collector allow-list (e.g. rrc00,route-views2)")
    cook_parser.add_argument(
        "-p",
        "--processors",
        help="Comma-separated processors to run: peer-stats, pfx2as, as2rel, pfx2dist (default: all)",
    )
    cook_parser.add_argument("-t", "--threads", type=int, help="Number of worker threads")
    cook_parser.add_argument("-l", "--limit", type=int, help="Only process the smallest N RIB dump files")
    cook_parser.add_argument("-d", "--dir", help="Root output directory (overrides RESULTS_DIR)")
    cook_parser.add_argument("--partitions", type=int, default=1, help="Parallel partitions for daily merges")
    cook_parser.add_argument("--summarize-only", action="store_true", help="Only rebuild the latest daily results")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    if args.env and not load_dotenv(args.env, override=True):
        print(f"failed to load environment variables from {args.env}", file=sys.stderr)
        return 1

    settings = get_settings()
    if getattr(args, "dir", None):
        settings.results_dir = Path(args.dir)
        settings.ensure_directories()
    logger = init_logging(settings.log_level)

    # schema statements are idempotent
    initialize_database(settings)

    stop_event = threading.Event()

    def request_stop(signum, _frame) -> None:
        logger.warning("received signal %s, finishing in-flight files", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, request_stop)
    signal.signal(signal.SIGTERM, request_stop)

    options = CookOptions(
        days=args.days,
        collectors=_split(args.collectors),
        processors=_split(args.processors),
        threads=args.threads,
        limit=args.limit,
        summarize_only=args.summarize_only,
        partitions=args.partitions,
    )
    try:
        report = cook(options, settings, stop_event=stop_event)
    except UnknownProcessorError as exc:
        logger.error("%s", exc)
        return 2
    except DiscoveryError as exc:
        logger.error("discovery failed, nothing processed: %s", exc)
        return 1

    print(json.dumps(report_summary(report), indent=2))
    return 0 if report.status == "done" else 3


if __name__ == "__main__":
    sys.exit(main())
