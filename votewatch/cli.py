"""Command-line entry point for the vote watcher."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from typing import Iterable, List, Sequence, TextIO

from .config import DEFAULT_VOTE_URL, FetchConfig
from .coordinator import FetchCoordinator
from .errors import FetchError
from .models import ExtractionResult

logger = logging.getLogger("votewatch.cli")


def _ensure_command_prefix(argv: Sequence[str], commands: Iterable[str]) -> Sequence[str]:
    if not argv:
        return argv
    first = argv[0]
    if first in commands or first.startswith("-"):
        return argv
    return ("fetch", *argv)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--timeout",
        type=float,
        default=15.0,
        help="Seconds allowed for load, settle and extraction of one page",
    )
    parser.add_argument(
        "--settle",
        type=float,
        default=3.0,
        help="Seconds to wait after the load event before reading the page",
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the Chromium window instead of running headless",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Render a vote page with Playwright and report cooldown, monthly votes and ranking.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    fetch_parser = subparsers.add_parser("fetch", help="Fetch one or more pages once")
    fetch_parser.add_argument("urls", nargs="+", help="One or more vote page URLs")
    _add_common_arguments(fetch_parser)

    watch_parser = subparsers.add_parser("watch", help="Poll a page on an interval")
    watch_parser.add_argument("url", nargs="?", default=DEFAULT_VOTE_URL, help="Vote page URL")
    watch_parser.add_argument(
        "--interval",
        type=float,
        default=60.0,
        help="Seconds between fetches",
    )
    watch_parser.add_argument(
        "--count",
        type=int,
        default=0,
        help="Stop after this many fetches (0 polls forever)",
    )
    _add_common_arguments(watch_parser)

    argv = list(sys.argv[1:] if argv is None else argv)
    argv = list(_ensure_command_prefix(argv, subparsers.choices.keys()))
    return parser.parse_args(argv)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,
    )


def _build_config(args: argparse.Namespace) -> FetchConfig:
    return FetchConfig(
        load_timeout=args.timeout,
        settle_delay=args.settle,
        headless=not args.headed,
    )


def write_outcome(url: str, outcome: ExtractionResult | BaseException, stream: TextIO) -> bool:
    """Write one JSON line for ``outcome``; return True when it was a success."""
    if isinstance(outcome, ExtractionResult):
        stream.write(outcome.to_json() + "\n")
        return True
    payload = {
        "success": False,
        "url": url,
        "error": type(outcome).__name__,
        "message": str(outcome),
    }
    stream.write(json.dumps(payload, ensure_ascii=False) + "\n")
    return False


async def fetch_all(urls: List[str], config: FetchConfig) -> List[ExtractionResult | BaseException]:
    """Submit every URL at once; the coordinator runs them one after another."""
    async with FetchCoordinator(config) as coordinator:
        return await asyncio.gather(
            *(coordinator.submit(url) for url in urls),
            return_exceptions=True,
        )


async def watch(url: str, config: FetchConfig, interval: float, count: int, stream: TextIO) -> int:
    failures = 0
    async with FetchCoordinator(config) as coordinator:
        iteration = 0
        while not count or iteration < count:
            iteration += 1
            try:
                outcome: ExtractionResult | BaseException = await coordinator.submit(url)
            except FetchError as exc:
                outcome = exc
            if not write_outcome(url, outcome, stream):
                failures += 1
            stream.flush()
            if count and iteration >= count:
                break
            await asyncio.sleep(interval)
    return failures


def _run_fetch(args: argparse.Namespace) -> int:
    config = _build_config(args)
    overall_start = time.perf_counter()
    outcomes = asyncio.run(fetch_all(args.urls, config))
    total_elapsed = time.perf_counter() - overall_start

    successes = sum(write_outcome(url, outcome, sys.stdout) for url, outcome in zip(args.urls, outcomes))
    sys.stdout.flush()
    total_urls = len(args.urls)
    logger.info(
        "Finished in %.2fs (%d/%d succeeded, %d failed)",
        total_elapsed,
        successes,
        total_urls,
        total_urls - successes,
    )
    return 0 if successes == total_urls else 1


def _run_watch(args: argparse.Namespace) -> int:
    config = _build_config(args)
    try:
        failures = asyncio.run(watch(args.url, config, args.interval, args.count, sys.stdout))
    except KeyboardInterrupt:
        logger.info("Stopped watching %s", args.url)
        return 0
    return 1 if failures else 0


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    _configure_logging(args.verbose)
    if args.command == "fetch":
        status = _run_fetch(args)
    else:
        status = _run_watch(args)
    sys.exit(status)


if __name__ == "__main__":
    main()
