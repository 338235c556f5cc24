"""Command-line interface for the JEP crawler."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import shutil
import signal
import sys
import time
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .cli_config import load_config


def _load_config() -> None:
    load_config(
        cwd=Path.cwd(),
        load_env=load_dotenv,
        copy_file=shutil.copy,
    )


_load_config()

from .config import (
    DEFAULT_PROFILE,
    CrawlProfile,
    fetch_settings_from_env,
    list_profiles,
    load_profile,
    load_profile_file,
)
from .crawl import crawl_async
from .document import CrawlResult
from .errors import CrawlError

DEFAULT_OUTPUT = "jep-documentation.json"


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="jepcrawl",
        description="Crawl a JEP listing page and extract document sections to JSON.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  # Crawl the default profile into jep-documentation.json
  jepcrawl

  # Pick a profile and output file
  jepcrawl --profile jdk-17-21 -o jeps-17-21.json

  # Use a profile definition from disk
  jepcrawl --profile-file ./my-profile.json

  # Flat-text sections, capped at 1000 characters each
  jepcrawl --strategy flat --max-section-chars 1000

  # Keep the listing HTML for inspection if no links are found
  jepcrawl --profile jdk-11-17 --debug-listing debug-11-17.html

  # Stop starting new documents after 60 seconds (partial output is kept)
  jepcrawl --deadline 60

  # Show the built-in profiles
  jepcrawl --list-profiles
""",
    )

    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--profile",
        type=str,
        default=None,
        help=f"Built-in profile name (default: {DEFAULT_PROFILE})",
    )
    source.add_argument(
        "--profile-file",
        type=str,
        default=None,
        help="Path to a profile JSON file",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        help=f"Output JSON file (default: $JEPCRAWL_OUTPUT or {DEFAULT_OUTPUT})",
    )
    parser.add_argument(
        "--strategy",
        type=str,
        choices=["structured", "flat"],
        default=None,
        help="Override the profile's section extraction strategy",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=None,
        help="Seconds between document fetches (default: profile or $JEPCRAWL_DELAY)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Request timeout in seconds (default: profile or $JEPCRAWL_TIMEOUT)",
    )
    parser.add_argument(
        "--max-section-chars",
        type=int,
        default=None,
        help="Truncate every section to this many characters",
    )
    parser.add_argument(
        "--max-documents",
        type=int,
        default=None,
        help="Process at most this many documents",
    )
    parser.add_argument(
        "--deadline",
        type=float,
        default=None,
        help="Seconds after which no new document fetch is started",
    )
    parser.add_argument(
        "--debug-listing",
        type=str,
        default=None,
        metavar="PATH",
        help="Save the listing HTML here when it yields no document links",
    )
    parser.add_argument(
        "--render",
        action="store_true",
        help="Load pages in a headless browser instead of plain HTTP",
    )
    parser.add_argument(
        "--list-profiles",
        action="store_true",
        help="List built-in profiles and exit",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    return parser.parse_args(argv)


def _resolve_profile(args: argparse.Namespace) -> CrawlProfile:
    """Load the selected profile and apply CLI/environment overrides."""
    if args.profile_file:
        profile = load_profile_file(args.profile_file)
    else:
        profile = load_profile(args.profile or DEFAULT_PROFILE)

    profile.fetch = fetch_settings_from_env(profile.fetch)
    if args.timeout is not None:
        profile.fetch.timeout_seconds = args.timeout

    if args.delay is not None:
        profile.delay_seconds = max(0.0, args.delay)
    elif os.getenv("JEPCRAWL_DELAY"):
        try:
            profile.delay_seconds = max(0.0, float(os.environ["JEPCRAWL_DELAY"]))
        except ValueError:
            logging.warning(
                "Ignoring invalid JEPCRAWL_DELAY '%s'", os.environ["JEPCRAWL_DELAY"]
            )

    if args.strategy:
        profile.section_strategy = args.strategy
    if args.max_section_chars is not None:
        profile.max_section_chars = args.max_section_chars or None
    if args.render:
        profile.render = True
    return profile


def _print_profiles() -> None:
    print("Built-in profiles:")
    for name in list_profiles():
        profile = load_profile(name)
        print(f"  {name:<12} {profile.description}")


async def _run_crawl_async(args: argparse.Namespace, profile: CrawlProfile) -> CrawlResult:
    """Run the crawl; SIGINT stops before the next document and keeps output."""
    output = args.output or os.getenv("JEPCRAWL_OUTPUT") or DEFAULT_OUTPUT
    deadline = time.monotonic() + args.deadline if args.deadline else None
    cancel_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        handler_installed = False

    logging.info(
        "Starting crawl: profile=%s strategy=%s output=%s",
        profile.name,
        profile.section_strategy,
        output,
    )
    try:
        return await crawl_async(
            profile,
            output=output,
            cancel_event=cancel_event,
            deadline=deadline,
            max_documents=args.max_documents,
            debug_listing=args.debug_listing,
        )
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for the jepcrawl command."""
    args = _parse_args(argv)
    _setup_logging(args.verbose)

    if args.list_profiles:
        _print_profiles()
        return 0

    try:
        profile = _resolve_profile(args)
    except (ValueError, FileNotFoundError) as exc:
        logging.error("Invalid profile: %s", exc)
        return 1

    try:
        result = asyncio.run(_run_crawl_async(args, profile))
    except KeyboardInterrupt:
        logging.info("Interrupted")
        return 130
    except CrawlError as exc:
        where = f" ({exc.url})" if exc.url else ""
        logging.error("Error during %s stage%s: %s", exc.stage or "crawl", where, exc)
        if args.verbose:
            logging.exception("Full traceback:")
        return 1
    except Exception as exc:
        logging.error("Error: %s", exc)
        if args.verbose:
            logging.exception("Full traceback:")
        return 1

    if result.cancelled:
        logging.warning("Crawl stopped early; wrote %d record(s)", len(result.records))
    return 0


if __name__ == "__main__":
    sys.exit(main())
