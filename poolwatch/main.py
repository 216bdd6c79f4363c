"""Command-line entry point: one pools scrape run per invocation.

Usage:
    python -m poolwatch                 # scrape, print the summary report
    python -m poolwatch --json          # summary as JSON
    python -m poolwatch --init-db       # create schedule tables first

Exit codes: 0 run completed (individual races may have failed),
1 fatal failure, 2 run ceiling exceeded.
"""

import argparse
import asyncio
import json
import logging
from typing import Optional

from poolwatch.config import settings
from poolwatch.models.database import async_session, engine, init_db
from poolwatch.schedule.store import ScheduleStore
from poolwatch.scrapers.base import ConfigurationError
from poolwatch.scrapers.orchestrator import run_pools_scrape
from poolwatch.scrapers.playwright_base import close_browser

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_TIMEOUT = 2


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="poolwatch",
        description="Match today's listed races to the stored schedule and record MTP and pools.",
    )
    parser.add_argument("--init-db", action="store_true", help="Create the schedule tables before running")
    parser.add_argument("--json", action="store_true", help="Print the run summary as JSON")
    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.run_timeout,
        help=f"Abort the run after this many seconds (default {settings.run_timeout:.0f})",
    )
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level")
    return parser.parse_args(argv)


def check_configuration(init_db_requested: bool = False) -> None:
    """Raise ConfigurationError if the run cannot possibly start."""
    if not settings.listing_url:
        raise ConfigurationError("POOLWATCH_LISTING_URL is not set")
    if not init_db_requested and not settings.db_path.exists():
        raise ConfigurationError(
            f"Schedule database not found at {settings.db_path} "
            "(set POOLWATCH_DB_PATH or run with --init-db)"
        )


async def run(json_output: bool = False, timeout: Optional[float] = None, init_db_requested: bool = False) -> int:
    """Run one scrape and print its summary. Returns the process exit code."""
    try:
        if init_db_requested:
            await init_db()
        store = ScheduleStore(async_session)
        summary = await asyncio.wait_for(run_pools_scrape(store), timeout=timeout)
    except asyncio.TimeoutError:
        logger.error(f"Pools scrape exceeded {timeout:.0f}s and was aborted")
        return EXIT_TIMEOUT
    except Exception:
        logger.exception("Pools scrape failed")
        return EXIT_FATAL
    finally:
        await close_browser()
        await engine.dispose()

    if json_output:
        print(json.dumps(summary.to_dict(), indent=2))
    else:
        print("\n".join(summary.format_report()))
    return EXIT_OK


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        check_configuration(args.init_db)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_FATAL

    return asyncio.run(run(json_output=args.json, timeout=args.timeout, init_db_requested=args.init_db))
