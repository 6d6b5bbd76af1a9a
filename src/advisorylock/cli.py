"""
Command line demo: race several connections for one advisory lock.

Run with: python -m advisorylock --concurrency 3

Exit codes:
    0: race completed
    1: database unreachable or other runtime failure
    2: configuration error (nothing was attempted)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import socket
import sys
from collections.abc import Sequence
from typing import TextIO

from advisorylock.config import LockConfig
from advisorylock.exceptions import ConfigurationError
from advisorylock.harness import RaceSummary, race
from advisorylock.locks.postgresql import (
    PostgreSQLSessionPool,
    create_lock_engine,
    probe_server,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="advisorylock",
        description="Race several PostgreSQL connections for one transaction-scoped advisory lock.",
    )
    parser.add_argument(
        "--name",
        default=None,
        help="Logical lock name (default: test-connections)",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Number of competing connections (default: 3)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Acquisition deadline per attempt in seconds (default: 30)",
    )
    parser.add_argument(
        "--env-file",
        default=None,
        help="Path to a .env file (default: ./.env when present)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log every lock-state event",
    )
    return parser


def report(summary: RaceSummary, out: TextIO) -> None:
    """Print per-contender outcomes and the summary line."""
    print("\nResults acquiring the lock:", file=out)
    for attempt in summary.attempts:
        if attempt.acquired:
            outcome = "ACQUIRED"
        elif attempt.failed:
            outcome = f"ERROR ({attempt.error})"
        else:
            outcome = "FAILED"
        print(f"  Instance {attempt.index + 1}: {outcome}", file=out)

    print(
        f"\nSummary: {summary.success_count} out of {summary.concurrency} "
        f"instances acquired the lock '{summary.lock_name}' (lock id {summary.lock_id})",
        file=out,
    )


def connection_hint(error: BaseException) -> str | None:
    """Suggest a fix for common connection failures, if one is recognized."""
    current: BaseException | None = error
    while current is not None:
        if isinstance(current, socket.gaierror):
            return "Make sure your database URL is correct and the host is resolvable"
        if isinstance(current, ConnectionRefusedError):
            return "Check that the database server is running and accepts connections"
        current = current.__cause__ or current.__context__
    return None


async def run(config: LockConfig, out: TextIO) -> RaceSummary:
    """Probe the server, run the race, and dispose of the engine."""
    print(f"Connecting to database: {config.redacted_url}", file=out)
    engine = create_lock_engine(config)
    try:
        info = await probe_server(engine)
        print(f"Database connection successful ({info.short_version})", file=out)
        print(f"Database time: {info.server_time.isoformat()}", file=out)

        pool = PostgreSQLSessionPool(engine, capacity=config.pool_size)
        print(
            f"Starting race: {config.concurrency} connections for lock '{config.lock_name}'",
            file=out,
        )
        return await race(
            pool,
            config.lock_name,
            config.concurrency,
            timeout=config.lock_timeout,
        )
    finally:
        await engine.dispose()
        print("Database connections closed", file=out)


def main(argv: Sequence[str] | None = None, out: TextIO | None = None) -> int:
    """Main entry point."""
    out = out or sys.stdout
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = LockConfig.from_env(
            env_file=args.env_file,
            lock_name=args.name,
            concurrency=args.concurrency,
            lock_timeout=args.timeout,
        )
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    try:
        summary = asyncio.run(run(config, out))
    except Exception as e:
        logger.debug("Race aborted", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        hint = connection_hint(e)
        if hint:
            print(f"Tip: {hint}", file=sys.stderr)
        return EXIT_FAILURE

    report(summary, out)
    return EXIT_OK


__all__ = [
    "EXIT_CONFIG",
    "EXIT_FAILURE",
    "EXIT_OK",
    "build_parser",
    "connection_hint",
    "main",
    "report",
    "run",
]
