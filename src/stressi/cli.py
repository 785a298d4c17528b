from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from stressi import __version__
from stressi.config import (
    DEFAULT_MAX_WORKERS,
    DEFAULT_REPETITIONS,
    DEFAULT_USERS,
    MAX_COUNT,
    ConfigError,
    Count,
    RunConfig,
    parse_headers,
)
from stressi.loadgen.runner import run_stress
from stressi.storage import Storage, default_storage

EPILOG = f"""\
If a value for one of the options has spaces in it, put quotation marks around
it, like so: "this will all be the same value".

Number of users and repetitions per user determine the total number of requests
that will be performed. They both default to 10, which means 100 total requests.

For both -s and -r you can supply -1 to use the maximum value of a signed 64-bit
integer, {MAX_COUNT}, which will basically run until you press Ctrl-C.
"""


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stressi",
        description="Simple HTTP load generator.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--version", action="version", version=f"Version {__version__}")
    parser.add_argument("-u", "--url", help="The URL to use for each request. Required!")
    parser.add_argument("-m", "--method", default="GET", help="HTTP method to use. Defaults to 'GET'.")
    parser.add_argument(
        "-s",
        "--users",
        type=int,
        default=None,
        help=f"Number of concurrent users to simulate. Defaults to {DEFAULT_USERS}.",
    )
    parser.add_argument(
        "-r",
        "--reps",
        type=int,
        default=None,
        help=f"Number of repetitions per user. Defaults to {DEFAULT_REPETITIONS}.",
    )
    parser.add_argument("-b", "--verbose", action="store_true", help="Print every response.")
    parser.add_argument("-a", "--user-agent", help="Set the user-agent to use.")
    parser.add_argument("-e", "--headers", help="Comma-list of key:value, like so: key1:value1,key2:value2")
    parser.add_argument("-t", "--timeout", type=int, help="Set the timeout for each request to N ms.")
    parser.add_argument(
        "-w",
        "--workers",
        type=int,
        default=DEFAULT_MAX_WORKERS,
        help=f"Maximum number of users running at once. Defaults to {DEFAULT_MAX_WORKERS}.",
    )
    parser.add_argument(
        "-o",
        "--store",
        nargs="?",
        const="",
        help="Save the finished run to this duckdb file, or to .stressi/stressi.duckdb if no path is given.",
    )
    parser.add_argument(
        "--history",
        nargs="?",
        const="",
        help="List runs saved in this duckdb file (default .stressi/stressi.duckdb) and exit.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser


def _build_config(args: argparse.Namespace) -> RunConfig:
    return RunConfig(
        url=args.url or "",
        method=args.method,
        users=Count.from_option(args.users, DEFAULT_USERS),
        repetitions=Count.from_option(args.reps, DEFAULT_REPETITIONS),
        verbose=args.verbose,
        user_agent=args.user_agent,
        headers=parse_headers(args.headers),
        timeout_ms=args.timeout,
        max_workers=args.workers,
    )


def _open_storage(raw: str) -> Storage:
    if not raw:
        return default_storage()
    return Storage(Path(raw))


def _print_error(message: str) -> None:
    print(f"[ERROR] {message}", file=sys.stderr)


def main(argv: Sequence[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    parser = _build_parser()
    if not argv:
        parser.print_help()
        return 0
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.history is not None:
        runs = _open_storage(args.history).list_runs()
        print("No stored runs." if runs.empty else runs.to_string(index=False))
        return 0

    try:
        config = _build_config(args)
    except ConfigError as exc:
        _print_error(str(exc))
        return 1

    storage = _open_storage(args.store) if args.store is not None else None
    run_stress(config, storage=storage)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
