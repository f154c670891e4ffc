"""
Command line entry point.

    varspeed run --ids 5 3 8 1 9
    varspeed run --file input.txt
    varspeed serve --port 8001
"""

import argparse
import logging
import sys

import uvicorn

from varspeed.config import get_settings
from varspeed.lib.exceptions import ConfigurationError, VariableSpeedsError
from varspeed.lib.models import ElectionResult, RoundReport
from varspeed.lib.roster import build_roster, load_roster
from varspeed.protocol.engine import run_election

logger = logging.getLogger(__name__)

EXIT_CONFIG_ERROR = 2
EXIT_RUN_ERROR = 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="varspeed",
        description="Variable speeds leader election on a synchronous ring",
    )
    parser.add_argument("--log-level", default=None, help="Override VARSPEED_LOG_LEVEL")
    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="Run one election and print the outcome")
    source = run.add_mutually_exclusive_group()
    source.add_argument("--ids", type=int, nargs="+", help="Identifiers in ring order")
    source.add_argument("--file", help="Roster file: ring size, then identifiers")
    run.add_argument("--size", type=int, default=None, help="Declared ring size for --ids")
    run.add_argument(
        "--rounds", action="store_true", help="Print every round in which a token moved"
    )

    serve = sub.add_parser("serve", help="Start the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8001)

    return parser


def print_round(report: RoundReport) -> None:
    for transfer in report.transfers:
        suffix = " (home)" if transfer.returned_home else ""
        print(
            f"Round {report.round}: {transfer.sender} -> {transfer.receiver} "
            f"token {transfer.value}{suffix}"
        )


def print_result(result: ElectionResult) -> None:
    for outcome in result.outcomes:
        status = "leader" if outcome.is_leader else "not leader"
        print(f"UID {outcome.id}: {status}")
    print(f"Leader: {result.leader_id} after {result.rounds} rounds")


def cmd_run(args: argparse.Namespace) -> int:
    settings = get_settings()
    try:
        if args.ids:
            roster = build_roster(args.ids, size=args.size)
        else:
            roster = load_roster(args.file or settings.roster_file)
        result = run_election(
            roster, settings, on_round=print_round if args.rounds else None
        )
    except ConfigurationError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except VariableSpeedsError as e:
        print(f"Election failed: {e.message}", file=sys.stderr)
        return EXIT_RUN_ERROR

    print_result(result)
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    uvicorn.run("varspeed.main:app", host=args.host, port=args.port)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    level = args.log_level or settings.log_level
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "serve":
        return cmd_serve(args)
    if args.command is None:
        # Bare invocation runs the configured roster file
        args = argparse.Namespace(
            **vars(args), ids=None, file=None, size=None, rounds=False
        )
    return cmd_run(args)


if __name__ == "__main__":
    sys.exit(main())
