"""DaysInARow CLI: run scenarios and audit event logs.

Usage:
    daysinarow simulate scenarios/seven_day_streak.json --events data/events.jsonl
    daysinarow start-date --tz Europe/London
    daysinarow digest data/events.jsonl
    daysinarow anchor data/events.jsonl
    daysinarow check-invariants --params config/escrow_params.json
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from dataclasses import asdict
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from web3.exceptions import Web3Exception

from daysinarow.clock import SystemClock
from daysinarow.config import DEFAULT_PARAMS_PATH, check_params_file
from daysinarow.crypto.anchor import SEPOLIA_CHAIN_ID, anchor_to_chain, digest_event_file
from daysinarow.engine.day_window import next_midnight
from daysinarow.persistence.event_log import EventLog
from daysinarow.simulation import load_scenario, run_scenario


def cmd_simulate(args: argparse.Namespace) -> int:
    try:
        scenario = load_scenario(args.scenario)
        event_log = EventLog(storage_path=args.events) if args.events else None
        report = run_scenario(scenario, event_log=event_log)
    except (OSError, ValueError, KeyError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1

    for step in report.failed_steps:
        print(
            f"Step {step.index} ({step.action}) reverted: {'; '.join(step.errors)}",
            file=sys.stderr,
        )
    print(json.dumps(report.to_dict(), indent=2))
    return 0


def cmd_start_date(args: argparse.Namespace) -> int:
    now = args.now if args.now is not None else SystemClock().now()
    try:
        tz = ZoneInfo(args.tz) if args.tz else None
    except (ZoneInfoNotFoundError, ValueError):
        print(f"Failed: unknown time zone {args.tz!r}", file=sys.stderr)
        return 1
    print(next_midnight(now, tz))
    return 0


def cmd_digest(args: argparse.Namespace) -> int:
    try:
        root, count = digest_event_file(args.events)
    except (OSError, ValueError, KeyError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    print(json.dumps({"merkle_root": root, "event_count": count}, indent=2))
    return 0


def cmd_anchor(args: argparse.Namespace) -> int:
    load_dotenv(args.env)
    rpc_url = os.getenv("RPC_URL")
    private_key = os.getenv("PRIVATE_KEY")
    if not rpc_url or not private_key:
        print("Failed: RPC_URL and PRIVATE_KEY must be set (.env)", file=sys.stderr)
        return 1
    try:
        chain_id = int(os.getenv("CHAIN_ID", str(SEPOLIA_CHAIN_ID)))
        root, count = digest_event_file(args.events)
    except (OSError, ValueError, KeyError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1

    try:
        record = anchor_to_chain(root, rpc_url, private_key, chain_id, event_count=count)
    except (Web3Exception, OSError, ValueError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    print(json.dumps(asdict(record), indent=2))
    return 0


def cmd_check_invariants(args: argparse.Namespace) -> int:
    errors = check_params_file(args.params)
    if errors:
        print("Invariant check failed:", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        return 1
    print(f"Invariant checks passed: {args.params}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="daysinarow",
        description="DaysInARow commitment escrow CLI",
    )
    sub = parser.add_subparsers(dest="command")

    # simulate
    p_sim = sub.add_parser("simulate", help="Run a scenario against an in-memory escrow")
    p_sim.add_argument("scenario", type=Path, help="Scenario JSON file")
    p_sim.add_argument("--events", type=Path, default=None, help="Append events to this JSONL file")

    # start-date
    p_start = sub.add_parser("start-date", help="Print the next midnight as unix seconds")
    p_start.add_argument("--now", type=int, default=None, help="Reference time (default: now)")
    p_start.add_argument("--tz", default=None, help="IANA time zone (default: UTC)")

    # digest
    p_digest = sub.add_parser("digest", help="Merkle root of a persisted event log")
    p_digest.add_argument("events", type=Path)

    # anchor
    p_anchor = sub.add_parser("anchor", help="Anchor an event log's Merkle root on chain")
    p_anchor.add_argument("events", type=Path)
    p_anchor.add_argument("--env", type=Path, default=Path(".env"), help="dotenv file with RPC_URL and PRIVATE_KEY")

    # check-invariants
    p_check = sub.add_parser("check-invariants", help="Validate an escrow parameter file")
    p_check.add_argument("--params", type=Path, default=DEFAULT_PARAMS_PATH)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "simulate": cmd_simulate,
        "start-date": cmd_start_date,
        "digest": cmd_digest,
        "anchor": cmd_anchor,
        "check-invariants": cmd_check_invariants,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
