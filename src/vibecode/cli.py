"""Command-line interface for vibecode."""

from __future__ import annotations

import argparse
import json
import logging
import time
from typing import cast

from .config import AppConfig
from .errors import VibeCodeError
from .jobs.functions import (
    CHAT_RUN_EVENT,
    CODE_RUN_EVENT,
    SANDBOX_CREATE_EVENT,
    build_job_functions,
)
from .jobs.runner import JobRunner
from .jobs.store import InMemoryResultStore

LOGGER = logging.getLogger(__name__)

EVENT_CHOICES = (CODE_RUN_EVENT, CHAT_RUN_EVENT, SANDBOX_CREATE_EVENT)
LOCAL_EVENT_ID = "local"
POLL_INTERVAL_SECONDS = 1.0


class CLIArgs(argparse.Namespace):
    request: str | None
    event: str
    max_iterations: int | None
    log_level: str


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vibecode", description="Sandboxed code generation agent"
    )
    parser.add_argument(
        "--event",
        choices=EVENT_CHOICES,
        default=CODE_RUN_EVENT,
        help="Job type to run (default: %(default)s).",
    )
    parser.add_argument(
        "--max-iterations",
        dest="max_iterations",
        type=int,
        help="Override the chat/tool iteration budget for this run.",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        default="WARNING",
        help="Python logging level (default: %(default)s).",
    )
    parser.add_argument("request", nargs="?", help="Natural-language code request")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = cast(CLIArgs, parser.parse_args(argv))
    logging.basicConfig(level=args.log_level.upper())
    config = AppConfig.from_env()
    if args.max_iterations is not None and args.max_iterations > 0:
        config.max_iterations = args.max_iterations

    data: dict[str, object] = {"eventId": LOCAL_EVENT_ID}
    if args.event != SANDBOX_CREATE_EVENT:
        request = args.request or input("Request: ").strip()
        if not request:
            print("No request provided.")
            return 1
        data["value" if args.event == CODE_RUN_EVENT else "prompt"] = request

    try:
        record = run_job(config, args.event, data)
    except VibeCodeError as exc:
        LOGGER.debug("cli_job_failed", extra={"error": str(exc)})
        record = {"status": "failed", "error": str(exc)}

    print(json.dumps(record, indent=2, ensure_ascii=False))
    return 0 if record.get("status") == "completed" else 1


def run_job(config: AppConfig, event: str, data: dict[str, object]) -> dict[str, object]:
    """Submit one event to a local runner and poll until its record settles."""
    store = InMemoryResultStore()
    functions = build_job_functions(config, store)
    runner = JobRunner(handlers=functions.handlers, store=store, max_workers=config.max_workers)
    try:
        future = runner.send(event, data)
        while True:
            finished = future.done()
            record = runner.get_result(LOCAL_EVENT_ID)
            # A job that ended without writing a record stays pending forever.
            if record.get("status") != "pending" or finished:
                return record
            time.sleep(POLL_INTERVAL_SECONDS)
    finally:
        runner.shutdown()


if __name__ == "__main__":
    raise SystemExit(main())
