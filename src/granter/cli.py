"""
Command-line interface: validate, evaluate and convert grant documents.

Usage:
    granter validate grant.yaml
    granter evaluate grant.yaml --inputs oracle.yaml [--outcome 1] [--workers 4]
    granter convert grant.yaml grant.cbor

Exit codes: 0 success, 1 validation issues or evaluation failures, 2 unreadable input.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from granter.core.errors import ConfigurationError, DocumentError, InputError
from granter.core.schema import ProjectGrant
from granter.core.validation import ValidationIssue
from granter.io.config import FORMATS, LOG_LEVELS, GranterSettings
from granter.io.documents import read_document, read_grant, write_grant
from granter.io.errors import IoError
from granter.rating.engine import evaluate_outcome, evaluate_outcomes
from granter.rating.evaluator import OracleReading, ParticipationStats

logger = logging.getLogger(__name__)


def _setup_logging(level: str = "INFO") -> None:
    """Configure the root logger on stderr."""
    numeric = getattr(logging, level.upper(), logging.INFO)
    fmt = "%(asctime)s  %(levelname)-8s  %(name)s: %(message)s"
    logging.basicConfig(level=numeric, format=fmt, datefmt="%H:%M:%S", stream=sys.stderr)


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--config",
        type=str,
        default=None,
        help="TOML settings file (default: granter.toml, then pyproject.toml).",
    )
    p.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Override the configured log level.",
    )
    p.add_argument(
        "--no-env",
        action="store_true",
        help="Do not auto-load .env (by default, .env is loaded if present).",
    )


def _prepare(args: argparse.Namespace) -> GranterSettings:
    # .env first so GRANTER_* variables feed the settings
    if not args.no_env:
        load_dotenv()
    settings = GranterSettings.load(args.config)
    _setup_logging(args.log_level or settings.log_level)
    return settings


def _print_issues(issues: list[ValidationIssue], stream: Any = None) -> None:
    for issue in issues:
        print(issue, file=stream or sys.stdout)


def _load_grant(path: str, settings: GranterSettings) -> tuple[ProjectGrant | None, list[ValidationIssue]]:
    try:
        return read_grant(path, settings)
    except (OSError, IoError, DocumentError) as exc:
        logger.error("cannot read %s: %s", path, exc)
        return None, []


def _oracle_inputs(tree: Any) -> dict[int, OracleReading]:
    """Turn an inputs document into OracleReading values keyed by condition ID."""
    if not isinstance(tree, Mapping):
        raise DocumentError("inputs document root must map condition IDs to values")
    readings: dict[int, OracleReading] = {}
    for key, entry in tree.items():
        try:
            condition_id = int(key)
        except (TypeError, ValueError):
            raise DocumentError(f"inputs key {key!r} is not a condition ID") from None
        if isinstance(entry, Mapping):
            stats = ParticipationStats(
                participant_count=entry.get("participants"),
                participation_percent=entry.get("participation_percent"),
            )
            readings[condition_id] = OracleReading(entry.get("value"), stats)
        else:
            readings[condition_id] = OracleReading(entry)
    return readings


def _cmd_validate(argv: list[str]) -> int:
    p = argparse.ArgumentParser(prog="granter validate", description="Validate a grant document.")
    p.add_argument("file", type=str, help="Grant document (.yaml/.yml/.json/.cbor).")
    _add_common(p)
    args = p.parse_args(argv)
    settings = _prepare(args)

    grant, issues = _load_grant(args.file, settings)
    if grant is None and not issues:
        return 2
    _print_issues(issues)
    if issues:
        print(f"{len(issues)} issue(s) in {args.file}", file=sys.stderr)
        return 1
    print(f"OK {args.file} (version {grant.history.version}, status {grant.status.value})")
    return 0


def _cmd_evaluate(argv: list[str]) -> int:
    p = argparse.ArgumentParser(
        prog="granter evaluate",
        description="Rate outcomes from oracle inputs and print per-actor amounts as JSON.",
    )
    p.add_argument("file", type=str, help="Grant document.")
    p.add_argument("--inputs", type=str, required=True, help="Oracle inputs document (condition id -> value).")
    p.add_argument("--outcome", type=int, default=None, help="Evaluate only this outcome ID.")
    p.add_argument("--workers", type=int, default=None, help="Threads for batch evaluation.")
    _add_common(p)
    args = p.parse_args(argv)
    settings = _prepare(args)

    grant, issues = _load_grant(args.file, settings)
    if grant is None and not issues:
        return 2
    if issues:
        _print_issues(issues, sys.stderr)
        return 1
    try:
        inputs = _oracle_inputs(read_document(args.inputs, settings))
    except (OSError, IoError, DocumentError) as exc:
        logger.error("cannot read %s: %s", args.inputs, exc)
        return 2

    settlements: list[dict[str, Any]] = []
    failures: dict[str, str] = {}
    if args.outcome is not None:
        try:
            settlements.append(evaluate_outcome(grant, args.outcome, inputs).to_dict())
        except (ConfigurationError, InputError) as exc:
            failures[str(args.outcome)] = str(exc)
    else:
        batch = evaluate_outcomes(grant, inputs, max_workers=args.workers or settings.max_workers)
        settlements.extend(s.to_dict() for s in batch.settlements.values())
        failures.update({str(oid): str(exc) for oid, exc in batch.failures.items()})

    print(json.dumps({"settlements": settlements, "failures": failures}, indent=2))
    return 1 if failures else 0


def _cmd_convert(argv: list[str]) -> int:
    p = argparse.ArgumentParser(prog="granter convert", description="Re-encode a grant document.")
    p.add_argument("file", type=str, help="Source grant document.")
    p.add_argument("out", type=str, help="Destination path; its suffix picks the format.")
    p.add_argument("--to", choices=FORMATS, default=None, help="Explicit destination format.")
    _add_common(p)
    args = p.parse_args(argv)
    settings = _prepare(args)

    grant, issues = _load_grant(args.file, settings)
    if grant is None:
        _print_issues(issues, sys.stderr)
        return 2 if not issues else 1
    for issue in issues:
        logger.warning("%s", issue)
    try:
        path = write_grant(grant, Path(args.out), args.to)
    except (OSError, IoError) as exc:
        logger.error("cannot write %s: %s", args.out, exc)
        return 2
    print(f"wrote {path}")
    return 0


_COMMANDS = {
    "validate": _cmd_validate,
    "evaluate": _cmd_evaluate,
    "convert": _cmd_convert,
}


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="granter", description="Grant outcome-rating engine.")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("validate", help="Validate a grant document.")
    sub.add_parser("evaluate", help="Evaluate outcomes from oracle inputs.")
    sub.add_parser("convert", help="Convert a grant document between YAML, JSON and CBOR.")
    return p


def main(argv: list[str] | None = None) -> None:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or argv[0] in ("-h", "--help"):
        build_argparser().print_help()
        raise SystemExit(0)
    cmd, rest = argv[0], argv[1:]
    handler = _COMMANDS.get(cmd)
    if handler is None:
        print(f"Unknown command: {cmd}", file=sys.stderr)
        code = 2
    else:
        code = handler(rest)
    raise SystemExit(code)


if __name__ == "__main__":
    main()
