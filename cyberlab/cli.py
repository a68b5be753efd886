#!/usr/bin/env python
"""
Cyber Lab CLI
=============
Operator commands for the custody store.

Usage:
    python -m cyberlab.cli init-db
    python -m cyberlab.cli custody-report --exhibit <id> [--output <file>] [--archive]
    python -m cyberlab.cli verify-ledger --exhibit <id>

Exit status is 0 on success and 1 on any domain error or failed verification.
"""

from __future__ import annotations

import argparse
import sys
import uuid

from cyberlab.core import database
from cyberlab.core.errors import CustodyError
from cyberlab.core.logging import init_logging


def _exhibit_id(value: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not a valid exhibit id: {value}") from exc


def cmd_init_db(args) -> int:
    """Create every table on the configured database."""
    import cyberlab.models  # noqa: F401

    database.Base.metadata.create_all(bind=database.engine)
    print(f"  Schema created on {database.engine.url.render_as_string(hide_password=True)}")
    return 0


def cmd_custody_report(args) -> int:
    """Print or write the custody report of one exhibit."""
    from cyberlab.services import blob_store
    from cyberlab.services.custody_ledger import export_report

    with database.SessionLocal() as db:
        report = export_report(db, args.exhibit)

    if args.output:
        with open(args.output, "w", encoding="utf-8", newline="\n") as f:
            f.write(report.text)
        print(f"  Report written to: {args.output}")
    else:
        sys.stdout.write(report.text)

    if args.archive:
        key = blob_store.upload_bytes(
            blob_store.custody_report_key(report.exhibit_number, report.sha256),
            report.text.encode("utf-8"),
            content_type="text/plain; charset=utf-8",
        )
        print(f"  Archived to: {key}")

    print(f"  Report SHA-256: {report.sha256}")
    return 0 if report.chain_valid else 1


def cmd_verify_ledger(args) -> int:
    """Recompute the hash chain of one exhibit's custody ledger."""
    from cyberlab.services.custody_ledger import verify_chain

    with database.SessionLocal() as db:
        result = verify_chain(db, args.exhibit)

    print(f"  Events: {result.event_count}")
    print(f"  Chain head: {result.head_hash}")
    if result.valid:
        print("  Status: VERIFIED")
        return 0
    print(f"  Status: BROKEN at event #{(result.broken_at or 0) + 1} ({result.reason})")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cyberlab",
        description="Cyber Lab custody store operator commands",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("init-db", help="Create database tables")

    report = subparsers.add_parser("custody-report", help="Export an exhibit's custody report")
    report.add_argument("--exhibit", type=_exhibit_id, required=True, help="Exhibit ID")
    report.add_argument("--output", "-o", help="Output file path")
    report.add_argument("--archive", action="store_true", help="Also store the report in the blob store")

    verify = subparsers.add_parser("verify-ledger", help="Verify an exhibit's custody hash chain")
    verify.add_argument("--exhibit", type=_exhibit_id, required=True, help="Exhibit ID")

    return parser


_COMMANDS = {
    "init-db": cmd_init_db,
    "custody-report": cmd_custody_report,
    "verify-ledger": cmd_verify_ledger,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    handler = _COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    init_logging(json_lines=False)
    try:
        return handler(args)
    except CustodyError as exc:
        print(f"  Error: {exc.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
