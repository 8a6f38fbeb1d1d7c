#!/usr/bin/env python3
"""
Legacy import command line: validate, preview, or run a migration.

Usage:
    legacy-import run --input <dir> [--skip-existing | --update | --fail-on-conflict] [options]
    legacy-import parse --input <dir> [--output report.json]
    legacy-import history [--count N]

Examples:
    # Dry run: validate and map, write nothing
    legacy-import run --input ./legacy-export --preview

    # First import (fails any record whose legacy id already exists)
    legacy-import run --input ./legacy-export

    # Re-import, overwriting existing rows and logging every changed field
    legacy-import run --input ./legacy-export --update

    # Reader only: schema-validate every document
    legacy-import parse --input ./legacy-export --output parse-report.json

The input directory holds one folder per kind (1_School, 2_Class_Group,
3_Activity, 4_Children), each with the XML document and its XSD schema
definition. A missing folder skips that kind; a missing schema aborts.

Exit code is 1 when any record failed, any document had errors, or the
input directory is missing.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="legacy-import",
        description="Migrate legacy school data (XML + XSD exports) into the target store.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Import (or preview) an input directory.")
    run.add_argument("--input", required=True, type=Path, help="Input directory with the legacy exports.")
    run.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Exceptions report path (run) or preview report path (--preview).",
    )
    run.add_argument("--preview", action="store_true", help="Validate and map only; write nothing.")
    policy = run.add_mutually_exclusive_group()
    policy.add_argument(
        "--skip-existing",
        dest="policy",
        action="store_const",
        const="skip_existing",
        help="Skip records whose legacy id already exists.",
    )
    policy.add_argument(
        "--update",
        dest="policy",
        action="store_const",
        const="update",
        help="Overwrite existing records and log every changed field.",
    )
    policy.add_argument(
        "--fail-on-conflict",
        dest="policy",
        action="store_const",
        const="fail_on_conflict",
        help="Fail records whose legacy id already exists (default).",
    )
    run.set_defaults(policy="fail_on_conflict")
    _add_common(run)
    run.add_argument("--run-by", default=None, help="Name recorded on the audit log (default: settings).")

    parse = sub.add_parser("parse", help="Schema-validate every document; no mapping, no writes.")
    parse.add_argument("--input", required=True, type=Path, help="Input directory with the legacy exports.")
    parse.add_argument("--output", type=Path, default=None, help="Write the JSON report here instead of stdout.")
    parse.add_argument("--config", type=Path, default=None, help="Settings override YAML.")
    parse.add_argument("--verbose", "-v", action="store_true", help="Debug logging.")

    history = sub.add_parser("history", help="Show the most recent import runs.")
    history.add_argument("--count", type=int, default=None, help="Number of runs to show.")
    _add_common(history)
    return parser


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--database-url", default=None, help="Database URL (default: settings).")
    parser.add_argument("--config", type=Path, default=None, help="Settings override YAML.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging.")


def _write_json(payload: dict, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------


def _cmd_parse(args: argparse.Namespace, settings) -> int:
    from migration_ingestion.services import ImportService
    from migration_kernel.exceptions import InputError

    try:
        report = ImportService(settings).parse(args.input.resolve())
    except InputError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    payload = report.to_dict()
    if args.output:
        _write_json(payload, args.output)
        print(f"Parse report saved to: {args.output}")
    else:
        print(json.dumps(payload, indent=2, ensure_ascii=False))
    return 1 if report.has_errors else 0


def _cmd_preview(args: argparse.Namespace, settings) -> int:
    from migration_ingestion.domain.types import ConflictPolicy
    from migration_ingestion.services import ImportService, render_preview
    from migration_kernel.exceptions import InputError

    try:
        report = ImportService(settings).preview(
            args.input.resolve(), ConflictPolicy(args.policy), run_by=args.run_by,
        )
    except InputError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    print(render_preview(report, settings.reporting.report_item_limit))
    if args.output:
        _write_json(report.to_dict(), args.output)
        print(f"Preview report saved to: {args.output}")
    return 1 if report.result.has_errors else 0


def _cmd_run(args: argparse.Namespace, settings) -> int:
    from migration_ingestion.domain.types import ConflictPolicy
    from migration_ingestion.services import ImportExecutionService, render_run_result
    from migration_kernel.db.engine import create_tables, init_engine_from_url, session_scope

    input_path = args.input.resolve()
    if not input_path.is_dir():
        print(f"ERROR: Input directory not found: {input_path}", file=sys.stderr)
        return 1

    try:
        init_engine_from_url(args.database_url or settings.database_url)
        create_tables()
    except Exception as e:
        print(f"ERROR: Database init failed: {e}", file=sys.stderr)
        return 1

    print(f"Importing {input_path} (policy: {args.policy})...")
    with session_scope() as session:
        result = ImportExecutionService(session, settings).execute(
            input_path,
            ConflictPolicy(args.policy),
            run_by=args.run_by,
            exceptions_path=args.output,
        )

    print(render_run_result(result, settings.reporting.report_item_limit))
    if result.exceptions_path:
        print(f"Exceptions saved to: {result.exceptions_path}")
    if result.report_failed:
        print(f"ERROR: {result.notes}", file=sys.stderr)
    return 1 if result.has_errors else 0


def _cmd_history(args: argparse.Namespace, settings) -> int:
    from migration_ingestion.services import ImportAuditRepository, render_history
    from migration_kernel.db.engine import create_tables, init_engine_from_url, session_scope

    try:
        init_engine_from_url(args.database_url or settings.database_url)
        create_tables()
    except Exception as e:
        print(f"ERROR: Database init failed: {e}", file=sys.stderr)
        return 1

    count = args.count or settings.reporting.history_count
    with session_scope() as session:
        print(render_history(ImportAuditRepository(session).get_recent(count)))
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    # Lazy imports so we fail fast on args first
    import yaml

    from migration_config import get_import_settings
    from migration_kernel.exceptions import ConfigurationError
    from migration_kernel.logging_config import configure_logging

    configure_logging(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        settings = get_import_settings(args.config)
    except (ConfigurationError, OSError, yaml.YAMLError) as e:
        print(f"ERROR: Failed to load config: {e}", file=sys.stderr)
        return 1

    if args.command == "parse":
        return _cmd_parse(args, settings)
    if args.command == "history":
        return _cmd_history(args, settings)
    if args.preview:
        return _cmd_preview(args, settings)
    return _cmd_run(args, settings)


if __name__ == "__main__":
    sys.exit(main())
