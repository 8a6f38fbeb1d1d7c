"""
Report service: audit log persistence, exceptions report file and console
renderings of a run.

* ``ImportAuditRepository`` -- one ImportAuditLog row per run, created
  IN_PROGRESS at start and completed at the end.
* ``ExceptionReportWriter`` -- camelCase JSON (``importRun``, ``summary``,
  ``exceptions``) at ``{input}/import-exceptions-{YYYY-MM-DD}.json`` unless
  the caller gives a path.
* ``render_summary`` / ``render_run_result`` / ``render_preview`` /
  ``render_history`` -- plain text for the CLI.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from migration_kernel.domain.clock import Clock, SystemClock
from migration_kernel.logging_config import get_logger
from migration_kernel.models.audit import ImportAuditLog, ImportRunStatus
from migration_ingestion.domain.types import (
    PRIMARY_KINDS,
    WRITE_ORDER,
    ConflictPolicy,
    EntityImportResult,
    EntityKind,
    ImportRunResult,
)
from migration_ingestion.services.import_service import PreviewReport

logger = get_logger("ingestion.report_service")

# ImportAuditLog column holding each kind's created count.
_CREATED_COLUMNS = {
    EntityKind.SCHOOL: "schools_created",
    EntityKind.CLASS_GROUP: "class_groups_created",
    EntityKind.ACTIVITY: "activities_created",
    EntityKind.STUDENT: "students_created",
    EntityKind.FAMILY: "families_created",
    EntityKind.BILLING: "billing_created",
}


# -----------------------------------------------------------------------------
# Audit log
# -----------------------------------------------------------------------------


class ImportAuditRepository:
    """Persists and queries ImportAuditLog rows."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def create(
        self,
        source_path: str,
        policy: ConflictPolicy,
        run_by: str,
        actor_id: UUID,
        started_at: datetime | None = None,
    ) -> ImportAuditLog:
        log = ImportAuditLog(
            started_at=started_at or self._clock.now(),
            run_by=run_by,
            source_path=source_path,
            policy=policy.value,
            status=ImportRunStatus.IN_PROGRESS.value,
            created_by_id=actor_id,
        )
        self._session.add(log)
        self._session.flush()
        logger.info("audit_log_created", extra={"run_id": str(log.id), "source_path": source_path})
        return log

    def complete(
        self,
        log: ImportAuditLog,
        result: ImportRunResult,
        actor_id: UUID,
    ) -> ImportAuditLog:
        log.completed_at = result.completed_at or self._clock.now()
        log.status = result.status.value
        for kind, column in _CREATED_COLUMNS.items():
            setattr(log, column, result.kind(kind).created)
        log.total_updated = result.total_updated
        log.total_failed = result.total_failed
        log.total_skipped = result.total_skipped
        log.exceptions_file_path = result.exceptions_path
        log.notes = result.notes
        log.updated_by_id = actor_id
        self._session.flush()
        logger.info(
            "audit_log_completed",
            extra={"run_id": str(log.id), "status": log.status, "total_failed": log.total_failed},
        )
        return log

    def get_by_id(self, run_id: UUID) -> ImportAuditLog | None:
        return self._session.get(ImportAuditLog, run_id)

    def get_recent(self, count: int = 10) -> list[ImportAuditLog]:
        """The ``count`` most recent runs, most recent first."""
        stmt = (
            select(ImportAuditLog)
            .order_by(ImportAuditLog.started_at.desc(), ImportAuditLog.created_at.desc())
            .limit(count)
        )
        return list(self._session.scalars(stmt))


# -----------------------------------------------------------------------------
# Exceptions report
# -----------------------------------------------------------------------------


def _kind_counts(result: EntityImportResult) -> dict[str, int]:
    return {
        "created": result.created,
        "updated": result.updated,
        "skipped": result.skipped,
        "failed": result.failed,
    }


def build_report_payload(result: ImportRunResult) -> dict[str, Any]:
    return {
        "importRun": {
            "id": str(result.run_id) if result.run_id else None,
            "startedAt": result.started_at.isoformat(),
            "completedAt": result.completed_at.isoformat() if result.completed_at else None,
            "runBy": result.run_by,
            "sourcePath": result.input_path,
            "policy": result.policy.value,
            "status": result.status.value,
            "preview": result.preview,
        },
        "summary": {
            "totalProcessed": result.total_processed,
            "totalCreated": result.total_created,
            "totalUpdated": result.total_updated,
            "totalSkipped": result.total_skipped,
            "totalFailed": result.total_failed,
            "successRate": result.success_rate,
            "skippedKinds": [k.value for k in result.skipped_kinds],
            "perKind": {k.value: _kind_counts(result.kind(k)) for k in WRITE_ORDER},
        },
        "exceptions": [e.to_dict() for e in result.exceptions],
    }


class ExceptionReportWriter:
    """Writes the exceptions report for a run."""

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or SystemClock()

    def default_path(self, input_path: Path | str) -> Path:
        return Path(input_path) / f"import-exceptions-{self._clock.today().isoformat()}.json"

    def write(self, result: ImportRunResult, path: Path | str | None = None) -> Path:
        target = Path(path) if path is not None else self.default_path(result.input_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("w", encoding="utf-8") as fh:
            json.dump(build_report_payload(result), fh, indent=2)
            fh.write("\n")
        logger.info(
            "exceptions_report_written",
            extra={"path": str(target), "exceptions": len(result.exceptions)},
        )
        return target


# -----------------------------------------------------------------------------
# Console renderings
# -----------------------------------------------------------------------------


def render_summary(result: ImportRunResult) -> str:
    """Short plain-text summary of a run; the caller decides where it goes."""
    completed = result.completed_at.isoformat() if result.completed_at else "-"
    return "\n".join([
        "Legacy Import Summary",
        f"Completed: {completed}",
        f"Imported: {result.total_created + result.total_updated}",
        f"Skipped: {result.total_skipped}",
        f"Errors: {result.total_failed}",
    ])


def _kind_detail(counts: EntityImportResult) -> str:
    parts = []
    if counts.created:
        parts.append(f"{counts.created} new")
    if counts.updated:
        parts.append(f"{counts.updated} updated")
    if counts.skipped:
        parts.append(f"{counts.skipped} skipped")
    if counts.failed:
        parts.append(f"{counts.failed} failed")
    return ", ".join(parts) if parts else "0"


def _limited(lines: Sequence[str], limit: int, noun: str) -> list[str]:
    out = [f"  - {line}" for line in lines[:limit]]
    if len(lines) > limit:
        out.append(f"  ... and {len(lines) - limit} more {noun}")
    return out


def render_run_result(result: ImportRunResult, item_limit: int = 20) -> str:
    lines: list[str] = [""]
    if result.status is ImportRunStatus.ABORTED:
        lines += ["=== IMPORT ABORTED ===", "", f"Reason: {result.notes or 'unknown'}"]
        return "\n".join(lines)

    lines.append("=== RE-IMPORT COMPLETE ===" if result.is_reimport else "=== IMPORT COMPLETE ===")
    if result.status is ImportRunStatus.CANCELLED:
        lines.append("(cancelled before all records were processed)")
    lines += ["", "Results:"]
    for kind in WRITE_ORDER:
        lines.append(f"  - {kind.label}: {_kind_detail(result.kind(kind))}")
    lines.append("")

    if result.total_failed:
        lines.append("Failed:")
        lines += [
            f"  - {kind.label}: {result.kind(kind).failed}"
            for kind in WRITE_ORDER
            if result.kind(kind).failed
        ]
        lines.append("")

    if result.skipped_kinds:
        lines.append("Skipped (files not found):")
        lines += [f"  - {kind.label}" for kind in result.skipped_kinds]
        lines.append("")

    lines.append(
        f"Total: {result.total_processed} processed, {result.total_failed} failed "
        f"({result.success_rate}% success rate)"
    )
    if result.is_reimport:
        lines += [
            "",
            f"  - New records: {result.total_created}",
            f"  - Updated: {result.total_updated}",
            f"  - Skipped: {result.total_skipped}",
        ]
        if result.total_updated:
            lines.append("Updates logged to audit trail.")
    if result.warnings:
        lines += ["", f"Warnings ({len(result.warnings)} total):"]
        lines += _limited(list(result.warnings), item_limit, "warnings")
    return "\n".join(lines)


def render_preview(report: PreviewReport, item_limit: int = 20) -> str:
    lines = ["", "=== IMPORT PREVIEW ===", "NOTE: NO data will be written to the database.", ""]

    lines.append("Record Counts:")
    for kind in PRIMARY_KINDS:
        if kind not in report.record_counts:
            lines.append(f"  - {kind.label}: 0 (no data files found)")
            continue
        parsed, mapped = report.record_counts[kind], report.mapped_counts[kind]
        if parsed > mapped:
            lines.append(f"  - {kind.label}: {mapped} (parsed: {parsed}, skipped: {parsed - mapped})")
        else:
            lines.append(f"  - {kind.label}: {mapped}")
    lines.append("")

    for kind in PRIMARY_KINDS:
        samples = report.samples.get(kind)
        if not samples:
            continue
        lines.append(f"Sample Records ({kind.label}):")
        lines += [f"  {sample}" for sample in samples]
        lines.append("")

    if report.warnings:
        lines.append(f"Warnings ({len(report.warnings)} total):")
        lines += _limited(list(report.warnings), item_limit, "warnings")
        lines.append("")

    if report.errors:
        lines.append(f"Errors ({len(report.errors)} records will be skipped):")
        lines += _limited(list(report.errors), item_limit, "errors")
        lines.append("")

    if report.result.skipped_kinds:
        lines.append("Skipped (files not found):")
        lines += [f"  - {kind.label}" for kind in report.result.skipped_kinds]
        lines.append("")

    lines += [
        "Summary:",
        f"  - Valid: {report.total_valid} records",
        f"  - Warnings: {len(report.warnings)} records",
        f"  - Skipped: {len(report.errors)} records",
        "",
        "Run without --preview to import data.",
    ]
    return "\n".join(lines)


def render_history(logs: Sequence[ImportAuditLog]) -> str:
    if not logs:
        return "No import runs recorded."
    header = f"{'ID':<36}  {'Date':<19}  {'Status':<22}  {'Created':>7}  {'Failed':>6}"
    lines = [header, "-" * len(header)]
    for log in logs:
        lines.append(
            f"{str(log.id):<36}  {log.started_at.strftime('%Y-%m-%d %H:%M:%S'):<19}  "
            f"{log.status:<22}  {log.total_created:>7}  {log.total_failed:>6}"
        )
    return "\n".join(lines)
