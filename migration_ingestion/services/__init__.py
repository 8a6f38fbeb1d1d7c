"""Legacy import services (parse, preview, execute, report)."""

from migration_ingestion.services.execution_service import (
    ImportExecutionService,
    actor_id_for,
)
from migration_ingestion.services.import_service import (
    ImportService,
    ParseReport,
    PreviewReport,
    SourceDocument,
)
from migration_ingestion.services.report_service import (
    ExceptionReportWriter,
    ImportAuditRepository,
    build_report_payload,
    render_history,
    render_preview,
    render_run_result,
    render_summary,
)

__all__ = [
    "ExceptionReportWriter",
    "ImportAuditRepository",
    "ImportExecutionService",
    "ImportService",
    "ParseReport",
    "PreviewReport",
    "SourceDocument",
    "actor_id_for",
    "build_report_payload",
    "render_history",
    "render_preview",
    "render_run_result",
    "render_summary",
]
