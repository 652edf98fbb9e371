# ABOUTME: Result records for page and database item exports.
# ABOUTME: Aggregates results of a run into a summary with an overall status.

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Literal


@dataclass(frozen=True)
class ExportResult:
    """Outcome of exporting one page or database item."""
    success: bool
    page_id: str
    page_title: str
    path: str
    # Flattened properties, database items only
    metadata: dict[str, Any] = field(default_factory=dict)
    skipped: bool = False


@dataclass
class ExportSummary:
    """Summary of one export run."""

    timestamp: str = ""
    duration_seconds: float = 0.0
    exported: int = 0
    skipped: int = 0
    failed: int = 0
    failures: list[dict] = field(default_factory=list)
    status: Literal["completed", "completed_with_warnings", "failed"] = "completed"

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).isoformat()


def create_summary(start_time: datetime, results: Iterable[ExportResult]) -> ExportSummary:
    """Create a run summary.

    Args:
        start_time: When the run started (timezone aware).
        results: Every ExportResult produced during the run.

    Returns:
        ExportSummary with computed fields.
    """
    results = list(results)
    end_time = datetime.now(timezone.utc)
    duration = (end_time - start_time).total_seconds()

    failures = [
        {"id": r.page_id, "title": r.page_title}
        for r in results if not r.success
    ]
    skipped = sum(1 for r in results if r.success and r.skipped)
    exported = sum(1 for r in results if r.success and not r.skipped)

    # Determine status based on failures
    if failures:
        status = "failed" if exported + skipped == 0 else "completed_with_warnings"
    else:
        status = "completed"

    return ExportSummary(
        timestamp=start_time.isoformat(),
        duration_seconds=round(duration, 2),
        exported=exported,
        skipped=skipped,
        failed=len(failures),
        failures=failures,
        status=status,
    )
