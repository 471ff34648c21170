from __future__ import annotations

from collections import Counter

from ..models.processing_result import ImportReport, OutcomeKind, RowOutcome, SkipReason

"""Outcome aggregation and report rendering.

Row outcomes are folded into three counters; the report message uses the
upload form's language (Traditional Chinese) and lists skipped / duplicate
counts only when they are nonzero.
"""

__all__ = [
    "ImportAggregator",
    "failure_report",
    "render_message",
    "render_summary_line",
    "DECODE_FAILURE_MESSAGE",
    "MISSING_PAYLOAD_MESSAGE",
]

DECODE_FAILURE_MESSAGE = "處理 Excel 檔案時發生錯誤，請檢查檔案格式"
MISSING_PAYLOAD_MESSAGE = "Missing fileBase64 in request body"


def render_message(processed: int, skipped: int, duplicate: int) -> str:
    parts = [f"成功處理 {processed} 筆資料"]
    if skipped > 0:
        parts.append(f"跳過 {skipped} 筆無效資料")
    if duplicate > 0:
        parts.append(f"跳過 {duplicate} 筆重複資料")
    return "，".join(parts)


def failure_report(message: str = DECODE_FAILURE_MESSAGE) -> ImportReport:
    return ImportReport(success=False, message=message)


class ImportAggregator:
    """Accumulates RowOutcomes for one import invocation."""

    def __init__(self) -> None:
        self.outcomes: list[RowOutcome] = []
        self._counts: Counter[OutcomeKind] = Counter()

    def add(self, outcome: RowOutcome) -> None:
        self.outcomes.append(outcome)
        self._counts[outcome.kind] += 1

    @property
    def processed(self) -> int:
        return self._counts[OutcomeKind.PROCESSED]

    @property
    def skipped(self) -> int:
        return self._counts[OutcomeKind.SKIPPED]

    @property
    def duplicate(self) -> int:
        return self._counts[OutcomeKind.DUPLICATE]

    def skipped_by_reason(self) -> dict[SkipReason, int]:
        counts: Counter[SkipReason] = Counter(
            o.reason for o in self.outcomes if o.kind is OutcomeKind.SKIPPED and o.reason
        )
        return dict(counts)

    def build_report(self) -> ImportReport:
        return ImportReport(
            success=True,
            message=render_message(self.processed, self.skipped, self.duplicate),
            processed_count=self.processed,
            skipped_count=self.skipped,
            duplicate_count=self.duplicate,
        )


def _format_seconds(elapsed: float) -> str:
    if elapsed == 0:
        return "0"
    if elapsed == int(elapsed):
        return str(int(elapsed))
    if elapsed < 0.01:
        # avoid scientific notation
        return f"{elapsed:.6f}".rstrip("0").rstrip(".")
    return f"{elapsed:.3f}".rstrip("0").rstrip(".")


def render_summary_line(report: ImportReport, elapsed_seconds: float) -> str:
    """Render the machine-readable SUMMARY line.

    Format:
    SUMMARY success={true|false} rows={total} processed={p} skipped={s}
    duplicate={d} elapsed_sec={elapsed}

    >>> r = ImportReport(True, "ok", processed_count=2, duplicate_count=1)
    >>> render_summary_line(r, 1.5)
    'SUMMARY success=true rows=3 processed=2 skipped=0 duplicate=1 elapsed_sec=1.5'
    """
    return (
        f"SUMMARY success={'true' if report.success else 'false'} "
        f"rows={report.total_rows} "
        f"processed={report.processed_count} "
        f"skipped={report.skipped_count} "
        f"duplicate={report.duplicate_count} "
        f"elapsed_sec={_format_seconds(elapsed_seconds)}"
    )
