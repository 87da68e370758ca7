import logging
import os
import threading
import time
from typing import List, Optional, Sequence

from .dedupe import dedupe_engine
from .schemas import (
    BatchItem,
    BatchRes,
    DedupeResult,
    ExistingIssue,
    IssueReport,
    MetricsRes,
    TriageResult,
)
from .triage import triage_engine

logger = logging.getLogger("civicai.services")


def _get_env_float(key: str, default: float) -> float:
    try:
        return float(os.environ.get(key, str(default)))
    except ValueError:
        return default


def _get_env_int(key: str, default: int) -> int:
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


def simulated_latency_s() -> float:
    return max(0.0, _get_env_float("SIM_LATENCY_MS", 0.0)) / 1000.0


def max_existing_issues() -> int:
    return _get_env_int("MAX_EXISTING_ISSUES", 5000)


# --- Metrics ---

class _Counters:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self.triage_calls = 0
            self.dedupe_calls = 0
            self.duplicates_found = 0
            self.total_ms = 0.0

    def record(self, kind: str, elapsed_ms: float, duplicate: bool = False) -> None:
        with self._lock:
            if kind == "triage":
                self.triage_calls += 1
            else:
                self.dedupe_calls += 1
                if duplicate:
                    self.duplicates_found += 1
            self.total_ms += elapsed_ms

    def snapshot(self) -> MetricsRes:
        with self._lock:
            calls = self.triage_calls + self.dedupe_calls
            return MetricsRes(
                triage_calls=self.triage_calls,
                dedupe_calls=self.dedupe_calls,
                duplicates_found=self.duplicates_found,
                avg_processing_ms=round(self.total_ms / calls, 3) if calls else 0.0,
            )


COUNTERS = _Counters()


# --- Service Functions ---

def triage_report(report: IssueReport) -> TriageResult:
    start = time.perf_counter()
    result = triage_engine.triage(report)
    COUNTERS.record("triage", (time.perf_counter() - start) * 1000)
    return result


def dedupe_report(report: IssueReport, existing: Sequence[ExistingIssue]) -> DedupeResult:
    start = time.perf_counter()
    result = dedupe_engine.check_duplicate(report, existing)
    COUNTERS.record(
        "dedupe", (time.perf_counter() - start) * 1000, duplicate=result.is_duplicate
    )
    return result


def batch_process(
    issues: Sequence[ExistingIssue], ids: Optional[List[str]] = None
) -> BatchRes:
    """Triage every selected issue and dedupe it against the rest of the batch.

    Ids that are not present in ``issues`` are skipped. A failure on one
    issue is reported in its result entry and does not stop the batch.
    """
    by_id = {issue.id: issue for issue in issues}
    selected = [issue.id for issue in issues] if ids is None else ids

    results = []
    processed = 0
    for ticket_id in selected:
        issue = by_id.get(ticket_id)
        if issue is None:
            continue
        try:
            report = issue.as_report()
            others = [other for other in issues if other.id != ticket_id]
            results.append(BatchItem(
                ticket_id=ticket_id,
                triage=triage_report(report),
                dedupe=dedupe_report(report, others),
            ))
            processed += 1
        except Exception as e:
            logger.exception("batch processing failed for %s: %s", ticket_id, e)
            results.append(BatchItem(ticket_id=ticket_id, error="Processing failed"))

    return BatchRes(processed=processed, results=results)


def get_metrics() -> MetricsRes:
    return COUNTERS.snapshot()
