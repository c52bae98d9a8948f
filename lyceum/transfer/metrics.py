"""Prometheus metrics helpers for bulk transfers."""

from __future__ import annotations

from typing import Literal

from prometheus_client import Counter, Histogram

_rows_counter = Counter(
    "transfer_rows_total",
    "Rows processed by the importer, by section and outcome.",
    ["section", "outcome"],
)
_phase_failures = Counter(
    "transfer_phase_failures_total",
    "Import phases aborted and rolled back.",
    ["section"],
)
_conflict_cascades = Counter(
    "transfer_conflict_cascades_total",
    "Rows removed by conflict cascades, by table.",
    ["table"],
)
_run_duration = Histogram(
    "transfer_run_duration_seconds",
    "Duration of transfer runs in seconds.",
    ["kind"],
    buckets=(0.1, 0.5, 1, 2, 5, 10, 30, 60, 120, 300, 900),
)


def record_rows(section: str, *, succeeded: int, failed: int) -> None:
    """Add a finished phase's row counts."""

    if succeeded:
        _rows_counter.labels(section=section, outcome="success").inc(succeeded)
    if failed:
        _rows_counter.labels(section=section, outcome="failure").inc(failed)


def record_phase_failure(section: str) -> None:
    _phase_failures.labels(section=section).inc()


def record_cascade(table: str, count: int) -> None:
    if count:
        _conflict_cascades.labels(table=table).inc(count)


def record_run_duration(kind: Literal["import", "export", "repair", "clear"], duration_seconds: float) -> None:
    _run_duration.labels(kind=kind).observe(duration_seconds)
