"""Summary statistics over stored series."""

from datetime import date
from typing import Any

import numpy as np

from .schema import CanonicalRecord, MetricKind, MetricSample, NutritionRecord, WorkoutRecord


def record_value(record: CanonicalRecord) -> float:
    """
    Headline number of a record.

    Samples use their value, workouts their duration and nutrition records
    their calories.
    """
    if isinstance(record, MetricSample):
        return record.value
    if isinstance(record, WorkoutRecord):
        return record.duration
    if isinstance(record, NutritionRecord):
        return record.calories
    raise TypeError(f"Unknown record type: {type(record).__name__}")


def summarize_series(kind: MetricKind, records: list[CanonicalRecord]) -> dict[str, Any]:
    """
    Aggregate one stored series.

    Args:
        kind: Metric kind of the series
        records: Canonical records of the kind

    Returns:
        Dict with count, first/last timestamps and mean/min/max/std of the
        headline value (absent when the series is empty)
    """
    summary: dict[str, Any] = {"kind": kind.value, "count": len(records)}
    if not records:
        return summary

    values = np.array([record_value(r) for r in records], dtype=float)
    dates = sorted(r.date for r in records)

    summary["first"] = dates[0]
    summary["last"] = dates[-1]
    summary["mean"] = float(np.mean(values))
    summary["min"] = float(np.min(values))
    summary["max"] = float(np.max(values))
    summary["std"] = float(np.std(values))
    return summary


def daily_totals(records: list[CanonicalRecord]) -> dict[date, float]:
    """Sum of headline values per UTC calendar day, in date order."""
    buckets: dict[date, list[float]] = {}
    for record in sorted(records, key=lambda r: r.date):
        buckets.setdefault(record.date.date(), []).append(record_value(record))
    return {day: float(np.sum(values)) for day, values in buckets.items()}
