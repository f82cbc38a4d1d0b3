"""
Canonical normalization.

Converts loosely-typed intermediate values into the canonical entities of
`schema.py`. Everything here is pure: failures raise `RecordSkipped` and
the caller decides whether to count or log them.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from numbers import Real
from typing import Any

from dateutil import parser as date_parser
from pydantic import ValidationError

from .exceptions import RecordSkipped
from .schema import (
    DEFAULT_UNITS,
    SAMPLE_KINDS,
    CanonicalRecord,
    DateRange,
    MetricKind,
    MetricSample,
    NutritionRecord,
    WorkoutRecord,
    empty_counts,
)


def coerce_timestamp(value: Any) -> datetime:
    """
    Best-effort timestamp normalization to an aware UTC datetime.

    Strings go through dateutil, numbers are Unix epoch seconds and naive
    results are taken to be UTC.
    """
    if value is None or isinstance(value, bool):
        raise RecordSkipped(f"missing or invalid date: {value!r}")
    try:
        if isinstance(value, datetime):
            dt = value
        elif isinstance(value, Real):
            dt = datetime.fromtimestamp(float(value), tz=timezone.utc)
        else:
            text = str(value).strip()
            if not text:
                raise RecordSkipped("empty date")
            dt = date_parser.parse(text)
    except (ValueError, OverflowError, OSError) as e:
        raise RecordSkipped(f"unparseable date {value!r}: {e}") from e

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def coerce_number(value: Any, label: str = "value") -> float:
    """Convert a number or numeric string to a finite float."""
    if value is None or isinstance(value, bool):
        raise RecordSkipped(f"missing {label}")
    if isinstance(value, (Real, Decimal)):
        number = float(value)
    else:
        text = str(value).strip()
        try:
            number = float(text)
        except ValueError as e:
            raise RecordSkipped(f"non-numeric {label}: {value!r}") from e
    if not math.isfinite(number):
        raise RecordSkipped(f"non-finite {label}: {value!r}")
    return number


def optional_number(value: Any, label: str = "value") -> float | None:
    """Like coerce_number, but blank or invalid input yields None."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return coerce_number(value, label)
    except RecordSkipped:
        return None


def _text(value: Any, default: str) -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def make_sample(
    kind: MetricKind,
    date: Any,
    value: Any,
    unit: Any = None,
    category: Any = None,
) -> MetricSample:
    """Build a MetricSample for one of the sample kinds."""
    if kind not in SAMPLE_KINDS:
        raise ValueError(f"{kind.value} is not a sample kind")

    number = coerce_number(value, f"{kind.value} value")
    if kind is MetricKind.STEPS:
        number = float(int(number))

    try:
        return MetricSample(
            date=coerce_timestamp(date),
            value=number,
            unit=_text(unit, DEFAULT_UNITS[kind]),
            category=None if category is None else str(category),
        )
    except ValidationError as e:
        raise RecordSkipped(f"invalid {kind.value} sample: {e.errors()[0]['msg']}") from e


def make_workout(
    date: Any,
    activity_type: Any,
    duration: Any,
    duration_unit: Any = None,
    calories: Any = None,
    distance: Any = None,
) -> WorkoutRecord:
    """Build a WorkoutRecord; duration must be finite and non-negative."""
    minutes = coerce_number(duration, "workout duration")
    if minutes < 0:
        raise RecordSkipped(f"negative workout duration: {duration!r}")

    return WorkoutRecord(
        date=coerce_timestamp(date),
        activity_type=_text(activity_type, "unknown"),
        duration=minutes,
        duration_unit=_text(duration_unit, "minutes"),
        calories=optional_number(calories, "calories"),
        distance=optional_number(distance, "distance"),
    )


def make_nutrition(
    date: Any,
    item_name: Any,
    calories: Any = None,
    protein: Any = None,
    carbs: Any = None,
    fat: Any = None,
) -> NutritionRecord:
    """Build a NutritionRecord; at least one macro or calorie value must be valid."""
    macros = {
        "calories": optional_number(calories, "calories"),
        "protein": optional_number(protein, "protein"),
        "carbs": optional_number(carbs, "carbs"),
        "fat": optional_number(fat, "fat"),
    }
    if all(v is None for v in macros.values()):
        raise RecordSkipped("nutrition record without any valid calorie or macro value")

    return NutritionRecord(
        date=coerce_timestamp(date),
        item_name=_text(item_name, "Unknown"),
        **{name: v or 0.0 for name, v in macros.items()},
    )


@dataclass
class ExtractionBatch:
    """
    Canonical records produced by a single import run.

    Records are kept per kind until the run completes; skipped records are
    counted and a bounded number of reasons is retained.
    """

    max_skip_reasons: int = 50
    records: dict[MetricKind, list[CanonicalRecord]] = field(
        default_factory=lambda: {kind: [] for kind in MetricKind}
    )
    skipped: int = 0
    skip_reasons: list[str] = field(default_factory=list)

    def add(self, kind: MetricKind, record: CanonicalRecord) -> None:
        self.records[kind].append(record)

    def skip(self, reason: str) -> None:
        self.skipped += 1
        if len(self.skip_reasons) < self.max_skip_reasons:
            self.skip_reasons.append(reason)

    def counts(self) -> dict[MetricKind, int]:
        counts = empty_counts()
        for kind, items in self.records.items():
            counts[kind] = len(items)
        return counts

    def date_range(self) -> DateRange | None:
        """Min/max timestamp across every kind touched in this run."""
        dates = [r.date for items in self.records.values() for r in items]
        if not dates:
            return None
        return DateRange(start=min(dates), end=max(dates))
