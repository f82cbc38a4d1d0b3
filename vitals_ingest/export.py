"""
Serialization of the stored series.

CSV output for every kind starts with a `type` column holding the metric
kind, so it re-imports through the type+value layout. JSON output for every
kind is an object keyed by metric kind, so it re-imports through the
per-kind collections of the tree parser.
"""

import json
from typing import Any

import pandas as pd

from .schema import CanonicalRecord, MetricKind, MetricSample, NutritionRecord, WorkoutRecord
from .store import StoreSnapshot

CSV_COLUMNS = [
    "type",
    "date",
    "value",
    "unit",
    "category",
    "activity",
    "calories",
    "distance",
    "food",
    "protein",
    "carbs",
    "fat",
]


def _row(kind: MetricKind, record: CanonicalRecord) -> dict[str, Any]:
    row: dict[str, Any] = {"type": kind.value, "date": record.to_dict()["date"]}
    if isinstance(record, MetricSample):
        row.update(value=record.value, unit=record.unit, category=record.category)
    elif isinstance(record, WorkoutRecord):
        row.update(
            value=record.duration,
            unit=record.duration_unit,
            activity=record.activity_type,
            calories=record.calories,
            distance=record.distance,
        )
    elif isinstance(record, NutritionRecord):
        row.update(
            value=record.calories,
            food=record.item_name,
            protein=record.protein,
            carbs=record.carbs,
            fat=record.fat,
        )
    return row


def _kinds(kind: MetricKind | None) -> list[MetricKind]:
    return list(MetricKind) if kind is None else [kind]


def export_csv(snapshot: StoreSnapshot, kind: MetricKind | None = None) -> str:
    """
    Render stored series as CSV.

    Args:
        snapshot: Store contents
        kind: Single kind to export, or None for every kind

    Returns:
        CSV text with a header row
    """
    rows = [
        _row(k, record)
        for k in _kinds(kind)
        for record in snapshot.series.get(k, [])
    ]
    frame = pd.DataFrame(rows, columns=CSV_COLUMNS)
    if kind is not None and rows:
        optional = [c for c in CSV_COLUMNS[3:] if frame[c].isna().all()]
        frame = frame.drop(columns=optional)
    return frame.to_csv(index=False)


def export_json(snapshot: StoreSnapshot, kind: MetricKind | None = None) -> str:
    """
    Render stored series as JSON.

    A single kind is an array of records, every kind is an object keyed by
    metric kind.
    """
    if kind is not None:
        payload: Any = [r.to_dict() for r in snapshot.series.get(kind, [])]
    else:
        payload = {
            k.value: [r.to_dict() for r in snapshot.series.get(k, [])]
            for k in MetricKind
        }
    return json.dumps(payload, indent=2)
