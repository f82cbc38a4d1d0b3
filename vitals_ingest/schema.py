"""Canonical schema for imported health data."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, FiniteFloat, field_validator, model_validator
from pydantic.alias_generators import to_camel


class MetricKind(str, Enum):
    """Canonical metric categories."""

    HEART_RATE = "heartRate"
    STEPS = "steps"
    WEIGHT = "weight"
    SLEEP = "sleep"
    VO2MAX = "vo2max"
    WORKOUTS = "workouts"
    NUTRITION = "nutrition"


SAMPLE_KINDS = (
    MetricKind.HEART_RATE,
    MetricKind.STEPS,
    MetricKind.WEIGHT,
    MetricKind.SLEEP,
    MetricKind.VO2MAX,
)

DEFAULT_UNITS = {
    MetricKind.HEART_RATE: "bpm",
    MetricKind.STEPS: "count",
    MetricKind.WEIGHT: "kg",
    MetricKind.SLEEP: "hours",
    MetricKind.VO2MAX: "ml/kg/min",
}


class SourceFormat(str, Enum):
    """Interchange format of an import file."""

    TABULAR = "tabular"
    TREE = "tree"
    HIERARCHICAL = "hierarchical"
    UNSUPPORTED = "unsupported"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CanonicalModel(BaseModel):
    """Immutable model stored with camelCase keys."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for storage."""
        return self.model_dump(mode="json", by_alias=True)


class MetricSample(CanonicalModel):
    """
    Single point-in-time measurement.

    One series of these exists per sample kind (heart rate, steps,
    weight, sleep duration, VO2max).
    """

    date: datetime = Field(..., description="UTC timestamp of the measurement")
    value: FiniteFloat = Field(..., description="Measured value")
    unit: str = Field(..., description="Unit of the value")
    category: str | None = Field(None, description="Optional sub-category, e.g. sleep stage")

    @field_validator("date")
    @classmethod
    def to_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class WorkoutRecord(CanonicalModel):
    """Workout or training session."""

    date: datetime
    activity_type: str
    duration: FiniteFloat = Field(..., ge=0)
    duration_unit: str
    calories: FiniteFloat | None = None
    distance: FiniteFloat | None = None

    @field_validator("date")
    @classmethod
    def to_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class NutritionRecord(CanonicalModel):
    """Logged food item with macro totals."""

    date: datetime
    item_name: str
    calories: FiniteFloat = 0.0
    protein: FiniteFloat = 0.0
    carbs: FiniteFloat = 0.0
    fat: FiniteFloat = 0.0

    @field_validator("date")
    @classmethod
    def to_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


CanonicalRecord = MetricSample | WorkoutRecord | NutritionRecord

RECORD_MODELS: dict[MetricKind, type[CanonicalModel]] = {
    **{kind: MetricSample for kind in SAMPLE_KINDS},
    MetricKind.WORKOUTS: WorkoutRecord,
    MetricKind.NUTRITION: NutritionRecord,
}


class DateRange(CanonicalModel):
    """Inclusive span of observed timestamps."""

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def check_order(self) -> "DateRange":
        if self.start > self.end:
            raise ValueError(f"start {self.start} is after end {self.end}")
        return self


def empty_counts() -> dict[MetricKind, int]:
    """Per-kind counts with every kind present and zero."""
    return {kind: 0 for kind in MetricKind}


class ImportHistoryEntry(CanonicalModel):
    """Ledger entry describing one completed import."""

    imported_at: datetime
    source_file_name: str
    source_file_size_bytes: int = Field(..., ge=0)
    source_format: SourceFormat
    per_kind_counts: dict[MetricKind, int] = Field(default_factory=empty_counts)
    observed_date_range: DateRange | None = None

    @field_validator("source_format")
    @classmethod
    def reject_unsupported(cls, v: SourceFormat) -> SourceFormat:
        if v is SourceFormat.UNSUPPORTED:
            raise ValueError("history entries require a supported source format")
        return v


class ImportResult(CanonicalModel):
    """Summary returned to the caller after a successful import."""

    per_kind_counts: dict[MetricKind, int] = Field(default_factory=empty_counts)
    observed_date_range: DateRange | None = None
    source_format: SourceFormat
    skipped_count: int = 0
    skip_reasons: list[str] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(self.per_kind_counts.values())
