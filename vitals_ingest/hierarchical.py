"""
Extraction from hierarchical health-export markup.

The export holds `Record`, `Workout` and `FoodItem` elements. They are
processed in three passes over the parsed document; every processed
element advances a shared counter driving percent-complete messages.

A single malformed element is logged and skipped, it never aborts the run.
"""

import logging
import xml.etree.ElementTree as ET
from collections.abc import Callable
from pathlib import Path

from .exceptions import RecordSkipped, StructuralParseError
from .messages import CompleteMessage, ProgressMessage, StatusMessage, TotalMessage, WorkerMessage
from .normalizer import (
    ExtractionBatch,
    coerce_number,
    coerce_timestamp,
    make_nutrition,
    make_sample,
    make_workout,
)
from .schema import MetricKind

logger = logging.getLogger(__name__)

Emit = Callable[[WorkerMessage], None]

# Substring of the record type identifier -> kind, first match wins
RECORD_TYPES: tuple[tuple[str, MetricKind], ...] = (
    ("HeartRate", MetricKind.HEART_RATE),
    ("StepCount", MetricKind.STEPS),
    ("BodyMass", MetricKind.WEIGHT),
    ("VO2Max", MetricKind.VO2MAX),
    ("SleepAnalysis", MetricKind.SLEEP),
)

NUTRIENT_NAMES = {
    "calories": ("calories", "energy", "kcal"),
    "protein": ("protein",),
    "carbs": ("carbohydrate", "carbohydrates", "carbs"),
    "fat": ("fat", "total fat"),
}

COUNTED_TAGS = ("Record", "Workout", "FoodItem")


def record_kind(type_identifier: str | None) -> MetricKind | None:
    """Match a record type identifier to a metric kind by substring."""
    if not type_identifier:
        return None
    for fragment, kind in RECORD_TYPES:
        if fragment in type_identifier:
            return kind
    return None


class _Progress:
    """Counts processed elements and emits percent updates at a fixed cadence."""

    def __init__(self, total: int, every: int, emit: Emit):
        self.total = total
        self.every = every
        self.emit = emit
        self.processed = 0
        self.last_percent = -1

    def advance(self) -> None:
        self.processed += 1
        if self.processed % self.every == 0 or self.processed == self.total:
            self._send()

    def finish(self) -> None:
        if self.last_percent < 100:
            self.processed = self.total
            self._send()

    def _send(self) -> None:
        percent = 100 if not self.total else round(self.processed / self.total * 100)
        percent = min(percent, 100)
        if percent > self.last_percent:
            self.last_percent = percent
            self.emit(ProgressMessage(percent=percent))


def parse_document(path: Path) -> ET.Element:
    """Parse the markup file, raising StructuralParseError on invalid markup."""
    try:
        return ET.parse(path).getroot()
    except ET.ParseError as e:
        raise StructuralParseError(f"XML parsing error: {e}", source=path.name) from e


def _sleep_hours(start_value: str, end_value: str | None) -> float:
    if not end_value:
        raise RecordSkipped("sleep record without endDate")
    start = coerce_timestamp(start_value)
    end = coerce_timestamp(end_value)
    hours = (end - start).total_seconds() / 3600
    if hours <= 0:
        raise RecordSkipped(f"non-positive sleep duration between {start_value} and {end_value}")
    return hours


def _process_records(root: ET.Element, batch: ExtractionBatch, progress: _Progress) -> None:
    for element in root.iter("Record"):
        try:
            _process_record(element, batch)
        except RecordSkipped as e:
            logger.debug("Skipping record: %s", e.reason)
            batch.skip(e.reason)
        progress.advance()


def _process_record(element: ET.Element, batch: ExtractionBatch) -> None:
    kind = record_kind(element.get("type"))
    if kind is None:
        return

    value = element.get("value")
    start = element.get("startDate")
    if not value or not start:
        raise RecordSkipped(f"{kind.value} record without value or startDate")

    if kind is MetricKind.SLEEP:
        hours = _sleep_hours(start, element.get("endDate"))
        batch.add(kind, make_sample(kind, start, hours, unit="hours", category=value))
        return

    batch.add(kind, make_sample(kind, start, value, unit=element.get("unit")))


def _process_workouts(root: ET.Element, batch: ExtractionBatch, progress: _Progress) -> None:
    for element in root.iter("Workout"):
        try:
            start = element.get("startDate")
            duration = element.get("duration")
            if not start or not duration:
                raise RecordSkipped("workout without startDate or duration")
            batch.add(
                MetricKind.WORKOUTS,
                make_workout(
                    start,
                    element.get("workoutActivityType") or "unknown",
                    duration,
                    duration_unit=element.get("durationUnit") or "min",
                    calories=element.get("totalEnergyBurned"),
                    distance=element.get("totalDistance"),
                ),
            )
        except RecordSkipped as e:
            logger.debug("Skipping workout: %s", e.reason)
            batch.skip(e.reason)
        progress.advance()


def _nutrient_totals(item: ET.Element) -> dict[str, float | None]:
    totals: dict[str, float | None] = {macro: None for macro in NUTRIENT_NAMES}
    for nutrient in item.iter("Nutrient"):
        name = nutrient.get("description") or nutrient.get("type") or nutrient.get("name")
        raw = nutrient.get("value")
        if not name or not raw:
            continue
        name = name.strip().lower()
        for macro, synonyms in NUTRIENT_NAMES.items():
            if name in synonyms:
                try:
                    amount = coerce_number(raw, name)
                except RecordSkipped as e:
                    logger.debug("Ignoring nutrient: %s", e.reason)
                    break
                totals[macro] = (totals[macro] or 0.0) + amount
                break
    return totals


def _process_nutrition(root: ET.Element, batch: ExtractionBatch, progress: _Progress) -> None:
    for item in root.iter("FoodItem"):
        try:
            date = item.get("creationDate") or item.get("startDate")
            if not date:
                raise RecordSkipped("food item without a date")
            name = item.get("description") or item.get("name") or "Unknown Food"
            batch.add(MetricKind.NUTRITION, make_nutrition(date, name, **_nutrient_totals(item)))
        except RecordSkipped as e:
            logger.debug("Skipping food item: %s", e.reason)
            batch.skip(e.reason)
        progress.advance()


def extract_hierarchical(
    root: ET.Element,
    emit: Emit,
    progress_every: int = 1000,
    max_skip_reasons: int = 50,
) -> ExtractionBatch:
    """
    Run the three extraction passes over a parsed export.

    Args:
        root: Root element of the export
        emit: Receives status, total and progress messages
        progress_every: Progress cadence in processed elements
        max_skip_reasons: Skip reasons retained in the batch

    Returns:
        ExtractionBatch with the canonical records
    """
    batch = ExtractionBatch(max_skip_reasons=max_skip_reasons)

    emit(StatusMessage(message="Counting total records..."))
    total = sum(1 for el in root.iter() if el.tag in COUNTED_TAGS)
    emit(TotalMessage(count=total))
    progress = _Progress(total, progress_every, emit)

    emit(StatusMessage(message="Processing health records..."))
    _process_records(root, batch, progress)

    emit(StatusMessage(message="Processing workout records..."))
    _process_workouts(root, batch, progress)

    emit(StatusMessage(message="Processing nutrition records..."))
    _process_nutrition(root, batch, progress)

    progress.finish()
    return batch


def run_extraction(
    path: Path,
    emit: Emit,
    progress_every: int = 1000,
    max_skip_reasons: int = 50,
) -> CompleteMessage:
    """Parse `path` and extract it, returning the final complete message."""
    emit(StatusMessage(message="Parsing XML data..."))
    root = parse_document(path)
    batch = extract_hierarchical(root, emit, progress_every, max_skip_reasons)
    stats = {kind.value: count for kind, count in batch.counts().items()}
    return CompleteMessage(batch=batch, stats=stats)
