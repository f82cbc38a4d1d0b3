"""
Heuristic schema inference for tabular and tree inputs.

Column and field names vary across producers, so they are resolved to
metric kinds through an ordered strategy table. Resolution order, first
match wins:

1. a type field plus a value field (`TypeValueField`), the type string
   being classified per record;
2. per-metric named fields found by case-insensitive substring match
   against each kind's synonyms (`NamedFields`);
3. nothing (`Unresolved`): the record is not health data and is ignored.

Records of a tree collection (e.g. a "steps" array) already know their kind
and resolve to `HintedField` before the in-record strategies are tried.
"""

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .exceptions import MissingTemporalFieldError, RecordSkipped
from .normalizer import (
    ExtractionBatch,
    coerce_timestamp,
    make_nutrition,
    make_sample,
    make_workout,
)
from .schema import SAMPLE_KINDS, CanonicalRecord, MetricKind
from .tabular import TabularParseResult
from .tree import TreeDocument

logger = logging.getLogger(__name__)

DATE_PREFERRED = (
    "date",
    "datetime",
    "timestamp",
    "startdate",
    "start_date",
    "time",
    "creationdate",
    "createdat",
    "created_at",
)
DATE_SYNONYMS = ("date", "time", "timestamp")

TYPE_SYNONYMS = ("type", "metric", "category", "activity", "measurement")
VALUE_SYNONYMS = ("value", "amount", "reading")
UNIT_SYNONYMS = ("unit",)
CATEGORY_SYNONYMS = ("category", "stage")
DURATION_SYNONYMS = ("duration", "length", "time")
CALORIE_SYNONYMS = ("calorie", "energy", "kcal")
DISTANCE_SYNONYMS = ("distance", "length", "km", "mile")
FOOD_NAME_SYNONYMS = ("food", "meal", "item", "dish", "name", "description")
ACTIVITY_SYNONYMS = ("activitytype", "activity", "workout", "exercise", "sport", "type", "name")
PROTEIN_SYNONYMS = ("protein",)
CARB_SYNONYMS = ("carb",)
FAT_SYNONYMS = ("fat",)

# Keywords classifying the content of a type field.
TYPE_KEYWORDS: tuple[tuple[MetricKind, tuple[str, ...]], ...] = (
    (MetricKind.HEART_RATE, ("heart", "pulse")),
    (MetricKind.STEPS, ("step",)),
    (MetricKind.WEIGHT, ("weight", "mass")),
    (MetricKind.SLEEP, ("sleep",)),
    (MetricKind.VO2MAX, ("vo2", "oxygen")),
    (MetricKind.WORKOUTS, ("workout", "exercise")),
    (MetricKind.NUTRITION, ("food", "meal", "nutrition")),
)


def find_field(
    keys: Iterable[str],
    synonyms: Sequence[str],
    exclude: Iterable[str | None] = (),
) -> str | None:
    """Return the first key whose lowercased name contains any synonym."""
    skip = {k for k in exclude if k is not None}
    for key in keys:
        if key in skip:
            continue
        lowered = str(key).lower()
        if any(s in lowered for s in synonyms):
            return key
    return None


def find_date_field(keys: Sequence[str]) -> str | None:
    """Locate the date-like field, preferring well-known exact names."""
    lowered = {}
    for key in keys:
        lowered.setdefault(str(key).lower(), key)
    for name in DATE_PREFERRED:
        if name in lowered:
            return lowered[name]
    return find_field(keys, DATE_SYNONYMS)


def classify_type(type_value: Any) -> MetricKind | None:
    """Map the content of a type field to a metric kind."""
    if type_value is None:
        return None
    text = str(type_value).lower()
    for kind, keywords in TYPE_KEYWORDS:
        if any(k in text for k in keywords):
            return kind
    return None


# ----------------------------------------------------------------------------
# Resolved field layouts
# ----------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldBinding:
    """Fields feeding one metric kind, keyed by role (value, duration, fat, ...)."""

    kind: MetricKind
    roles: Mapping[str, str] = field(default_factory=dict)
    required: tuple[str, ...] = ()
    unit: str | None = None

    def present(self, record: Mapping[str, Any]) -> bool:
        return all(record.get(self.roles[role]) is not None for role in self.required)

    def get(self, record: Mapping[str, Any], role: str) -> Any:
        name = self.roles.get(role)
        return None if name is None else record.get(name)


@dataclass(frozen=True)
class TypeValueField:
    tag = "type_value"

    type_field: str
    value_field: str
    roles: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class NamedFields:
    tag = "named"

    bindings: tuple[FieldBinding, ...]


@dataclass(frozen=True)
class HintedField:
    tag = "hinted"

    binding: FieldBinding


@dataclass(frozen=True)
class Unresolved:
    tag = "unresolved"


ResolvedField = TypeValueField | NamedFields | HintedField | Unresolved


def _roles(keys: Sequence[str], exclude: set[str], **synonyms: Sequence[str]) -> dict[str, str]:
    roles = {}
    for role, names in synonyms.items():
        found = find_field(keys, names, exclude)
        if found is not None:
            roles[role] = found
    return roles


# ----------------------------------------------------------------------------
# Strategy table
# ----------------------------------------------------------------------------


Binder = Callable[[Sequence[str], set[str], "FieldStrategy"], FieldBinding | None]
Extractor = Callable[[Mapping[str, Any], datetime, FieldBinding], CanonicalRecord]


@dataclass(frozen=True)
class FieldStrategy:
    kind: MetricKind
    synonyms: tuple[str, ...]
    binder: Binder
    extractor: Extractor


def _bind_sample(keys, exclude, strategy):
    column = find_field(keys, strategy.synonyms, exclude)
    if column is None:
        return None
    unit = None
    if strategy.kind is MetricKind.WEIGHT:
        lowered = column.lower()
        unit = "lb" if ("lb" in lowered or "pound" in lowered) else "kg"
    return FieldBinding(strategy.kind, {"value": column}, required=("value",), unit=unit)


def _bind_workout(keys, exclude, strategy):
    name = find_field(keys, strategy.synonyms, exclude)
    if name is None:
        return None
    duration = find_field(keys, DURATION_SYNONYMS, exclude | {name})
    if duration is None:
        return None
    roles = {"activity": name, "duration": duration}
    roles.update(
        _roles(keys, exclude | {name, duration}, calories=CALORIE_SYNONYMS, distance=DISTANCE_SYNONYMS)
    )
    return FieldBinding(strategy.kind, roles, required=("activity", "duration"))


def _bind_nutrition(keys, exclude, strategy):
    food = find_field(keys, strategy.synonyms, exclude)
    if food is None:
        return None
    calories = find_field(keys, CALORIE_SYNONYMS, exclude | {food})
    if calories is None:
        return None
    roles = {"name": food, "calories": calories}
    roles.update(
        _roles(
            keys,
            exclude | {food, calories},
            protein=PROTEIN_SYNONYMS,
            carbs=CARB_SYNONYMS,
            fat=FAT_SYNONYMS,
        )
    )
    return FieldBinding(strategy.kind, roles, required=("name", "calories"))


def _extract_sample(record, date, binding):
    unit = binding.unit or binding.get(record, "unit")
    return make_sample(
        binding.kind,
        date,
        binding.get(record, "value"),
        unit=unit,
        category=binding.get(record, "category"),
    )


def _extract_workout(record, date, binding):
    return make_workout(
        date,
        binding.get(record, "activity"),
        binding.get(record, "duration"),
        duration_unit=binding.get(record, "unit") or "minutes",
        calories=binding.get(record, "calories"),
        distance=binding.get(record, "distance"),
    )


def _extract_nutrition(record, date, binding):
    return make_nutrition(
        date,
        binding.get(record, "name"),
        calories=binding.get(record, "calories"),
        protein=binding.get(record, "protein"),
        carbs=binding.get(record, "carbs"),
        fat=binding.get(record, "fat"),
    )


STRATEGIES: tuple[FieldStrategy, ...] = (
    FieldStrategy(MetricKind.HEART_RATE, ("heart", "pulse", "hr"), _bind_sample, _extract_sample),
    FieldStrategy(MetricKind.STEPS, ("step", "count"), _bind_sample, _extract_sample),
    FieldStrategy(MetricKind.WEIGHT, ("weight", "mass", "kg", "lb"), _bind_sample, _extract_sample),
    FieldStrategy(MetricKind.SLEEP, ("sleep", "slept", "bedtime"), _bind_sample, _extract_sample),
    FieldStrategy(MetricKind.VO2MAX, ("vo2", "oxygen", "aerobic"), _bind_sample, _extract_sample),
    FieldStrategy(MetricKind.WORKOUTS, ("workout", "exercise", "activity"), _bind_workout, _extract_workout),
    FieldStrategy(MetricKind.NUTRITION, ("food", "meal", "nutrition"), _bind_nutrition, _extract_nutrition),
)

STRATEGY_BY_KIND = {s.kind: s for s in STRATEGIES}


def _bind_hinted(keys: Sequence[str], date_field: str, kind: MetricKind) -> FieldBinding | None:
    """Bind the fields of a record whose kind comes from its collection."""
    exclude = {date_field}
    strategy = STRATEGY_BY_KIND[kind]

    if kind in SAMPLE_KINDS:
        value = find_field(keys, VALUE_SYNONYMS, exclude) or find_field(keys, strategy.synonyms, exclude)
        if value is None:
            return None
        roles = {"value": value}
        roles.update(
            _roles(keys, exclude | {value}, unit=UNIT_SYNONYMS, category=CATEGORY_SYNONYMS)
        )
        return FieldBinding(kind, roles, required=("value",))

    if kind is MetricKind.WORKOUTS:
        duration = find_field(keys, DURATION_SYNONYMS, exclude) or find_field(keys, VALUE_SYNONYMS, exclude)
        if duration is None:
            return None
        roles = {"duration": duration}
        roles.update(
            _roles(
                keys,
                exclude | {duration},
                activity=ACTIVITY_SYNONYMS,
                unit=UNIT_SYNONYMS,
                calories=CALORIE_SYNONYMS,
                distance=DISTANCE_SYNONYMS,
            )
        )
        return FieldBinding(kind, roles, required=("duration",))

    roles = _roles(
        keys,
        exclude,
        name=FOOD_NAME_SYNONYMS,
        calories=CALORIE_SYNONYMS + VALUE_SYNONYMS,
        protein=PROTEIN_SYNONYMS,
        carbs=CARB_SYNONYMS,
        fat=FAT_SYNONYMS,
    )
    return FieldBinding(kind, roles)


def resolve_fields(
    keys: Sequence[str],
    date_field: str,
    hint: MetricKind | None = None,
) -> ResolvedField:
    """
    Resolve field names to a layout.

    Args:
        keys: Column or field names in source order
        date_field: The already located date field, never bound as a metric
        hint: Kind implied by the enclosing tree collection, if any

    Returns:
        ResolvedField variant
    """
    if hint is not None:
        binding = _bind_hinted(keys, date_field, hint)
        if binding is not None:
            return HintedField(binding)

    exclude = {date_field}

    type_field = find_field(keys, TYPE_SYNONYMS, exclude)
    value_field = find_field(keys, VALUE_SYNONYMS, exclude | {type_field})
    if type_field is not None and value_field is not None:
        taken = exclude | {type_field, value_field}
        roles = _roles(
            keys,
            taken,
            unit=UNIT_SYNONYMS,
            category=CATEGORY_SYNONYMS,
            activity=("activity", "workout", "exercise", "sport"),
            name=FOOD_NAME_SYNONYMS,
            calories=CALORIE_SYNONYMS,
            distance=DISTANCE_SYNONYMS,
            protein=PROTEIN_SYNONYMS,
            carbs=CARB_SYNONYMS,
            fat=FAT_SYNONYMS,
        )
        return TypeValueField(type_field, value_field, roles)

    bindings = []
    for strategy in STRATEGIES:
        binding = strategy.binder(keys, exclude, strategy)
        if binding is not None:
            bindings.append(binding)
    if bindings:
        return NamedFields(tuple(bindings))

    return Unresolved()


# ----------------------------------------------------------------------------
# Record extraction
# ----------------------------------------------------------------------------


def _extract_type_value(record: Mapping[str, Any], date: datetime, resolved: TypeValueField):
    type_value = record.get(resolved.type_field)
    kind = classify_type(type_value)
    value = record.get(resolved.value_field)
    if kind is None or value is None:
        return None

    def role(name):
        column = resolved.roles.get(name)
        return None if column is None else record.get(column)

    if kind in SAMPLE_KINDS:
        record_out = make_sample(kind, date, value, unit=role("unit"), category=role("category"))
    elif kind is MetricKind.WORKOUTS:
        record_out = make_workout(
            date,
            role("activity") or type_value,
            value,
            duration_unit=role("unit") or "minutes",
            calories=role("calories"),
            distance=role("distance"),
        )
    else:
        record_out = make_nutrition(
            date,
            role("name"),
            calories=value,
            protein=role("protein"),
            carbs=role("carbs"),
            fat=role("fat"),
        )
    return kind, record_out


def extract_record(
    record: Mapping[str, Any],
    date_field: str,
    resolved: ResolvedField,
    batch: ExtractionBatch,
) -> None:
    """Normalize one row/object into the batch, absorbing per-record failures."""
    if isinstance(resolved, Unresolved):
        return

    try:
        date = coerce_timestamp(record.get(date_field))
    except RecordSkipped as e:
        logger.debug("Skipping record: %s", e.reason)
        batch.skip(e.reason)
        return

    if isinstance(resolved, TypeValueField):
        try:
            produced = _extract_type_value(record, date, resolved)
        except RecordSkipped as e:
            logger.debug("Skipping record: %s", e.reason)
            batch.skip(e.reason)
            return
        if produced is not None:
            batch.add(*produced)
        return

    bindings = resolved.bindings if isinstance(resolved, NamedFields) else (resolved.binding,)
    for binding in bindings:
        if not binding.present(record):
            if isinstance(resolved, HintedField):
                logger.debug("Skipping %s record without a value", binding.kind.value)
                batch.skip(f"{binding.kind.value} record without a value")
            continue
        extractor = STRATEGY_BY_KIND[binding.kind].extractor
        try:
            batch.add(binding.kind, extractor(record, date, binding))
        except RecordSkipped as e:
            logger.debug("Skipping %s field: %s", binding.kind.value, e.reason)
            batch.skip(e.reason)


def infer_tabular(parsed: TabularParseResult, batch: ExtractionBatch) -> None:
    """
    Extract canonical records from parsed delimited rows.

    The column layout is resolved once from the header. A file with rows
    but no date-like column fails the whole run.
    """
    for problem in parsed.malformed:
        batch.skip(problem)

    if not parsed.rows:
        return

    date_field = find_date_field(parsed.columns)
    if date_field is None:
        raise MissingTemporalFieldError(
            f"Couldn't find a date column among: {', '.join(map(str, parsed.columns))}"
        )

    resolved = resolve_fields(parsed.columns, date_field)
    logger.info("Resolved tabular layout %s from columns %s", resolved.tag, parsed.columns)
    for row in parsed.rows:
        extract_record(row, date_field, resolved, batch)


def infer_tree(document: TreeDocument, batch: ExtractionBatch) -> None:
    """
    Extract canonical records from a parsed structured document.

    Fields are resolved per object since keys vary between objects. The run
    fails only if no object anywhere carries a date-like field.
    """
    groups = document.groups()
    objects_seen = 0
    dated_seen = 0

    for hint, items in groups:
        for item in items:
            if not isinstance(item, Mapping):
                batch.skip(f"non-object entry: {item!r:.40}")
                continue
            objects_seen += 1
            keys = list(item.keys())
            date_field = find_date_field(keys)
            if date_field is None:
                batch.skip("object without a date field")
                continue
            dated_seen += 1
            extract_record(item, date_field, resolve_fields(keys, date_field, hint), batch)

    if objects_seen and not dated_seen:
        raise MissingTemporalFieldError("Couldn't find a date field in any object of the document")
