"""Structured document (JSON) parsing."""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from .exceptions import StructuralParseError
from .schema import MetricKind

logger = logging.getLogger(__name__)

# Top-level keys holding a per-metric collection, checked case-insensitively.
COLLECTION_KEYS: dict[MetricKind, tuple[str, ...]] = {
    MetricKind.HEART_RATE: ("heartrate", "heart_rate"),
    MetricKind.STEPS: ("steps", "stepcount", "step_count"),
    MetricKind.WEIGHT: ("weight", "bodymass", "body_mass"),
    MetricKind.SLEEP: ("sleep", "sleepdata", "sleep_data"),
    MetricKind.VO2MAX: ("vo2max", "vo2_max"),
    MetricKind.WORKOUTS: ("workouts", "workout", "exercises", "exercise"),
    MetricKind.NUTRITION: ("nutrition", "meals", "food"),
}


@dataclass
class TreeDocument:
    """
    Parsed document.

    Either a flat list of loosely-typed `records`, or `collections` of
    records keyed by the metric kind their top-level key names.
    """

    records: list[Any] = field(default_factory=list)
    collections: dict[MetricKind, list[Any]] = field(default_factory=dict)

    def groups(self) -> list[tuple[MetricKind | None, list[Any]]]:
        """Records paired with their kind hint (None for unhinted records)."""
        groups: list[tuple[MetricKind | None, list[Any]]] = []
        if self.records:
            groups.append((None, self.records))
        groups.extend(self.collections.items())
        return groups


def parse_tree(text: str, source: str | None = None) -> TreeDocument:
    """
    Parse a structured document.

    Args:
        text: Raw file contents
        source: File name used in error messages

    Returns:
        TreeDocument

    Raises:
        StructuralParseError: If the text is not a JSON array or object
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise StructuralParseError(f"Error parsing JSON: {e}", source=source) from e

    if isinstance(data, list):
        return TreeDocument(records=data)

    if not isinstance(data, dict):
        raise StructuralParseError(
            f"Error parsing JSON: expected an array or object, got {type(data).__name__}",
            source=source,
        )

    if not data:
        return TreeDocument()

    lowered = {str(k).lower(): k for k in data}
    collections: dict[MetricKind, list[Any]] = {}
    for kind, names in COLLECTION_KEYS.items():
        for name in names:
            key = lowered.get(name)
            if key is None:
                continue
            value = data[key]
            if isinstance(value, list):
                collections[kind] = value
                break
            if isinstance(value, dict):
                collections[kind] = [value]
                break

    if collections:
        logger.info("Found collections: %s", ", ".join(k.value for k in collections))
        return TreeDocument(collections=collections)

    # A lone object is treated as a single record.
    return TreeDocument(records=[data])
