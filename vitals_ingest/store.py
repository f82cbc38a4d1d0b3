"""
Persistent storage for canonical health series.

Each metric kind and the import-history ledger live in their own named
slot. Writes replace a whole slot at once, so concurrent readers never see
a half-written series.

Usage:
    store = HealthStore.open(Path("~/.vitals"))

    # Overwrite heart rate only if this import produced samples
    store.replace_kind_if_non_empty(MetricKind.HEART_RATE, samples)

    # Record the import
    store.append_history(entry)

    # Or both at once, all-or-nothing
    store.commit(records_by_kind, entry)

    snapshot = store.read_all()
"""

import json
import logging
import os
import tempfile
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .exceptions import PersistenceError
from .schema import (
    RECORD_MODELS,
    CanonicalRecord,
    ImportHistoryEntry,
    MetricKind,
)

logger = logging.getLogger(__name__)

SLOT_KEYS: dict[MetricKind, str] = {
    MetricKind.HEART_RATE: "heart-rate-data",
    MetricKind.STEPS: "step-count-data",
    MetricKind.WEIGHT: "weight-data",
    MetricKind.SLEEP: "sleep-data",
    MetricKind.VO2MAX: "vo2max-data",
    MetricKind.WORKOUTS: "workout-data",
    MetricKind.NUTRITION: "nutrition-data",
}
HISTORY_KEY = "health-import-history"

_HISTORY_ADAPTER = TypeAdapter(list[ImportHistoryEntry])
_SERIES_ADAPTERS = {kind: TypeAdapter(list[model]) for kind, model in RECORD_MODELS.items()}


class StoreSnapshot(BaseModel):
    """Every stored series and the ledger at one point in time."""

    series: dict[MetricKind, list[Any]] = Field(default_factory=dict)
    history: list[ImportHistoryEntry] = Field(default_factory=list)

    def counts(self) -> dict[MetricKind, int]:
        return {kind: len(self.series.get(kind, [])) for kind in MetricKind}


class MemoryBackend:
    """In-process slots, for local mode and tests."""

    def __init__(self):
        self._slots: dict[str, tuple] = {}

    def load(self, key: str) -> list[dict] | None:
        slot = self._slots.get(key)
        return None if slot is None else list(slot)

    def save(self, key: str, items: list[dict]) -> None:
        self._slots[key] = tuple(items)

    def delete(self, key: str) -> None:
        self._slots.pop(key, None)


class JsonFileBackend:
    """One JSON file per slot in `directory`, replaced atomically on write."""

    def __init__(self, directory: Path):
        self.directory = Path(directory).expanduser()

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def load(self, key: str) -> list[dict] | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Failed to read {path}: {e}") from e

    def save(self, key: str, items: list[dict]) -> None:
        path = self._path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=self.directory)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(items, f, indent=2)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceError(f"Failed to write {path}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Failed to delete slot {key}: {e}") from e


class HealthStore:
    """
    The only component allowed to touch stored health data.

    Merge policy is per kind: a kind is overwritten only when the current
    import produced at least one record of that kind. The import history is
    append-only.
    """

    def __init__(self, backend: MemoryBackend | JsonFileBackend | None = None):
        self.backend = backend or MemoryBackend()

    @classmethod
    def open(cls, data_dir: Path | None = None, local_mode: bool = False) -> "HealthStore":
        """Open a file-backed store, or an in-memory one in local mode."""
        if local_mode or data_dir is None:
            return cls(MemoryBackend())
        return cls(JsonFileBackend(data_dir))

    def replace_kind_if_non_empty(self, kind: MetricKind, records: Sequence[CanonicalRecord]) -> bool:
        """
        Overwrite the stored series for `kind`.

        Args:
            kind: Metric kind
            records: New canonical records for the kind

        Returns:
            True if the series was replaced, False if `records` was empty
        """
        if not records:
            return False
        self.backend.save(SLOT_KEYS[kind], [r.to_dict() for r in records])
        logger.info("Replaced %s series with %d records", kind.value, len(records))
        return True

    def commit(
        self,
        records_by_kind: Mapping[MetricKind, Sequence[CanonicalRecord]],
        entry: ImportHistoryEntry,
    ) -> None:
        """
        Apply one import as a unit.

        Every non-empty kind is replaced and `entry` is appended to the
        ledger. If any write fails the slots touched so far are restored to
        their previous contents before the error propagates.

        Args:
            records_by_kind: New canonical records per kind
            entry: Ledger entry describing the import

        Raises:
            PersistenceError: If a slot could not be written
        """
        writes = [
            (SLOT_KEYS[kind], [r.to_dict() for r in records])
            for kind, records in records_by_kind.items()
            if records
        ]
        previous_history = self.backend.load(HISTORY_KEY)
        writes.append((HISTORY_KEY, [*(previous_history or []), entry.to_dict()]))

        previous = {key: self.backend.load(key) for key, _ in writes}
        written: list[str] = []
        try:
            for key, items in writes:
                self.backend.save(key, items)
                written.append(key)
        except PersistenceError:
            self._restore(previous, written)
            raise

        for key, items in writes[:-1]:
            logger.info("Replaced %s slot with %d records", key, len(items))

    def _restore(self, previous: dict[str, list[dict] | None], keys: list[str]) -> None:
        for key in reversed(keys):
            try:
                if previous[key] is None:
                    self.backend.delete(key)
                else:
                    self.backend.save(key, previous[key])
            except PersistenceError:
                logger.exception("Failed to restore slot %s after a failed commit", key)

    def append_history(self, entry: ImportHistoryEntry) -> None:
        """Append an entry to the import ledger."""
        existing = self.backend.load(HISTORY_KEY) or []
        self.backend.save(HISTORY_KEY, [*existing, entry.to_dict()])

    def clear_kind(self, kind: MetricKind) -> None:
        """Drop the stored series for `kind`. The ledger is never cleared."""
        self.backend.delete(SLOT_KEYS[kind])
        logger.info("Cleared %s series", kind.value)

    def read_kind(self, kind: MetricKind) -> list[CanonicalRecord]:
        raw = self.backend.load(SLOT_KEYS[kind]) or []
        try:
            return _SERIES_ADAPTERS[kind].validate_python(raw)
        except ValidationError as e:
            raise PersistenceError(f"Stored {kind.value} series is corrupt: {e}") from e

    def history(self) -> list[ImportHistoryEntry]:
        raw = self.backend.load(HISTORY_KEY) or []
        try:
            return _HISTORY_ADAPTER.validate_python(raw)
        except ValidationError as e:
            raise PersistenceError(f"Stored import history is corrupt: {e}") from e

    def read_all(self) -> StoreSnapshot:
        """Current per-kind series and the ledger."""
        return StoreSnapshot(
            series={kind: self.read_kind(kind) for kind in MetricKind},
            history=self.history(),
        )
