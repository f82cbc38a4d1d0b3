"""
Vitals Ingest

Imports personal health and fitness exports (CSV, JSON and XML) into a
single normalized local store.
"""

from .classifier import classify
from .config import Settings
from .exceptions import (
    FileReadError,
    HealthImportError,
    ImportCancelledError,
    ImportInProgressError,
    MissingTemporalFieldError,
    PersistenceError,
    RecordSkipped,
    StructuralParseError,
    UnsupportedFormatError,
    WorkerFaultError,
)
from .export import export_csv, export_json
from .importer import HealthImporter
from .schema import (
    DateRange,
    ImportHistoryEntry,
    ImportResult,
    MetricKind,
    MetricSample,
    NutritionRecord,
    SourceFormat,
    WorkoutRecord,
)
from .store import HealthStore, JsonFileBackend, MemoryBackend, StoreSnapshot
from .worker import CancellationToken

__version__ = "0.1.0"

__all__ = [
    "HealthImporter",
    "HealthStore",
    "JsonFileBackend",
    "MemoryBackend",
    "StoreSnapshot",
    "CancellationToken",
    "Settings",
    "classify",
    "export_csv",
    "export_json",
    "MetricKind",
    "SourceFormat",
    "MetricSample",
    "WorkoutRecord",
    "NutritionRecord",
    "DateRange",
    "ImportHistoryEntry",
    "ImportResult",
    "HealthImportError",
    "UnsupportedFormatError",
    "FileReadError",
    "StructuralParseError",
    "MissingTemporalFieldError",
    "WorkerFaultError",
    "ImportCancelledError",
    "ImportInProgressError",
    "PersistenceError",
    "RecordSkipped",
]
