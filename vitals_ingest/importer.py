"""
Import orchestration.

Sequences classification, parsing, inference/normalization, persistence
and caller notification for one file at a time.
"""

import asyncio
import logging
import threading
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from .classifier import classify
from .config import Settings
from .exceptions import FileReadError, UnsupportedFormatError, ImportInProgressError
from .inference import infer_tabular, infer_tree
from .messages import WorkerMessage
from .normalizer import ExtractionBatch
from .schema import ImportHistoryEntry, ImportResult, MetricKind, SourceFormat
from .store import HealthStore
from .tabular import parse_tabular
from .tree import parse_tree
from .worker import CancellationToken, HierarchicalWorker

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[WorkerMessage], None]

SNIFF_BYTES = 512


class HealthImporter:
    """
    Imports health export files into a HealthStore.

    Only one import runs at a time per importer. A failed or cancelled
    import leaves the store untouched.
    """

    def __init__(self, store: HealthStore, settings: Settings | None = None):
        self.store = store
        self.settings = settings or Settings()
        self._lock = threading.Lock()

    def import_file(
        self,
        path: str | Path,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> ImportResult:
        """
        Import one file.

        Args:
            path: File to import (.csv, .json or .xml)
            on_progress: Receives worker messages during hierarchical imports
            cancel_token: Lets the caller abandon a hierarchical import

        Returns:
            ImportResult with per-kind counts and the observed date range

        Raises:
            HealthImportError: Any fatal failure, with its stage
        """
        if not self._lock.acquire(blocking=False):
            raise ImportInProgressError("Another import is already running")
        try:
            return self._import(Path(path), on_progress, cancel_token)
        finally:
            self._lock.release()

    async def import_file_async(
        self,
        path: str | Path,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> ImportResult:
        """Await `import_file` without blocking the event loop."""
        return await asyncio.to_thread(self.import_file, path, on_progress, cancel_token)

    def _import(
        self,
        path: Path,
        on_progress: ProgressCallback | None,
        cancel_token: CancellationToken | None,
    ) -> ImportResult:
        source_format = classify(path.name, self._head(path) if not path.suffix else None)
        if source_format is SourceFormat.UNSUPPORTED:
            suffix = path.suffix.lstrip(".") or "unknown"
            raise UnsupportedFormatError(
                f"Unsupported file type: {suffix}. Please use CSV, JSON, or XML.",
                source=path.name,
            )

        size = self._size(path)
        logger.info("Importing %s (%s, %d bytes)", path.name, source_format.value, size)

        if source_format is SourceFormat.HIERARCHICAL:
            worker = HierarchicalWorker(path, self.settings, cancel_token)
            batch = worker.run(on_message=on_progress)
        else:
            batch = ExtractionBatch(max_skip_reasons=self.settings.max_skip_reasons)
            text = self._read_text(path)
            if source_format is SourceFormat.TABULAR:
                infer_tabular(parse_tabular(text, source=path.name), batch)
            else:
                infer_tree(parse_tree(text, source=path.name), batch)

        return self._commit(path, size, source_format, batch)

    def _commit(
        self,
        path: Path,
        size: int,
        source_format: SourceFormat,
        batch: ExtractionBatch,
    ) -> ImportResult:
        counts = batch.counts()
        date_range = batch.date_range()

        self.store.commit(
            batch.records,
            ImportHistoryEntry(
                imported_at=datetime.now(timezone.utc),
                source_file_name=path.name,
                source_file_size_bytes=size,
                source_format=source_format,
                per_kind_counts=counts,
                observed_date_range=date_range,
            ),
        )

        if batch.skipped:
            logger.warning("Skipped %d malformed records in %s", batch.skipped, path.name)

        return ImportResult(
            per_kind_counts=counts,
            observed_date_range=date_range,
            source_format=source_format,
            skipped_count=batch.skipped,
            skip_reasons=list(batch.skip_reasons),
        )

    @staticmethod
    def _size(path: Path) -> int:
        try:
            return path.stat().st_size
        except OSError as e:
            raise FileReadError(f"Error reading file: {e}", source=path.name) from e

    @staticmethod
    def _read_text(path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            raise FileReadError(f"Error reading file: {e}", source=path.name) from e

    @staticmethod
    def _head(path: Path) -> str | None:
        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                return f.read(SNIFF_BYTES)
        except OSError:
            return None
