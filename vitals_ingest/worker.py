"""
Background worker for hierarchical exports.

The extraction runs in a separate process. The only link between caller
and worker is a one-way queue of `messages.WorkerMessage` objects; the
last message of a worker is always `complete` or `error`. Cancelling the
token terminates the process and drops anything it buffered.
"""

import logging
import multiprocessing
import queue as queue_module
import threading
from collections.abc import Callable
from pathlib import Path

from .config import Settings
from .exceptions import (
    FileReadError,
    ImportCancelledError,
    StructuralParseError,
    WorkerFaultError,
)
from .hierarchical import run_extraction
from .messages import CompleteMessage, ErrorMessage, Message, WorkerMessage
from .normalizer import ExtractionBatch

logger = logging.getLogger(__name__)


class CancellationToken:
    """Set by the caller to abandon a running import."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def run_worker(path: str, channel, progress_every: int, max_skip_reasons: int) -> None:
    """
    Worker process entry point.

    Args:
        path: Markup file to extract
        channel: multiprocessing queue receiving every message
        progress_every: Progress cadence in processed elements
        max_skip_reasons: Skip reasons retained in the batch
    """
    try:
        complete = run_extraction(Path(path), channel.put, progress_every, max_skip_reasons)
    except StructuralParseError as e:
        channel.put(ErrorMessage(kind="parse", message=e.message))
        return
    except OSError as e:
        channel.put(ErrorMessage(kind="read", message=f"Error reading file: {e}"))
        return
    except Exception as e:
        logger.exception("Hierarchical worker failed")
        channel.put(ErrorMessage(kind="fault", message=f"{type(e).__name__}: {e}"))
        return
    channel.put(complete)


_ERRORS = {
    "parse": StructuralParseError,
    "read": FileReadError,
    "fault": WorkerFaultError,
}


class HierarchicalWorker:
    """
    Runs `run_worker` in a child process and relays its messages.

    Usage:
        token = CancellationToken()
        worker = HierarchicalWorker(path, settings, token)
        batch = worker.run(on_message=print)
    """

    def __init__(
        self,
        path: Path,
        settings: Settings,
        cancel_token: CancellationToken | None = None,
        target: Callable = run_worker,
    ):
        self.path = Path(path)
        self.settings = settings
        self.cancel_token = cancel_token or CancellationToken()
        self.target = target

    def _check_cancelled(self) -> None:
        if self.cancel_token.cancelled:
            raise ImportCancelledError("Import cancelled before completion", source=self.path.name)

    def run(self, on_message: Callable[[WorkerMessage], None] | None = None) -> ExtractionBatch:
        """
        Spawn the worker and block until it finishes.

        Args:
            on_message: Receives every status, total, progress and complete message

        Returns:
            ExtractionBatch from the complete message

        Raises:
            ImportCancelledError: The token was cancelled
            WorkerFaultError: The process could not start or died without a result
            StructuralParseError: The markup is invalid
            FileReadError: The file could not be read
        """
        self._check_cancelled()

        context = multiprocessing.get_context(self.settings.worker_start_method)
        channel = context.Queue()
        process = context.Process(
            target=self.target,
            args=(
                str(self.path),
                channel,
                self.settings.progress_every,
                self.settings.max_skip_reasons,
            ),
            name=f"vitals-xml-{self.path.name}",
            daemon=True,
        )

        try:
            process.start()
        except (OSError, ValueError) as e:
            raise WorkerFaultError(f"Could not start worker: {e}", source=self.path.name) from e

        logger.debug("Started worker pid=%s for %s", process.pid, self.path)
        try:
            while True:
                self._check_cancelled()
                message = self._next_message(process, channel)
                if message is None:
                    continue
                self._check_cancelled()

                if isinstance(message, ErrorMessage):
                    error_cls = _ERRORS.get(message.kind, WorkerFaultError)
                    raise error_cls(message.message, source=self.path.name)

                if on_message is not None:
                    on_message(message)

                if isinstance(message, CompleteMessage):
                    return message.batch
        finally:
            self._shutdown(process, channel)

    def _next_message(self, process, channel) -> Message | None:
        poll = self.settings.worker_poll_interval
        try:
            return channel.get(timeout=poll)
        except queue_module.Empty:
            pass

        if process.is_alive():
            return None

        # Process is gone; anything it flushed before exiting is still readable.
        try:
            return channel.get(timeout=poll)
        except queue_module.Empty:
            raise WorkerFaultError(
                f"Worker exited with code {process.exitcode} without a result",
                source=self.path.name,
            ) from None

    def _shutdown(self, process, channel) -> None:
        if process.is_alive():
            logger.info("Terminating worker pid=%s", process.pid)
            process.terminate()
        process.join(timeout=5)
        channel.close()
        channel.cancel_join_thread()
