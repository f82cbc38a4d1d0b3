"""Custom exceptions for the health data import engine."""


class HealthImportError(Exception):
    """Base exception for all fatal import errors."""

    stage = "import"

    def __init__(self, message: str, stage: str | None = None, source: str | None = None):
        self.message = message
        self.source = source
        if stage is not None:
            self.stage = stage
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert exception to error response format."""
        return {
            "error": {
                "code": self.__class__.__name__.replace("Error", "").lower(),
                "stage": self.stage,
                "message": self.message,
                "source": self.source,
            }
        }


class UnsupportedFormatError(HealthImportError):
    """File extension is not one of the accepted export formats."""

    stage = "classify"


class FileReadError(HealthImportError):
    """Source file could not be read."""

    stage = "read"


class StructuralParseError(HealthImportError):
    """File cannot be parsed at all (bad delimiters, invalid markup or document syntax)."""

    stage = "parse"


class MissingTemporalFieldError(HealthImportError):
    """Tabular or tree input has no discoverable date-like field."""

    stage = "infer"


class WorkerFaultError(HealthImportError):
    """Background worker crashed or could not be started."""

    stage = "worker"


class ImportCancelledError(HealthImportError):
    """Caller abandoned the import before it completed."""

    stage = "worker"


class ImportInProgressError(HealthImportError):
    """Another import is already running on this importer."""

    stage = "orchestrate"


class PersistenceError(HealthImportError):
    """Store could not be written."""

    stage = "persist"


class RecordSkipped(Exception):
    """A single record failed coercion or an invariant. Never fatal."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)
