"""Messages sent from the hierarchical parser worker to the importer."""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class WorkerMessage(BaseModel):
    """Base worker message."""

    model_config = ConfigDict(frozen=True)


class StatusMessage(WorkerMessage):
    """Human readable status text."""

    type: Literal["status"] = "status"
    message: str


class TotalMessage(WorkerMessage):
    """Number of records the worker is going to process."""

    type: Literal["total"] = "total"
    count: int = Field(..., ge=0)


class ProgressMessage(WorkerMessage):
    """Percent of records processed so far."""

    type: Literal["progress"] = "progress"
    percent: int = Field(..., ge=0, le=100)


class ErrorMessage(WorkerMessage):
    """
    Fatal worker error. Always the last message of a worker.

    `kind` is "parse" for malformed markup, "read" for I/O failures and
    "fault" for anything unexpected.
    """

    type: Literal["error"] = "error"
    kind: Literal["parse", "read", "fault"] = "fault"
    message: str


class CompleteMessage(WorkerMessage):
    """Final payload. Always the last message of a successful worker."""

    type: Literal["complete"] = "complete"
    batch: Any = Field(None, description="ExtractionBatch with the extracted records")
    stats: dict[str, int] = Field(default_factory=dict)


Message = Annotated[
    StatusMessage | TotalMessage | ProgressMessage | ErrorMessage | CompleteMessage,
    Field(discriminator="type"),
]
