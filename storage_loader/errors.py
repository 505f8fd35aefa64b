"""Failure values and the exception raised for a failed load."""

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    """Which stage of the load failed."""
    DIRECTORY_UNREADABLE = "directory_unreadable"
    CONNECTION_FAILURE = "connection_failure"
    STATEMENT_EXECUTION_ERROR = "statement_execution_error"
    EXTERNAL_PROCESS_FAILURE = "external_process_failure"


@dataclass(frozen=True)
class LoadFailure:
    """
    The single statement (or pipe invocation) that stopped a load.

    Executors return this instead of raising, so the orchestrator can
    decide what happens next without unwinding the connection handling.
    """
    statement: str          # Statement text that failed
    kind: ErrorKind         # Stage that failed
    category: str           # Driver error class, or "exit status N" for psql
    message: str            # Underlying error message
    source: str | None = None  # Event file being piped, Remote Pipe mode only

    def describe(self) -> str:
        text = f"{self.category} error executing {self.statement}: {self.message}"
        if self.source:
            text += f" (file: {self.source})"
        return text


class DatabaseLoadError(Exception):
    """Raised when events could not be loaded into a target."""

    def __init__(self, failure: LoadFailure) -> None:
        super().__init__(failure.describe())
        self.failure = failure
