"""Common types and interfaces for the stage sink."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Sequence


@dataclass(frozen=True)
class CSVRecord:
    """A single tabular row: ordered column names and their string values."""

    column_names: Sequence[str]
    values: Sequence[Optional[str]]

    @classmethod
    def from_dict(cls, row: dict) -> "CSVRecord":
        """Build a record from a mapping, preserving its key order."""
        return cls(
            column_names=tuple(row.keys()),
            values=tuple(None if v is None else str(v) for v in row.values()),
        )


class RecordSource(ABC):
    """Abstract base class for record sources feeding the write path."""

    @abstractmethod
    def connect(self) -> None:
        """Open the underlying input."""

    @abstractmethod
    def read_records(self) -> Iterator[CSVRecord]:
        """
        Read records one at a time.

        Yields:
            CSVRecord for each input row, in input order
        """

    @abstractmethod
    def close(self) -> None:
        """Release the underlying input."""


class StagingClient(ABC):
    """Abstract base class for clients that upload batch files to a staging area."""

    @abstractmethod
    def connect(self) -> None:
        """Establish connection to the staging area."""

    @abstractmethod
    def upload(self, data: bytes, path: str) -> str:
        """
        Upload one batch as a new file under the given staging path.

        Blocks until the upload completes. Failures are raised to the caller.

        Args:
            data: Serialized batch contents
            path: Destination path (prefix) inside the staging area

        Returns:
            Full name of the object that was written
        """

    @abstractmethod
    def close(self) -> None:
        """Close the connection to the staging area."""


class RecordWriter(ABC):
    """Abstract base class for task-level record writers."""

    @abstractmethod
    def write(self, record: CSVRecord) -> None:
        """Accept one record."""

    @abstractmethod
    def close(self) -> None:
        """Deliver everything accepted so far and release resources."""


class EventSink(ABC):
    """Receiver for structured writer events."""

    @abstractmethod
    def emit(self, event: str, **attributes: Any) -> None:
        """
        Record an event.

        Args:
            event: Event name, e.g. 'batch_flushed'
            attributes: Event attributes (scalars only)
        """
