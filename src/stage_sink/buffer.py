"""In-memory CSV batch buffers."""

import csv
import io
from typing import Optional, Sequence

from stage_sink.errors import RowSerializationError
from stage_sink.types import CSVRecord


class CSVBuffer:
    """
    Append-only byte accumulator holding one batch of serialized CSV rows.

    Rows are serialized with minimal quoting and a ``\\n`` line terminator and
    encoded as UTF-8. ``None`` values become empty fields. When ``header`` is
    set, the column names of the first record are written before it and every
    later record in the same batch must carry the same columns.

    The header line counts towards ``size``. Since a record is always accepted
    into an empty buffer, a single-record batch with a header can be larger
    than the writer's size limit.
    """

    def __init__(self, header: bool = False, delimiter: str = ","):
        self.header = header
        self.delimiter = delimiter
        self._data = bytearray()
        self._records_count = 0
        self._columns: Optional[tuple[str, ...]] = None

    def append(self, record: CSVRecord) -> None:
        """
        Serialize a record and append it to the batch.

        Raises:
            RowSerializationError: If the record shape is invalid. Nothing is
                appended in that case.
        """
        columns = tuple(record.column_names)
        if len(record.values) != len(columns):
            raise RowSerializationError(
                f"Record has {len(record.values)} values for {len(columns)} columns"
            )
        if self._columns is not None and columns != self._columns:
            raise RowSerializationError(
                f"Record columns {list(columns)} do not match batch columns {list(self._columns)}"
            )

        chunk = b""
        if self.header and self._records_count == 0:
            chunk = self._serialize(columns)
        chunk += self._serialize(record.values)

        self._data += chunk
        self._records_count += 1
        if self.header:
            self._columns = columns

    def _serialize(self, values: Sequence[Optional[str]]) -> bytes:
        out = io.StringIO()
        writer = csv.writer(
            out, delimiter=self.delimiter, quoting=csv.QUOTE_MINIMAL, lineterminator="\n"
        )
        try:
            writer.writerow(values)
        except csv.Error as e:
            raise RowSerializationError(f"Cannot serialize record: {e}") from e
        return out.getvalue().encode("utf-8")

    def size(self) -> int:
        return len(self._data)

    def record_count(self) -> int:
        return self._records_count

    def snapshot(self) -> bytes:
        """Return the accumulated bytes without changing the buffer."""
        return bytes(self._data)

    def reset(self) -> None:
        self._data = bytearray()
        self._records_count = 0
        self._columns = None


class SizeProbe(CSVBuffer):
    """Buffer used only to measure the serialized size of one candidate record."""

    def __init__(self, delimiter: str = ","):
        super().__init__(header=False, delimiter=delimiter)

    def measure(self, record: CSVRecord) -> int:
        self.reset()
        self.append(record)
        return self.size()
