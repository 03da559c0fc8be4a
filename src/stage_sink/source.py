"""CSV file record source."""

import logging
from typing import Iterator, Optional

import pyarrow as pa
import pyarrow.csv as pv
from opentelemetry import trace

from stage_sink.types import CSVRecord, RecordSource

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class CSVFileSource(RecordSource):
    """
    Reads a local CSV file with a header line and yields its rows as records.

    The file is streamed block by block with the Arrow CSV reader. Every
    column is read as a string so values reach the writer exactly as they
    appear in the file; empty fields become None.
    """

    def __init__(self, path: str, delimiter: str = ",", block_size: int = 1 << 20):
        """
        Initialize CSV file source.

        Args:
            path: Path of the CSV file
            delimiter: Field delimiter
            block_size: Number of bytes the reader processes per block
        """
        self.path = path
        self.delimiter = delimiter
        self.block_size = block_size
        self.reader: Optional[pv.CSVStreamingReader] = None

    def _open(self, column_types: Optional[dict] = None) -> pv.CSVStreamingReader:
        return pv.open_csv(
            self.path,
            read_options=pv.ReadOptions(block_size=self.block_size),
            parse_options=pv.ParseOptions(delimiter=self.delimiter),
            convert_options=pv.ConvertOptions(
                column_types=column_types or {},
                null_values=[""],
                strings_can_be_null=True,
                quoted_strings_can_be_null=False,
            ),
        )

    def connect(self) -> None:
        """Open the file and fix every column type to string."""
        with tracer.start_as_current_span("csv_source_connect"):
            logger.info("Opening CSV source: %s", self.path)
            probe = self._open()
            names = probe.schema.names
            probe.close()
            self.reader = self._open({name: pa.string() for name in names})

    def read_records(self) -> Iterator[CSVRecord]:
        if not self.reader:
            raise RuntimeError("Not connected. Call connect() first.")

        columns = tuple(self.reader.schema.names)
        for batch in self.reader:
            logger.debug("Read block of %d rows from %s", batch.num_rows, self.path)
            for row in batch.to_pylist():
                yield CSVRecord(columns, tuple(row[name] for name in columns))

    def close(self) -> None:
        if self.reader:
            logger.info("Closing CSV source: %s", self.path)
            self.reader.close()
            self.reader = None
