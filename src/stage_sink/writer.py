"""Batched record writer that submits CSV files to a staging area."""

import logging
import time
from typing import Optional

from opentelemetry import metrics, trace

from stage_sink.buffer import CSVBuffer, SizeProbe
from stage_sink.errors import WriterClosedError
from stage_sink.telemetry.events import LoggingEventSink
from stage_sink.types import CSVRecord, EventSink, RecordWriter, StagingClient

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)
meter = metrics.get_meter(__name__)

rows_written = meter.create_counter(
    "stage_sink.rows_written",
    description="Number of rows accepted by record writers",
    unit="1",
)
batches_uploaded = meter.create_counter(
    "stage_sink.batches_uploaded",
    description="Number of batch files uploaded to staging",
    unit="1",
)
bytes_uploaded = meter.create_counter(
    "stage_sink.bytes_uploaded",
    description="Serialized bytes uploaded to staging",
    unit="By",
)
upload_errors = meter.create_counter(
    "stage_sink.upload_errors",
    description="Number of failed batch uploads",
    unit="1",
)


class StageRecordWriter(RecordWriter):
    """
    Writes CSV records into batches and submits them to a staging area.

    Each incoming record is first measured in isolation. If appending it would
    push the current batch past ``max_file_size``, the current batch is
    uploaded before the record is appended, so no uploaded batch exceeds the
    threshold unless it holds a single record. Such a batch can go over either
    because the record alone is too large or, with ``header`` on, because the
    header line in front of it is. ``close()`` uploads whatever is left.

    The writer is meant to be driven by a single caller; run one writer per
    task or partition for parallelism.
    """

    def __init__(
        self,
        staging_client: StagingClient,
        destination_path: str,
        max_file_size: int = 0,
        header: bool = False,
        delimiter: str = ",",
        events: Optional[EventSink] = None,
    ):
        """
        Initialize the writer.

        Args:
            staging_client: Connected client used to upload batches
            destination_path: Staging path every batch of this writer goes to
            max_file_size: Maximum batch size in bytes (0 or negative = unlimited)
            header: Write the column names as the first line of every batch
            delimiter: CSV field delimiter
            events: Receiver for writer events (defaults to logging)
        """
        self.staging_client = staging_client
        self.destination_path = destination_path
        self.max_file_size = max_file_size
        self.events = events or LoggingEventSink(logger)
        self.buffer = CSVBuffer(header=header, delimiter=delimiter)
        self.probe = SizeProbe(delimiter=delimiter)
        self.batches_uploaded = 0
        self.total_write_time = 0.0
        self.closed = False

    def write(self, record: CSVRecord) -> None:
        """
        Add a record to the current batch, uploading the batch first if needed.

        Raises:
            RowSerializationError: If the record cannot be serialized
            WriterClosedError: If the writer has been closed
        """
        if self.closed:
            raise WriterClosedError("Cannot write to a closed writer")

        started = time.perf_counter()
        candidate_size = self.probe.measure(record)

        if (
            self.max_file_size > 0
            and self.buffer.size() + candidate_size > self.max_file_size
            and self.buffer.record_count() > 0
        ):
            logger.debug(
                "Batch limit reached: %d buffered + %d candidate > %d bytes",
                self.buffer.size(),
                candidate_size,
                self.max_file_size,
            )
            self.flush()

        self.buffer.append(record)
        rows_written.add(1)
        self.total_write_time += time.perf_counter() - started

    def flush(self) -> None:
        """Upload the current batch, if any, and start a new one."""
        if self.buffer.record_count() == 0:
            logger.debug("No buffered records to flush")
            return

        with tracer.start_as_current_span("writer_flush") as span:
            data = self.buffer.snapshot()
            records = self.buffer.record_count()
            span.set_attribute("flush.num_rows", records)
            span.set_attribute("flush.num_bytes", len(data))

            try:
                object_name = self.staging_client.upload(data, self.destination_path)
            except Exception as e:
                upload_errors.add(1)
                logger.error(
                    "Failed to upload batch of %d records to %s: %s",
                    records,
                    self.destination_path,
                    e,
                    exc_info=True,
                )
                raise

            self.buffer.reset()
            self.batches_uploaded += 1
            batches_uploaded.add(1)
            bytes_uploaded.add(len(data))

            self.events.emit(
                "batch_flushed",
                records=records,
                bytes=len(data),
                path=self.destination_path,
                object_name=object_name,
            )

    def close(self) -> None:
        """Upload any remaining records. Safe to call more than once."""
        if self.closed:
            return

        with tracer.start_as_current_span("writer_close"):
            self.flush()
            self.closed = True
            self.events.emit(
                "writer_closed",
                batches=self.batches_uploaded,
                write_time_ms=round(self.total_write_time * 1000, 3),
            )
