"""Write-path pipeline orchestration."""

import logging
from typing import Optional

from opentelemetry import metrics, trace

from stage_sink.config import Settings, validate_settings
from stage_sink.source import CSVFileSource
from stage_sink.staging import (
    HDFSStagingClient,
    LocalStagingClient,
    S3StagingClient,
    SnowflakeStagingClient,
)
from stage_sink.types import EventSink, RecordSource, StagingClient
from stage_sink.writer import StageRecordWriter

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)
meter = metrics.get_meter(__name__)

pipeline_runs = meter.create_counter(
    "stage_sink.pipeline_runs",
    description="Number of pipeline runs started",
    unit="1",
)
errors_encountered = meter.create_counter(
    "stage_sink.errors",
    description="Number of failed pipeline runs",
    unit="1",
)


class StagePipeline:
    """
    Pipeline that streams records from a source into staged batch files.

    The run fails on the first error: a record that cannot be serialized or a
    batch that cannot be uploaded aborts the run and the error is re-raised.
    """

    def __init__(self, settings: Settings, events: Optional[EventSink] = None):
        """
        Initialize the pipeline.

        Args:
            settings: Complete settings
            events: Receiver for writer events (defaults to logging)
        """
        self.settings = settings
        self.events = events
        self.source: Optional[RecordSource] = None
        self.staging_client: Optional[StagingClient] = None

    def _create_source(self) -> RecordSource:
        """Create the record source."""
        source_config = self.settings.source
        if not source_config.path:
            raise ValueError("CSV source requires path")

        return CSVFileSource(
            path=source_config.path,
            delimiter=source_config.delimiter,
            block_size=source_config.block_size,
        )

    def _create_staging_client(self) -> StagingClient:
        """Create and configure the staging client."""
        staging = self.settings.staging

        if staging.type == "s3":
            return S3StagingClient(
                bucket=staging.bucket,
                prefix=staging.prefix or "",
                aws_access_key_id=staging.aws_access_key_id,
                aws_secret_access_key=staging.aws_secret_access_key,
                region_name=staging.region_name,
                endpoint_url=staging.endpoint_url,
                compression=staging.compression,
                s3_config=staging.extra_config,
                secure=staging.secure,
                create_bucket=staging.create_bucket,
            )

        if staging.type == "local":
            return LocalStagingClient(base_path=staging.base_path, compression=staging.compression)

        if staging.type == "hdfs":
            return HDFSStagingClient(
                url=staging.url,
                base_path=staging.base_path,
                user=staging.user,
                compression=staging.compression,
                hdfs_config=staging.extra_config,
            )

        if staging.type == "snowflake":
            return SnowflakeStagingClient(
                account=staging.account,
                user=staging.user,
                stage=staging.stage,
                password=staging.password,
                warehouse=staging.warehouse,
                database=staging.database,
                schema=staging.schema,
                role=staging.role,
                compression=staging.compression,
                connection_config=staging.extra_config,
            )

        raise ValueError(f"Unsupported staging type: {staging.type}")

    def run(self) -> int:
        """
        Run the pipeline.

        Returns:
            Number of records written
        """
        validate_settings(self.settings)
        sink_config = self.settings.sink

        with tracer.start_as_current_span("pipeline_run") as span:
            pipeline_runs.add(1, {"staging": self.settings.staging.type})
            total_records = 0
            try:
                logger.info("Initializing CSV source")
                self.source = self._create_source()
                self.source.connect()

                logger.info("Initializing %s staging", self.settings.staging.type)
                self.staging_client = self._create_staging_client()
                self.staging_client.connect()
                span.set_attribute("staging.type", self.settings.staging.type)

                writer = StageRecordWriter(
                    staging_client=self.staging_client,
                    destination_path=sink_config.destination_path,
                    max_file_size=sink_config.max_file_size,
                    header=sink_config.header,
                    delimiter=sink_config.delimiter,
                    events=self.events,
                )

                for record in self.source.read_records():
                    writer.write(record)
                    total_records += 1

                writer.close()

                logger.info(
                    "Pipeline completed: %d records in %d batches",
                    total_records,
                    writer.batches_uploaded,
                )
                span.set_attribute("pipeline.records", total_records)
                span.set_attribute("pipeline.batches", writer.batches_uploaded)
                return total_records

            except Exception as e:
                logger.error(
                    "Pipeline failed after %d records: %s", total_records, e, exc_info=True
                )
                errors_encountered.add(1, {"staging": self.settings.staging.type})
                raise

            finally:
                if self.source:
                    logger.info("Closing source")
                    self.source.close()

                if self.staging_client:
                    logger.info("Closing staging connection")
                    self.staging_client.close()
