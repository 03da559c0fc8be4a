"""Command-line interface for stage-sink."""

import json
import logging
import sys
from dataclasses import replace

import click
import pyarrow.parquet as pq

from stage_sink.arrow import records_to_table
from stage_sink.config import load_config
from stage_sink.decoder import DecimalRounding, MapToRecordTransformer
from stage_sink.pipeline import StagePipeline
from stage_sink.schema import parse_schema
from stage_sink.telemetry import setup_logging, setup_telemetry, shutdown_telemetry

logger = logging.getLogger(__name__)

LOG_LEVELS = click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])


@click.group()
def main():
    """stage-sink - stream CSV records into warehouse staging areas and decode rows back."""


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    help="Path to configuration file (INI format)",
)
@click.option("--input", "input_path", type=click.Path(exists=True), help="CSV file to load")
@click.option(
    "--staging-type",
    type=click.Choice(["s3", "local", "hdfs", "snowflake"]),
    help="Staging area type",
)
@click.option("--destination-path", help="Staging path batches are uploaded to")
@click.option("--max-file-size", type=int, help="Maximum batch size in bytes (0 = unlimited)")
@click.option("--log-level", type=LOG_LEVELS, help="Logging level")
def load(config, input_path, staging_type, destination_path, max_file_size, log_level):
    """
    Load a CSV file into a staging area as size-bounded batch files.

    Configuration can be provided via an INI file (--config), environment
    variables and command-line options. Environment variables take precedence
    over config file values; command-line options take precedence over both.
    """
    try:
        settings = load_config(config)

        if input_path:
            settings = replace(settings, source=replace(settings.source, path=input_path))
        if staging_type:
            settings = replace(settings, staging=replace(settings.staging, type=staging_type))
        if destination_path is not None:
            settings = replace(
                settings, sink=replace(settings.sink, destination_path=destination_path)
            )
        if max_file_size is not None:
            settings = replace(settings, sink=replace(settings.sink, max_file_size=max_file_size))
        if log_level:
            settings = replace(settings, telemetry=replace(settings.telemetry, log_level=log_level))

        setup_telemetry(settings.telemetry)

        logger.info("Starting stage-sink load")
        logger.info("Source: %s", settings.source.path)
        logger.info("Staging: %s", settings.staging.type)
        logger.info("Max file size: %d bytes", settings.sink.max_file_size)

        records = StagePipeline(settings).run()

        logger.info("stage-sink load completed: %d records", records)
        sys.exit(0)

    except KeyboardInterrupt:
        logger.info("Load interrupted by user")
        sys.exit(130)

    except Exception as e:
        logger.error("Load failed: %s", e, exc_info=True)
        sys.exit(1)

    finally:
        shutdown_telemetry()


@main.command()
@click.option(
    "--schema",
    "schema_path",
    type=click.Path(exists=True),
    required=True,
    help="Record schema (Avro-style JSON)",
)
@click.option(
    "--input",
    "input_path",
    type=click.Path(exists=True),
    required=True,
    help="JSON lines file, one object of column name to string value per line",
)
@click.option("--output", "output_path", required=True, help="Parquet file to write")
@click.option(
    "--rounding",
    type=click.Choice([r.value for r in DecimalRounding]),
    default=DecimalRounding.HALF_UP.value,
    show_default=True,
    help="Rounding applied when a decimal has more digits than its scale",
)
@click.option("--log-level", type=LOG_LEVELS, default="INFO", help="Logging level")
def decode(schema_path, input_path, output_path, rounding, log_level):
    """Decode warehouse rows into typed records and write them as Parquet."""
    setup_logging(log_level, "text")
    try:
        with open(schema_path, encoding="utf-8") as f:
            schema = parse_schema(f.read())

        transformer = MapToRecordTransformer(schema, DecimalRounding(rounding))
        records = []
        with open(input_path, encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    records.append(transformer.transform(json.loads(line)))
                except Exception as e:
                    raise click.ClickException(f"{input_path}:{line_number}: {e}") from e

        table = records_to_table(records, schema)
        pq.write_table(table, output_path, compression="snappy")
        logger.info("Decoded %d rows into %s", table.num_rows, output_path)

    except click.ClickException:
        raise
    except Exception as e:
        logger.error("Decode failed: %s", e, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
