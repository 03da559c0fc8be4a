"""Telemetry setup for OpenTelemetry integration."""

import json
import logging
import sys
from typing import Optional

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from stage_sink import __version__
from stage_sink.config.settings import TelemetryConfig

# Loggers of client libraries that are chatty at INFO
NOISY_LOGGERS = ("urllib3", "snowflake.connector", "hdfs", "minio")


class JsonFormatter(logging.Formatter):
    """One JSON object per line, with the active trace and span ids when tracing is on."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }
        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            entry["trace_id"] = format(span_context.trace_id, "032x")
            entry["span_id"] = format(span_context.span_id, "016x")
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def setup_logging(log_level: str, log_format: str) -> None:
    """
    Setup structured logging on stderr.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Format type ('json' or 'text')
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    if log_format == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def _resource(service_name: str) -> Resource:
    return Resource.create({"service.name": service_name, "service.version": __version__})


def setup_tracing(service_name: str, otlp_endpoint: Optional[str]) -> TracerProvider:
    """
    Setup OpenTelemetry tracing.

    Upload, flush and pipeline spans are only exported when an endpoint is set.

    Args:
        service_name: Name of the service for trace identification
        otlp_endpoint: OTLP endpoint for exporting traces
    """
    tracer_provider = TracerProvider(resource=_resource(service_name))

    if otlp_endpoint:
        otlp_exporter = OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True)
        tracer_provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

    trace.set_tracer_provider(tracer_provider)

    logging.getLogger(__name__).info(
        "Tracing initialized for service: %s%s",
        service_name,
        f", endpoint: {otlp_endpoint}" if otlp_endpoint else " (no exporter)",
    )
    return tracer_provider


def setup_metrics(service_name: str, otlp_endpoint: Optional[str]) -> MeterProvider:
    """
    Setup OpenTelemetry metrics for the row, batch and upload counters.

    Args:
        service_name: Name of the service for metrics identification
        otlp_endpoint: OTLP endpoint for exporting metrics
    """
    readers = []
    if otlp_endpoint:
        otlp_exporter = OTLPMetricExporter(endpoint=otlp_endpoint, insecure=True)
        readers.append(PeriodicExportingMetricReader(otlp_exporter, export_interval_millis=5000))

    meter_provider = MeterProvider(resource=_resource(service_name), metric_readers=readers)
    metrics.set_meter_provider(meter_provider)

    logging.getLogger(__name__).info(
        "Metrics initialized for service: %s%s",
        service_name,
        f", endpoint: {otlp_endpoint}" if otlp_endpoint else " (no exporter)",
    )
    return meter_provider


def setup_telemetry(config: TelemetryConfig) -> None:
    """
    Setup complete telemetry stack (logging, tracing, metrics).

    Args:
        config: Telemetry configuration
    """
    setup_logging(config.log_level, config.log_format)

    logger = logging.getLogger(__name__)

    if not config.enabled:
        logger.info("OpenTelemetry disabled")
        return

    if config.trace_enabled:
        setup_tracing(config.service_name, config.otlp_endpoint)
    if config.metrics_enabled:
        setup_metrics(config.service_name, config.otlp_endpoint)
    logger.info("OpenTelemetry enabled")


def shutdown_telemetry() -> None:
    """Export pending spans and metrics. Short-lived CLI runs call this before exiting."""
    tracer_provider = trace.get_tracer_provider()
    if isinstance(tracer_provider, TracerProvider):
        tracer_provider.shutdown()

    meter_provider = metrics.get_meter_provider()
    if isinstance(meter_provider, MeterProvider):
        meter_provider.shutdown()
