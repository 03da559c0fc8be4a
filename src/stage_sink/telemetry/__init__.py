"""Telemetry setup and event reporting."""

from stage_sink.telemetry.events import LoggingEventSink
from stage_sink.telemetry.setup import setup_logging, setup_telemetry, shutdown_telemetry

__all__ = ["LoggingEventSink", "setup_logging", "setup_telemetry", "shutdown_telemetry"]
