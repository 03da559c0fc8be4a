"""Event sink that reports writer events through logging and tracing."""

import logging
from typing import Any, Optional

from opentelemetry import trace

from stage_sink.types import EventSink


class LoggingEventSink(EventSink):
    """
    Logs each event and attaches it to the current OpenTelemetry span.

    Args:
        logger: Logger to write to (defaults to this module's logger)
        level: Logging level used for events
    """

    def __init__(self, logger: Optional[logging.Logger] = None, level: int = logging.INFO):
        self.logger = logger or logging.getLogger(__name__)
        self.level = level

    def emit(self, event: str, **attributes: Any) -> None:
        if self.logger.isEnabledFor(self.level):
            details = ", ".join(f"{key}={value}" for key, value in attributes.items())
            self.logger.log(self.level, "%s: %s", event, details)

        span = trace.get_current_span()
        if span.is_recording():
            span.add_event(event, attributes=attributes)
