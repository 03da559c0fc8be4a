"""Exception hierarchy for the stage sink."""

from typing import Optional


class StageSinkError(Exception):
    """Base class for all errors raised by stage_sink."""


class RowSerializationError(StageSinkError):
    """A record could not be serialized into a CSV row."""


class WriterClosedError(StageSinkError):
    """A write was attempted on a writer that has already been closed."""


class DecodeError(StageSinkError):
    """A field value could not be parsed into its schema type."""

    def __init__(self, field_name: str, value: str, reason: str):
        super().__init__(f"Cannot decode field '{field_name}' value {value!r}: {reason}")
        self.field_name = field_name
        self.value = value
        self.reason = reason


class UnsupportedTypeError(StageSinkError):
    """The schema declares a type the decoder does not implement."""


class ConfigError(StageSinkError):
    """Configuration failed validation."""

    def __init__(self, failures: list[str]):
        super().__init__("Invalid configuration: " + "; ".join(failures))
        self.failures = failures


class UnsupportedValueError(ConfigError):
    """A configuration property holds a value outside its allowed set."""

    def __init__(self, property_name: str, value: str, allowed: Optional[list[str]] = None):
        message = f"Unsupported value '{value}' for property '{property_name}'"
        if allowed:
            message += f", supported values are: {', '.join(allowed)}"
        super().__init__([message])
        self.property_name = property_name
        self.value = value
