"""Configuration management."""

from stage_sink.config.load_unload import (
    CloudProvider,
    EncryptionType,
    FileFormatFilteringPolicy,
    LoadUnloadConfig,
    parse_enum,
)
from stage_sink.config.settings import (
    Settings,
    SinkConfig,
    SourceConfig,
    StagingConfig,
    TelemetryConfig,
    load_config,
    validate_settings,
)

__all__ = [
    "Settings",
    "SourceConfig",
    "SinkConfig",
    "StagingConfig",
    "LoadUnloadConfig",
    "TelemetryConfig",
    "CloudProvider",
    "EncryptionType",
    "FileFormatFilteringPolicy",
    "load_config",
    "parse_enum",
    "validate_settings",
]
