"""Configuration settings for the stage sink."""

import os
from configparser import ConfigParser
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from stage_sink.config.load_unload import LoadUnloadConfig
from stage_sink.errors import ConfigError

STAGING_TYPES = ("s3", "local", "hdfs", "snowflake")
COMPRESSION_CODECS = ("none", "gzip", "bz2", "zstd")


@dataclass(frozen=True)
class SourceConfig:
    """Configuration for the CSV file source."""

    path: Optional[str] = None
    delimiter: str = ","
    block_size: int = 1 << 20


@dataclass(frozen=True)
class SinkConfig:
    """Configuration for the batching record writer."""

    destination_path: str = ""
    max_file_size: int = 0  # bytes, 0 or negative = unlimited
    header: bool = False
    delimiter: str = ","


@dataclass(frozen=True)
class StagingConfig:
    """Configuration for the staging area batches are uploaded to."""

    type: str = "local"  # 's3', 'local', 'hdfs' or 'snowflake'

    # S3 specific
    bucket: Optional[str] = None
    prefix: Optional[str] = None
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    region_name: str = "us-east-1"
    endpoint_url: Optional[str] = None
    secure: bool = True
    create_bucket: bool = False

    # HDFS specific
    url: Optional[str] = None
    user: Optional[str] = None

    # Local and HDFS specific
    base_path: Optional[str] = None

    # Snowflake specific
    account: Optional[str] = None
    password: Optional[str] = None
    warehouse: Optional[str] = None
    database: Optional[str] = None
    schema: Optional[str] = None
    role: Optional[str] = None
    stage: Optional[str] = None

    # Common
    compression: str = "gzip"
    extra_config: dict = field(default_factory=dict)


@dataclass(frozen=True)
class TelemetryConfig:
    """Configuration for telemetry (logging and metrics)."""

    log_level: str = "INFO"
    log_format: str = "json"

    # OpenTelemetry
    enabled: bool = False
    service_name: str = "stage-sink"
    otlp_endpoint: Optional[str] = None
    trace_enabled: bool = True
    metrics_enabled: bool = True


@dataclass(frozen=True)
class Settings:
    """Complete settings for the stage sink."""

    source: SourceConfig = field(default_factory=SourceConfig)
    sink: SinkConfig = field(default_factory=SinkConfig)
    staging: StagingConfig = field(default_factory=StagingConfig)
    load_unload: LoadUnloadConfig = field(default_factory=LoadUnloadConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)


_INT_KEYS = {
    "source": ("block_size",),
    "sink": ("max_file_size",),
}
_BOOL_KEYS = {
    "sink": ("header",),
    "staging": ("secure", "create_bucket"),
    "load_unload": ("use_cloud_provider_parameters", "files_encrypted"),
    "telemetry": ("enabled", "trace_enabled", "metrics_enabled"),
}


def _load_ini_file(config_path: str) -> dict:
    """
    Load configuration from INI file.

    Args:
        config_path: Path to INI configuration file

    Returns:
        Dictionary with configuration data
    """
    config = ConfigParser(interpolation=None)
    config.read(config_path, encoding="utf-8")

    config_data: dict = {
        "source": {},
        "sink": {},
        "staging": {},
        "load_unload": {},
        "telemetry": {},
    }

    for section, values in config_data.items():
        if not config.has_section(section):
            continue
        for key, value in config.items(section):
            if key in _INT_KEYS.get(section, ()):
                values[key] = config.getint(section, key)
            elif key in _BOOL_KEYS.get(section, ()):
                values[key] = config.getboolean(section, key)
            elif value.lower() in ("null", "none"):
                values[key] = None
            else:
                values[key] = value

    # Delimiters may legitimately be blank-looking characters such as a tab
    for section in ("source", "sink"):
        delimiter = config_data[section].get("delimiter")
        if delimiter in ("\\t", "tab"):
            config_data[section]["delimiter"] = "\t"

    return config_data


def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from INI file and environment variables.

    Environment variables take precedence over file configuration.

    Args:
        config_path: Path to INI configuration file

    Returns:
        Settings object with complete configuration
    """
    load_dotenv()

    config_data = {}
    if config_path and os.path.exists(config_path):
        config_data = _load_ini_file(config_path)

    _apply_env_overrides(config_data)

    return Settings(
        source=SourceConfig(**config_data.get("source", {})),
        sink=SinkConfig(**config_data.get("sink", {})),
        staging=StagingConfig(**config_data.get("staging", {})),
        load_unload=LoadUnloadConfig(**config_data.get("load_unload", {})),
        telemetry=TelemetryConfig(**config_data.get("telemetry", {})),
    )


def _env_flag(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


# Environment variable -> (section, key, converter)
ENV_OVERRIDES = {
    "SOURCE_PATH": ("source", "path", str),
    "SINK_DESTINATION_PATH": ("sink", "destination_path", str),
    "SINK_MAX_FILE_SIZE": ("sink", "max_file_size", int),
    "SINK_HEADER": ("sink", "header", _env_flag),
    "STAGING_TYPE": ("staging", "type", str),
    "STAGING_COMPRESSION": ("staging", "compression", str),
    "STAGING_BASE_PATH": ("staging", "base_path", str),
    "S3_BUCKET": ("staging", "bucket", str),
    "S3_PREFIX": ("staging", "prefix", str),
    "S3_ENDPOINT_URL": ("staging", "endpoint_url", str),
    "AWS_ACCESS_KEY_ID": ("staging", "aws_access_key_id", str),
    "AWS_SECRET_ACCESS_KEY": ("staging", "aws_secret_access_key", str),
    "AWS_REGION": ("staging", "region_name", str),
    "HDFS_URL": ("staging", "url", str),
    "HDFS_USER": ("staging", "user", str),
    "SNOWFLAKE_ACCOUNT": ("staging", "account", str),
    "SNOWFLAKE_USER": ("staging", "user", str),
    "SNOWFLAKE_PASSWORD": ("staging", "password", str),
    "SNOWFLAKE_STAGE": ("staging", "stage", str),
    "LOG_LEVEL": ("telemetry", "log_level", str),
    "OTEL_ENABLED": ("telemetry", "enabled", _env_flag),
    "OTEL_EXPORTER_OTLP_ENDPOINT": ("telemetry", "otlp_endpoint", str),
    "OTEL_SERVICE_NAME": ("telemetry", "service_name", str),
}


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to configuration. Empty variables are ignored."""
    for name, (section, key, convert) in ENV_OVERRIDES.items():
        value = os.getenv(name)
        if not value:
            continue
        try:
            config_data.setdefault(section, {})[key] = convert(value)
        except ValueError:
            raise ConfigError([f"Invalid value for {name}: {value!r}"]) from None


def validate_settings(settings: Settings) -> None:
    """
    Validate settings once, before any writer is built.

    Raises:
        ConfigError: Listing every failure found
    """
    failures: list[str] = []
    staging = settings.staging

    if staging.type not in STAGING_TYPES:
        failures.append(
            f"Unsupported staging type: '{staging.type}', expected one of {list(STAGING_TYPES)}"
        )
    elif staging.type == "s3" and not staging.bucket:
        failures.append("S3 staging requires bucket")
    elif staging.type == "local" and not staging.base_path:
        failures.append("Local staging requires base_path")
    elif staging.type == "hdfs" and not (staging.url and staging.base_path):
        failures.append("HDFS staging requires url and base_path")
    elif staging.type == "snowflake" and not (staging.account and staging.user and staging.stage):
        failures.append("Snowflake staging requires account, user and stage")

    if staging.compression not in COMPRESSION_CODECS:
        failures.append(
            f"Unsupported compression: '{staging.compression}', "
            f"expected one of {list(COMPRESSION_CODECS)}"
        )

    for section in ("source", "sink"):
        delimiter = getattr(settings, section).delimiter
        if not delimiter or len(delimiter) != 1:
            failures.append(f"{section} delimiter must be a single character, got {delimiter!r}")

    settings.load_unload.validate(failures)

    if failures:
        raise ConfigError(failures)
