"""Staging client implementations."""

from stage_sink.staging.hdfs_client import HDFSStagingClient
from stage_sink.staging.local_client import LocalStagingClient
from stage_sink.staging.s3_client import S3StagingClient
from stage_sink.staging.snowflake_client import SnowflakeStagingClient

__all__ = ["HDFSStagingClient", "LocalStagingClient", "S3StagingClient", "SnowflakeStagingClient"]
