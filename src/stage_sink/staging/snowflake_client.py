"""Snowflake internal stage client implementation."""

import logging
from io import BytesIO
from typing import Optional

import snowflake.connector
from opentelemetry import trace
from snowflake.connector import SnowflakeConnection
from snowflake.connector.errors import Error as SnowflakeError

from stage_sink.staging.common import build_file_name, compress_payload, join_path
from stage_sink.types import StagingClient

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class SnowflakeStagingClient(StagingClient):
    """
    Uploads batch files to a Snowflake internal stage with PUT.

    Data is streamed from memory; nothing is written to local disk. With
    'gzip' compression the stage compresses the file itself (AUTO_COMPRESS);
    other codecs are applied client-side and detected by the stage.
    """

    def __init__(
        self,
        account: str,
        user: str,
        stage: str,
        password: Optional[str] = None,
        warehouse: Optional[str] = None,
        database: Optional[str] = None,
        schema: Optional[str] = None,
        role: Optional[str] = None,
        compression: str = "gzip",
        connection_config: Optional[dict] = None,
    ):
        """
        Initialize Snowflake staging client.

        Args:
            account: Snowflake account identifier
            user: Login name
            stage: Stage name, with or without the leading '@'
            password: Password (optional when connection_config carries another authenticator)
            warehouse: Warehouse to use for the session
            database: Database of the stage
            schema: Schema of the stage
            role: Role to use for the session
            compression: Compression codec for batch files ('none', 'gzip', 'bz2', 'zstd')
            connection_config: Additional snowflake.connector.connect() arguments
        """
        self.account = account
        self.user = user
        self.stage = "@" + stage.lstrip("@")
        self.password = password
        self.warehouse = warehouse
        self.database = database
        self.schema = schema
        self.role = role
        self.compression = compression
        self.connection_config = connection_config or {}
        self.connection: Optional[SnowflakeConnection] = None
        self.file_counter = 0

    def connect(self) -> None:
        """Open a Snowflake session."""
        with tracer.start_as_current_span("snowflake_connect"):
            logger.info(
                "Connecting to Snowflake: account=%s, user=%s, stage=%s",
                self.account,
                self.user,
                self.stage,
            )
            params = {
                "account": self.account,
                "user": self.user,
                "password": self.password,
                "warehouse": self.warehouse,
                "database": self.database,
                "schema": self.schema,
                "role": self.role,
                **self.connection_config,
            }
            try:
                self.connection = snowflake.connector.connect(
                    **{k: v for k, v in params.items() if v is not None}
                )
            except SnowflakeError as e:
                logger.error("Failed to connect to Snowflake: %s", e)
                raise
            logger.info("Successfully connected to Snowflake")

    def _put_command(self, file_name: str, stage_path: str) -> str:
        if self.compression == "gzip":
            options = "AUTO_COMPRESS=TRUE"
        elif self.compression == "none":
            options = "AUTO_COMPRESS=FALSE SOURCE_COMPRESSION=NONE"
        else:
            options = "AUTO_COMPRESS=FALSE SOURCE_COMPRESSION=AUTO_DETECT"
        return f"PUT 'file://{file_name}' '{stage_path}' {options} OVERWRITE=FALSE"

    def upload(self, data: bytes, path: str) -> str:
        """PUT one batch as a new file under the stage path."""
        if not self.connection:
            raise RuntimeError("Not connected. Call connect() first.")

        with tracer.start_as_current_span("snowflake_upload") as span:
            self.file_counter += 1
            if self.compression == "gzip":
                # the stage appends .gz itself
                file_name = build_file_name(self.file_counter)
                payload = data
            else:
                file_name = build_file_name(self.file_counter, self.compression)
                payload = compress_payload(data, self.compression)

            stage_path = self.stage + ("/" + join_path(path) if join_path(path) else "")
            span.set_attribute("upload.num_bytes", len(payload))

            cursor = self.connection.cursor()
            try:
                cursor.execute(
                    self._put_command(file_name, stage_path), file_stream=BytesIO(payload)
                )
            except SnowflakeError as e:
                logger.error("Snowflake PUT to %s failed: %s", stage_path, e)
                raise
            finally:
                cursor.close()

            object_name = f"{stage_path}/{file_name}"
            if self.compression == "gzip":
                object_name += ".gz"
            logger.info("Uploaded batch to Snowflake stage: %s (%d bytes)", object_name, len(data))
            return object_name

    def close(self) -> None:
        """Close the Snowflake session."""
        with tracer.start_as_current_span("snowflake_close"):
            if self.connection:
                logger.info("Closing Snowflake connection")
                self.connection.close()
                self.connection = None
