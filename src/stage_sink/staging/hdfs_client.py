"""HDFS staging directory client."""

import logging
from typing import Optional

from hdfs import HdfsError, InsecureClient
from opentelemetry import trace

from stage_sink.staging.common import build_file_name, compress_payload, join_path
from stage_sink.types import StagingClient

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class HDFSStagingClient(StagingClient):
    """
    Writes batch files into an HDFS staging directory over WebHDFS.

    Files are created with ``overwrite=False``; a name collision fails the
    upload instead of replacing an existing batch.
    """

    def __init__(
        self,
        url: str,
        base_path: str,
        user: Optional[str] = None,
        compression: str = "gzip",
        hdfs_config: Optional[dict] = None,
    ):
        """
        Initialize HDFS staging client.

        Args:
            url: WebHDFS URL of the NameNode (e.g., 'http://namenode:9870')
            base_path: Staging directory batch files are written under
            user: User to act as (optional)
            compression: Compression codec for batch files ('none', 'gzip', 'bz2', 'zstd')
            hdfs_config: Extra keyword arguments for InsecureClient
        """
        self.url = url
        self.base_path = "/" + base_path.strip("/")
        self.user = user
        self.compression = compression
        self.hdfs_config = hdfs_config or {}
        self.client: Optional[InsecureClient] = None
        self.file_counter = 0

    def connect(self) -> None:
        """Create the WebHDFS client and the staging directory if missing."""
        with tracer.start_as_current_span("hdfs_connect"):
            logger.info(
                "Connecting to HDFS stage: %s%s (user=%s)", self.url, self.base_path, self.user
            )
            options = dict(self.hdfs_config)
            if self.user:
                options["user"] = self.user
            client = InsecureClient(self.url, **options)

            try:
                if client.status(self.base_path, strict=False) is None:
                    client.makedirs(self.base_path)
                    logger.info("Created staging directory %s", self.base_path)
            except HdfsError as e:
                logger.error("Cannot prepare staging directory %s: %s", self.base_path, e)
                raise

            self.client = client

    def upload(self, data: bytes, path: str) -> str:
        """Write one batch as a new file and return its absolute HDFS path."""
        if not self.client:
            raise RuntimeError("Not connected. Call connect() first.")

        with tracer.start_as_current_span("hdfs_upload") as span:
            self.file_counter += 1
            file_name = build_file_name(self.file_counter, self.compression)
            hdfs_path = "/" + join_path(self.base_path, path, file_name)
            payload = compress_payload(data, self.compression)
            span.set_attribute("upload.num_bytes", len(payload))

            self.client.write(hdfs_path, data=payload, overwrite=False)

            logger.info("Uploaded batch to HDFS: %s (%d bytes)", hdfs_path, len(payload))
            return hdfs_path

    def close(self) -> None:
        self.client = None
