"""Local filesystem staging client implementation."""

import logging
from pathlib import Path

from opentelemetry import trace

from stage_sink.staging.common import build_file_name, compress_payload
from stage_sink.types import StagingClient

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class LocalStagingClient(StagingClient):
    """
    Writes batch files to a local directory.

    Useful for development and for stages mounted as local filesystems.
    """

    def __init__(self, base_path: str, compression: str = "gzip"):
        """
        Initialize local staging client.

        Args:
            base_path: Base directory batch files are written under
            compression: Compression codec for batch files ('none', 'gzip', 'bz2', 'zstd')
        """
        self.base_path = Path(base_path).resolve()
        self.compression = compression
        self.file_counter = 0
        self.connected = False

    def connect(self) -> None:
        """Create the base directory if needed."""
        with tracer.start_as_current_span("local_connect"):
            logger.info("Initializing local staging: path=%s", self.base_path)
            self.base_path.mkdir(parents=True, exist_ok=True)
            self.connected = True

    def upload(self, data: bytes, path: str) -> str:
        """Write one batch as a new file under base_path/path."""
        if not self.connected:
            raise RuntimeError("Not connected. Call connect() first.")

        with tracer.start_as_current_span("local_upload") as span:
            file_dir = self.base_path / path.strip("/") if path.strip("/") else self.base_path
            file_dir.mkdir(parents=True, exist_ok=True)

            self.file_counter += 1
            file_path = file_dir / build_file_name(self.file_counter, self.compression)
            payload = compress_payload(data, self.compression)
            span.set_attribute("upload.num_bytes", len(payload))

            # 'xb' never overwrites an existing batch file
            with open(file_path, "xb") as f:
                f.write(payload)

            logger.info("Wrote batch to local: %s (%d bytes)", file_path, len(payload))
            return str(file_path)

    def close(self) -> None:
        with tracer.start_as_current_span("local_close"):
            self.connected = False
