"""External stage client for S3 and S3-compatible object stores."""

import logging
from io import BytesIO
from typing import Optional
from urllib.parse import urlparse

from minio import Minio
from minio.error import S3Error
from opentelemetry import trace

from stage_sink.staging.common import build_file_name, compress_payload, join_path
from stage_sink.types import StagingClient

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def resolve_endpoint(
    endpoint_url: Optional[str], region_name: str, secure: bool = True
) -> tuple[str, bool]:
    """
    Turn an optional endpoint URL into the host[:port] and TLS flag MinIO expects.

    Without a URL the regional AWS endpoint is used. A URL with a scheme decides
    TLS by itself; a bare host keeps the ``secure`` setting.
    """
    if not endpoint_url:
        return f"s3.{region_name}.amazonaws.com", secure
    if "://" not in endpoint_url:
        return endpoint_url.rstrip("/"), secure
    parsed = urlparse(endpoint_url)
    return parsed.netloc, parsed.scheme == "https"


class S3StagingClient(StagingClient):
    """
    Uploads batch files to an S3 bucket backing an external stage.

    Objects are written under ``<prefix>/<path>/`` and never overwritten, since
    every upload gets a fresh name. The bucket is expected to exist already;
    pass ``create_bucket=True`` to create it on connect (useful against MinIO).
    """

    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        region_name: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        compression: str = "gzip",
        s3_config: Optional[dict] = None,
        secure: bool = True,
        create_bucket: bool = False,
    ):
        """
        Initialize S3 staging client.

        Args:
            bucket: Bucket of the external stage
            prefix: Stage prefix inside the bucket
            aws_access_key_id: Access key (optional, IAM role credentials otherwise)
            aws_secret_access_key: Secret key (optional, IAM role credentials otherwise)
            region_name: AWS region
            endpoint_url: Endpoint of an S3-compatible store (optional)
            compression: Compression codec for batch files ('none', 'gzip', 'bz2', 'zstd')
            s3_config: Extra keyword arguments for the Minio client
            secure: Use HTTPS when endpoint_url has no scheme
            create_bucket: Create the bucket on connect if it is missing
        """
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.aws_access_key_id = aws_access_key_id
        self.aws_secret_access_key = aws_secret_access_key
        self.region_name = region_name
        self.endpoint_url = endpoint_url
        self.compression = compression
        self.s3_config = s3_config or {}
        self.secure = secure
        self.create_bucket = create_bucket
        self.s3_client: Optional[Minio] = None
        self.file_counter = 0

    def connect(self) -> None:
        """Create the Minio client and check that the stage bucket is reachable."""
        with tracer.start_as_current_span("s3_connect") as span:
            endpoint, secure = resolve_endpoint(self.endpoint_url, self.region_name, self.secure)
            span.set_attribute("s3.bucket", self.bucket)
            span.set_attribute("s3.endpoint", endpoint)
            logger.info(
                "Connecting to S3 stage: s3://%s/%s via %s (secure=%s)",
                self.bucket,
                self.prefix,
                endpoint,
                secure,
            )

            client = Minio(
                endpoint=endpoint,
                access_key=self.aws_access_key_id,
                secret_key=self.aws_secret_access_key,
                region=self.region_name,
                secure=secure,
                **self.s3_config,
            )

            try:
                exists = client.bucket_exists(self.bucket)
                if not exists and self.create_bucket:
                    client.make_bucket(self.bucket, location=self.region_name)
                    logger.info("Created stage bucket '%s'", self.bucket)
                elif not exists:
                    raise RuntimeError(f"Stage bucket '{self.bucket}' does not exist")
            except S3Error as e:
                logger.error("Cannot access stage bucket '%s': %s", self.bucket, e)
                raise

            self.s3_client = client

    def upload(self, data: bytes, path: str) -> str:
        """Upload one batch as a new object and return its key."""
        if not self.s3_client:
            raise RuntimeError("Not connected. Call connect() first.")

        with tracer.start_as_current_span("s3_upload") as span:
            self.file_counter += 1
            key = join_path(self.prefix, path, build_file_name(self.file_counter, self.compression))
            payload = compress_payload(data, self.compression)
            span.set_attribute("upload.num_bytes", len(payload))

            try:
                self.s3_client.put_object(
                    bucket_name=self.bucket,
                    object_name=key,
                    data=BytesIO(payload),
                    length=len(payload),
                    content_type="text/csv",
                )
            except S3Error as e:
                logger.error("Upload of s3://%s/%s failed: %s", self.bucket, key, e)
                raise

            logger.info(
                "Uploaded batch to s3://%s/%s (%d bytes, %d before compression)",
                self.bucket,
                key,
                len(payload),
                len(data),
            )
            return key

    def close(self) -> None:
        """Drop the Minio client; it holds no open connection of its own."""
        self.s3_client = None
