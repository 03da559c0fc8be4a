"""Tests for staging clients."""

import bz2
import gzip
import re
import tempfile
from pathlib import Path
from unittest.mock import MagicMock, patch

import pyarrow as pa
import pytest

from stage_sink.staging import (
    HDFSStagingClient,
    LocalStagingClient,
    S3StagingClient,
    SnowflakeStagingClient,
)
from stage_sink.staging.common import build_file_name, compress_payload, join_path
from stage_sink.staging.s3_client import resolve_endpoint

DATA = b"1,alice\n2,bob\n"


def test_build_file_name():
    """Test batch file names carry timestamp, counter, uniqueness suffix and extension."""
    name = build_file_name(7, "gzip")

    assert re.fullmatch(r"data_\d{8}_\d{6}_000007_[0-9a-f]{8}\.csv\.gz", name)
    assert build_file_name(1).endswith(".csv")
    assert build_file_name(1) != build_file_name(1)


def test_join_path():
    assert join_path("raw/", "/orders/", "f.csv") == "raw/orders/f.csv"
    assert join_path("", "orders", "") == "orders"
    assert join_path("/", "") == ""


def test_compress_payload_codecs():
    """Test that compressed payloads decompress back to the original bytes."""
    assert compress_payload(DATA, "none") == DATA
    assert gzip.decompress(compress_payload(DATA, "gzip")) == DATA
    assert bz2.decompress(compress_payload(DATA, "bz2")) == DATA

    zstd = compress_payload(DATA, "zstd")
    assert pa.CompressedInputStream(pa.BufferReader(zstd), "zstd").read() == DATA


def test_compress_payload_rejects_unknown_codec():
    with pytest.raises(ValueError):
        compress_payload(DATA, "lz4")


def test_local_client_writes_one_file_per_upload():
    """Test that each upload creates a new file under base_path/path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        client = LocalStagingClient(base_path=tmpdir, compression="none")
        client.connect()

        first = client.upload(DATA, "orders/2024")
        second = client.upload(b"3,carol\n", "orders/2024")

        files = sorted(Path(tmpdir, "orders", "2024").glob("*.csv"))
        assert len(files) == 2
        assert first != second
        assert Path(first).read_bytes() == DATA
        assert Path(second).read_bytes() == b"3,carol\n"

        client.close()


def test_local_client_gzip_and_empty_path():
    with tempfile.TemporaryDirectory() as tmpdir:
        client = LocalStagingClient(base_path=tmpdir)
        client.connect()

        name = client.upload(DATA, "")

        assert Path(name).parent == Path(tmpdir).resolve()
        assert name.endswith(".csv.gz")
        assert gzip.decompress(Path(name).read_bytes()) == DATA

        client.close()


def test_local_client_requires_connect():
    with tempfile.TemporaryDirectory() as tmpdir:
        client = LocalStagingClient(base_path=tmpdir)

        with pytest.raises(RuntimeError):
            client.upload(DATA, "stage")


def test_s3_client_uploads_object():
    """Test that S3 uploads put one object per batch under prefix/path."""
    mock_s3_client = MagicMock()
    mock_s3_client.bucket_exists.return_value = True

    with patch("stage_sink.staging.s3_client.Minio", return_value=mock_s3_client) as minio:
        client = S3StagingClient(
            bucket="test-bucket",
            prefix="raw/",
            aws_access_key_id="test",
            aws_secret_access_key="test",
            compression="none",
        )
        client.connect()

        assert minio.call_args.kwargs["endpoint"] == "s3.us-east-1.amazonaws.com"

        key = client.upload(DATA, "orders")

        assert mock_s3_client.put_object.call_count == 1
        kwargs = mock_s3_client.put_object.call_args.kwargs
        assert kwargs["bucket_name"] == "test-bucket"
        assert kwargs["object_name"] == key
        assert key.startswith("raw/orders/data_")
        assert kwargs["data"].read() == DATA
        assert kwargs["length"] == len(DATA)
        assert kwargs["content_type"] == "text/csv"

        client.close()
        assert client.s3_client is None


def test_s3_client_creates_missing_bucket_when_asked():
    mock_s3_client = MagicMock()
    mock_s3_client.bucket_exists.return_value = False

    with patch("stage_sink.staging.s3_client.Minio", return_value=mock_s3_client) as minio:
        client = S3StagingClient(
            bucket="new-bucket", endpoint_url="http://localhost:9000", create_bucket=True
        )
        client.connect()

        mock_s3_client.make_bucket.assert_called_once_with("new-bucket", location="us-east-1")
        assert minio.call_args.kwargs["endpoint"] == "localhost:9000"
        assert minio.call_args.kwargs["secure"] is False


def test_s3_client_missing_bucket_fails_connect():
    """Test that a missing stage bucket is an error by default."""
    mock_s3_client = MagicMock()
    mock_s3_client.bucket_exists.return_value = False

    with patch("stage_sink.staging.s3_client.Minio", return_value=mock_s3_client):
        client = S3StagingClient(bucket="missing")

        with pytest.raises(RuntimeError, match="does not exist"):
            client.connect()

        mock_s3_client.make_bucket.assert_not_called()
        assert client.s3_client is None


@pytest.mark.parametrize(
    "endpoint_url,secure,expected",
    [
        (None, True, ("s3.eu-west-1.amazonaws.com", True)),
        ("https://minio.local:9000/", False, ("minio.local:9000", True)),
        ("http://minio.local:9000", True, ("minio.local:9000", False)),
        ("minio.local:9000", False, ("minio.local:9000", False)),
    ],
)
def test_resolve_endpoint(endpoint_url, secure, expected):
    assert resolve_endpoint(endpoint_url, "eu-west-1", secure) == expected


def test_s3_client_upload_failure_propagates():
    mock_s3_client = MagicMock()
    mock_s3_client.put_object.side_effect = ConnectionError("network down")

    with patch("stage_sink.staging.s3_client.Minio", return_value=mock_s3_client):
        client = S3StagingClient(bucket="test-bucket")
        client.connect()

        with pytest.raises(ConnectionError):
            client.upload(DATA, "orders")


def test_hdfs_client_uploads_file():
    """Test that HDFS uploads write a new file without overwriting."""
    mock_hdfs_client = MagicMock()
    mock_hdfs_client.status.return_value = None

    with patch(
        "stage_sink.staging.hdfs_client.InsecureClient", return_value=mock_hdfs_client
    ) as insecure_client:
        client = HDFSStagingClient(
            url="http://namenode:9870", base_path="/stage/", user="etl", compression="none"
        )
        client.connect()

        insecure_client.assert_called_once_with("http://namenode:9870", user="etl")
        mock_hdfs_client.makedirs.assert_called_once_with("/stage")

        name = client.upload(DATA, "orders")

        assert name.startswith("/stage/orders/data_")
        mock_hdfs_client.write.assert_called_once_with(name, data=DATA, overwrite=False)

        client.close()
        assert client.client is None


def test_snowflake_client_puts_from_memory():
    """Test that Snowflake uploads stream the batch through PUT with auto compression."""
    mock_connection = MagicMock()
    cursor = mock_connection.cursor.return_value

    with patch("snowflake.connector.connect", return_value=mock_connection) as connect:
        client = SnowflakeStagingClient(
            account="acc", user="loader", stage="MY_STAGE", password="secret"
        )
        client.connect()

        assert connect.call_args.kwargs == {
            "account": "acc",
            "user": "loader",
            "password": "secret",
        }

        name = client.upload(DATA, "orders")

        command = cursor.execute.call_args.args[0]
        assert command.startswith("PUT 'file://data_")
        assert "'@MY_STAGE/orders'" in command
        assert "AUTO_COMPRESS=TRUE" in command
        assert "OVERWRITE=FALSE" in command
        assert cursor.execute.call_args.kwargs["file_stream"].read() == DATA
        cursor.close.assert_called_once()

        assert name.startswith("@MY_STAGE/orders/data_")
        assert name.endswith(".csv.gz")

        client.close()
        mock_connection.close.assert_called_once()


def test_snowflake_client_precompressed_codec():
    mock_connection = MagicMock()
    cursor = mock_connection.cursor.return_value

    with patch("snowflake.connector.connect", return_value=mock_connection):
        client = SnowflakeStagingClient(
            account="acc", user="loader", stage="@MY_STAGE", compression="bz2"
        )
        client.connect()
        name = client.upload(DATA, "")

        command = cursor.execute.call_args.args[0]
        assert "'@MY_STAGE'" in command
        assert "SOURCE_COMPRESSION=AUTO_DETECT" in command
        assert bz2.decompress(cursor.execute.call_args.kwargs["file_stream"].read()) == DATA
        assert name.endswith(".csv.bz2")


def test_snowflake_client_closes_cursor_on_failure():
    mock_connection = MagicMock()
    cursor = mock_connection.cursor.return_value
    cursor.execute.side_effect = RuntimeError("PUT failed")

    with patch("snowflake.connector.connect", return_value=mock_connection):
        client = SnowflakeStagingClient(account="acc", user="loader", stage="MY_STAGE")
        client.connect()

        with pytest.raises(RuntimeError):
            client.upload(DATA, "orders")

        cursor.close.assert_called_once()
