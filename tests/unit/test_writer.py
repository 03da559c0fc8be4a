"""Tests for the batching record writer."""

import pytest

from stage_sink.errors import RowSerializationError, WriterClosedError
from stage_sink.types import CSVRecord
from stage_sink.writer import StageRecordWriter


def test_threshold_flushes_before_exceeding(staging_client, make_record):
    """Test 5 rows of 250 bytes with a 1000 byte limit produce batches of 4 and 1 rows."""
    writer = StageRecordWriter(staging_client, "stage/orders", max_file_size=1000)

    for i in range(5):
        writer.write(make_record(250, fill=str(i)))
        if i < 4:
            assert staging_client.uploads == []

    assert len(staging_client.uploads) == 1
    assert len(staging_client.uploads[0][0]) == 1000
    assert staging_client.uploads[0][0].count(b"\n") == 4

    writer.close()

    assert len(staging_client.uploads) == 2
    assert staging_client.uploads[1][0] == b"4" * 249 + b"\n"
    assert all(path == "stage/orders" for _, path in staging_client.uploads)


def test_unbounded_threshold_uploads_once(staging_client):
    """Test that a zero limit keeps every row in a single batch."""
    writer = StageRecordWriter(staging_client, "stage", max_file_size=0)

    for i in range(100):
        writer.write(CSVRecord(("id",), (str(i),)))

    assert staging_client.uploads == []
    writer.close()

    assert len(staging_client.uploads) == 1
    assert staging_client.uploads[0][0].count(b"\n") == 100


def test_negative_threshold_is_unbounded(staging_client, make_record):
    writer = StageRecordWriter(staging_client, "stage", max_file_size=-1)

    for _ in range(10):
        writer.write(make_record(500))
    writer.close()

    assert len(staging_client.uploads) == 1


def test_close_without_writes_uploads_nothing(staging_client, event_sink):
    """Test that close on an empty writer makes no upload calls."""
    writer = StageRecordWriter(staging_client, "stage", max_file_size=100, events=event_sink)
    writer.close()

    assert staging_client.uploads == []
    assert event_sink.named("batch_flushed") == []
    assert event_sink.named("writer_closed")[0]["batches"] == 0


def test_oversized_row_is_accepted_alone(staging_client, make_record):
    """Test that a row larger than the limit is still written in its own batch."""
    writer = StageRecordWriter(staging_client, "stage", max_file_size=100)

    writer.write(make_record(50, fill="a"))
    writer.write(make_record(300, fill="b"))
    writer.write(make_record(50, fill="c"))
    writer.close()

    sizes = [len(data) for data, _ in staging_client.uploads]
    assert sizes == [50, 300, 50]


def test_oversized_first_row_does_not_flush_empty_buffer(staging_client, make_record):
    writer = StageRecordWriter(staging_client, "stage", max_file_size=10)

    writer.write(make_record(500))

    assert staging_client.uploads == []
    writer.close()
    assert len(staging_client.uploads) == 1


@pytest.mark.parametrize("limit", [1, 7, 64, 100, 333])
def test_every_row_lands_in_exactly_one_batch(staging_client, limit):
    """Test no loss, duplication or reordering and the size bound for various limits."""
    records = [CSVRecord(("id", "text"), (str(i), "v" * (i % 13))) for i in range(200)]
    expected = b"".join(f"{i},{'v' * (i % 13)}\n".encode() for i in range(200))

    writer = StageRecordWriter(staging_client, "stage", max_file_size=limit)
    for record in records:
        writer.write(record)
    writer.close()

    batches = [data for data, _ in staging_client.uploads]
    assert b"".join(batches) == expected
    for batch in batches:
        assert len(batch) <= limit or batch.count(b"\n") == 1


def test_exact_fit_does_not_flush(staging_client, make_record):
    """Test that a batch may reach the limit exactly."""
    writer = StageRecordWriter(staging_client, "stage", max_file_size=100)

    writer.write(make_record(60))
    writer.write(make_record(40))

    assert staging_client.uploads == []
    writer.close()
    assert len(staging_client.uploads[0][0]) == 100


def test_upload_failure_keeps_buffer(staging_client):
    """Test that a failed upload propagates and leaves the batch for a later retry."""
    writer = StageRecordWriter(staging_client, "stage")
    writer.write(CSVRecord(("id",), ("1",)))
    writer.write(CSVRecord(("id",), ("2",)))

    staging_client.fail_with = OSError("stage unavailable")
    with pytest.raises(OSError, match="stage unavailable"):
        writer.close()

    assert writer.buffer.record_count() == 2
    assert not writer.closed

    staging_client.fail_with = None
    writer.close()

    assert staging_client.uploads == [(b"1\n2\n", "stage")]


def test_upload_failure_during_write_propagates(staging_client, make_record):
    writer = StageRecordWriter(staging_client, "stage", max_file_size=100)
    writer.write(make_record(80))

    staging_client.fail_with = RuntimeError("boom")
    with pytest.raises(RuntimeError):
        writer.write(make_record(80))

    # the row that triggered the flush was not appended
    assert writer.buffer.record_count() == 1


def test_serialization_error_propagates(staging_client):
    writer = StageRecordWriter(staging_client, "stage")
    writer.write(CSVRecord(("a", "b"), ("1", "2")))

    with pytest.raises(RowSerializationError):
        writer.write(CSVRecord(("a", "b"), ("1", "2", "3")))

    writer.close()
    assert staging_client.uploads == [(b"1,2\n", "stage")]


def test_write_after_close_raises(staging_client):
    writer = StageRecordWriter(staging_client, "stage")
    writer.close()

    with pytest.raises(WriterClosedError):
        writer.write(CSVRecord(("a",), ("1",)))


def test_close_is_idempotent(staging_client):
    writer = StageRecordWriter(staging_client, "stage")
    writer.write(CSVRecord(("a",), ("1",)))
    writer.close()
    writer.close()

    assert len(staging_client.uploads) == 1


def test_header_counts_towards_limit(staging_client):
    """Test that with headers enabled every batch starts with the header and respects the limit."""
    writer = StageRecordWriter(staging_client, "stage", max_file_size=20, header=True)

    for i in range(4):
        writer.write(CSVRecord(("id", "name"), (str(i), "abcd")))
    writer.close()

    batches = [data for data, _ in staging_client.uploads]
    assert batches == [
        b"id,name\n0,abcd\n",
        b"id,name\n1,abcd\n",
        b"id,name\n2,abcd\n",
        b"id,name\n3,abcd\n",
    ]


def test_header_can_push_single_row_batch_over_limit(staging_client):
    """Test that a header plus one row may exceed the limit but never holds a second row."""
    writer = StageRecordWriter(staging_client, "stage", max_file_size=10, header=True)

    writer.write(CSVRecord(("id", "name"), ("1", "ab")))
    writer.write(CSVRecord(("id", "name"), ("2", "cd")))
    writer.close()

    batches = [data for data, _ in staging_client.uploads]
    assert batches == [b"id,name\n1,ab\n", b"id,name\n2,cd\n"]
    assert all(len(batch) == 13 for batch in batches)


def test_events_emitted_per_flush(staging_client, event_sink, make_record):
    writer = StageRecordWriter(staging_client, "stage", max_file_size=100, events=event_sink)

    writer.write(make_record(60))
    writer.write(make_record(60))
    writer.close()

    flushed = event_sink.named("batch_flushed")
    assert [e["records"] for e in flushed] == [1, 1]
    assert [e["bytes"] for e in flushed] == [60, 60]
    assert flushed[0]["object_name"] == "stage/batch_000001.csv"

    closed = event_sink.named("writer_closed")
    assert len(closed) == 1
    assert closed[0]["batches"] == 2
