"""Pytest configuration and fixtures."""

import pytest

from stage_sink.schema import Field, FieldSchema, RecordSchema, SchemaType
from stage_sink.types import CSVRecord, EventSink, StagingClient


class RecordingStagingClient(StagingClient):
    """In-memory staging client that records every upload."""

    def __init__(self):
        self.uploads: list[tuple[bytes, str]] = []
        self.fail_with = None
        self.connected = False

    def connect(self):
        self.connected = True

    def upload(self, data, path):
        if self.fail_with is not None:
            raise self.fail_with
        self.uploads.append((data, path))
        return f"{path}/batch_{len(self.uploads):06d}.csv"

    def close(self):
        self.connected = False


class RecordingEventSink(EventSink):
    """Event sink that keeps every event for inspection."""

    def __init__(self):
        self.events = []

    def emit(self, event, **attributes):
        self.events.append((event, attributes))

    def named(self, event):
        return [attrs for name, attrs in self.events if name == event]


@pytest.fixture
def staging_client():
    """Provide a connected in-memory staging client."""
    client = RecordingStagingClient()
    client.connect()
    return client


@pytest.fixture
def event_sink():
    return RecordingEventSink()


@pytest.fixture
def make_record():
    """Build single-column records whose serialized size is exactly `size` bytes."""

    def _make(size, fill="x", column="value"):
        # one value of size - 1 characters plus the '\n' terminator
        return CSVRecord((column,), (fill * (size - 1),))

    return _make


@pytest.fixture
def sample_schema():
    """Provide a schema covering every decodable type."""
    nullable = FieldSchema.nullable_of
    return RecordSchema.of(
        "orders",
        Field("id", FieldSchema.of(SchemaType.STRING)),
        Field("flag", nullable(FieldSchema.of(SchemaType.BOOLEAN))),
        Field("price", nullable(FieldSchema.of(SchemaType.DOUBLE))),
        Field("payload", nullable(FieldSchema.of(SchemaType.BYTES))),
        Field("d", nullable(FieldSchema.date())),
        Field("ts", nullable(FieldSchema.timestamp_micros())),
        Field("t", nullable(FieldSchema.time_micros())),
        Field("amt", nullable(FieldSchema.decimal(10, 2))),
    )
