"""Tests for record schemas."""

import pytest

from stage_sink.schema import (
    Field,
    FieldSchema,
    LogicalType,
    RecordSchema,
    SchemaType,
    parse_schema,
)


def test_parse_schema_from_json():
    """Test parsing an Avro-style record schema."""
    schema = parse_schema(
        """
        {
          "type": "record",
          "name": "orders",
          "fields": [
            {"name": "id", "type": "string"},
            {"name": "active", "type": ["null", "boolean"]},
            {"name": "created", "type": {"type": "int", "logicalType": "date"}},
            {"name": "ts", "type": ["null", {"type": "long", "logicalType": "timestamp-micros"}]},
            {"name": "amount", "type": {"type": "bytes", "logicalType": "decimal",
                                        "precision": 12, "scale": 3}}
          ]
        }
        """
    )

    assert schema.name == "orders"
    assert schema.field_names() == ["id", "active", "created", "ts", "amount"]

    assert schema.field("id").schema == FieldSchema.of(SchemaType.STRING)
    assert schema.field("active").schema.nullable is True
    assert schema.field("active").schema.type is SchemaType.BOOLEAN
    assert schema.field("created").schema.logical_type is LogicalType.DATE
    assert schema.field("ts").schema.logical_type is LogicalType.TIMESTAMP_MICROS
    assert schema.field("ts").schema.nullable is True

    amount = schema.field("amount").schema
    assert amount.logical_type is LogicalType.DECIMAL
    assert (amount.precision, amount.scale) == (12, 3)


def test_parse_schema_from_dict_with_decimal_defaults():
    schema = parse_schema(
        {
            "type": "record",
            "fields": [{"name": "n", "type": {"type": "bytes", "logicalType": "decimal"}}],
        }
    )

    assert schema.name == "record"
    assert schema.field("n").schema.precision == 38
    assert schema.field("n").schema.scale == 0


@pytest.mark.parametrize(
    "schema",
    [
        {"type": "enum", "name": "x"},
        {"type": "record", "fields": [{"name": "a"}]},
        {"type": "record", "fields": [{"name": "a", "type": "uuid"}]},
        {"type": "record", "fields": [{"name": "a", "type": ["null", "int", "string"]}]},
        {"type": "record", "fields": [{"name": "a", "type": {"type": "int", "logicalType": "x"}}]},
        {"type": "record", "fields": [{"name": "a", "type": 5}]},
    ],
)
def test_parse_schema_rejects_malformed_input(schema):
    with pytest.raises(ValueError):
        parse_schema(schema)


def test_duplicate_field_names_rejected():
    with pytest.raises(ValueError, match="Duplicate"):
        RecordSchema.of(
            "r",
            Field("a", FieldSchema.of(SchemaType.STRING)),
            Field("a", FieldSchema.of(SchemaType.DOUBLE)),
        )


def test_unknown_field_lookup_returns_none():
    schema = RecordSchema.of("r", Field("a", FieldSchema.of(SchemaType.STRING)))

    assert schema.field("b") is None


@pytest.mark.parametrize("precision,scale", [(0, 0), (5, -1), (5, 6)])
def test_decimal_schema_validation(precision, scale):
    with pytest.raises(ValueError):
        FieldSchema.decimal(precision, scale)


def test_non_nullable_unwraps():
    """Test that unwrapping a nullable schema keeps its other attributes."""
    schema = FieldSchema.nullable_of(FieldSchema.decimal(10, 2))

    unwrapped = schema.non_nullable()

    assert unwrapped.nullable is False
    assert unwrapped == FieldSchema.decimal(10, 2)
    assert FieldSchema.date().non_nullable() == FieldSchema.date()
