"""Conversion of decoded records into Apache Arrow tables."""

from decimal import Decimal
from typing import Iterable

import pyarrow as pa

from stage_sink.decoder import StructuredRecord, bytes_to_unscaled
from stage_sink.errors import UnsupportedTypeError
from stage_sink.schema import FieldSchema, LogicalType, RecordSchema, SchemaType

_PRIMITIVES = {
    SchemaType.NULL: pa.null(),
    SchemaType.BOOLEAN: pa.bool_(),
    SchemaType.INT: pa.int32(),
    SchemaType.LONG: pa.int64(),
    SchemaType.FLOAT: pa.float32(),
    SchemaType.DOUBLE: pa.float64(),
    SchemaType.BYTES: pa.binary(),
    SchemaType.STRING: pa.string(),
}

_LOGICAL = {
    LogicalType.DATE: pa.date32(),
    LogicalType.TIMESTAMP_MILLIS: pa.timestamp("ms", tz="UTC"),
    LogicalType.TIMESTAMP_MICROS: pa.timestamp("us", tz="UTC"),
    LogicalType.TIME_MILLIS: pa.time32("ms"),
    LogicalType.TIME_MICROS: pa.time64("us"),
}


def field_type_to_arrow(name: str, field_schema: FieldSchema) -> pa.DataType:
    if field_schema.logical_type is LogicalType.DECIMAL:
        precision = field_schema.precision or 38
        scale = field_schema.scale or 0
        if precision > 38:
            return pa.decimal256(precision, scale)
        return pa.decimal128(precision, scale)
    if field_schema.logical_type is not None:
        return _LOGICAL[field_schema.logical_type]
    if field_schema.type in _PRIMITIVES:
        return _PRIMITIVES[field_schema.type]
    raise UnsupportedTypeError(
        f"Field '{name}' of type '{field_schema.type.value}' has no Arrow mapping"
    )


def schema_to_arrow(schema: RecordSchema) -> pa.Schema:
    """
    Map a record schema onto an Arrow schema with the same field order.

    Every column is nullable: empty strings decode to ``None`` for any field
    type, so a non-union field can still carry nulls.
    """
    return pa.schema(
        [
            pa.field(
                f.name,
                field_type_to_arrow(f.name, f.schema),
                nullable=True,
            )
            for f in schema.fields
        ],
        metadata={b"record_name": schema.name.encode()},
    )


def records_to_table(records: Iterable[StructuredRecord], schema: RecordSchema) -> pa.Table:
    """
    Build an Arrow table from decoded records.

    Decimal fields arrive as unscaled two's-complement bytes and are turned
    back into exact ``Decimal`` values; all other decoded values map directly
    onto their Arrow types.
    """
    arrow_schema = schema_to_arrow(schema)
    columns: dict[str, list] = {name: [] for name in schema.field_names()}

    for record in records:
        for f in schema.fields:
            value = record.get(f.name)
            if value is not None and f.schema.logical_type is LogicalType.DECIMAL:
                value = _to_decimal(value, f.schema.scale or 0)
            columns[f.name].append(value)

    arrays = [pa.array(columns[field.name], type=field.type) for field in arrow_schema]
    return pa.Table.from_arrays(arrays, schema=arrow_schema)


def _to_decimal(data: bytes, scale: int) -> Decimal:
    digits = Decimal(bytes_to_unscaled(data)).as_tuple()
    return Decimal((digits.sign, digits.digits, -scale))
