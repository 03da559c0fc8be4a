"""Record schemas for the read path."""

import json
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Union


class SchemaType(Enum):
    NULL = "null"
    BOOLEAN = "boolean"
    INT = "int"
    LONG = "long"
    FLOAT = "float"
    DOUBLE = "double"
    BYTES = "bytes"
    STRING = "string"
    ARRAY = "array"
    MAP = "map"
    RECORD = "record"


class LogicalType(Enum):
    DATE = "date"
    TIMESTAMP_MILLIS = "timestamp-millis"
    TIMESTAMP_MICROS = "timestamp-micros"
    TIME_MILLIS = "time-millis"
    TIME_MICROS = "time-micros"
    DECIMAL = "decimal"


@dataclass(frozen=True)
class FieldSchema:
    """Type of a single field: base type, optional logical type and nullability."""

    type: SchemaType
    logical_type: Optional[LogicalType] = None
    precision: Optional[int] = None
    scale: Optional[int] = None
    nullable: bool = False

    @classmethod
    def of(cls, schema_type: SchemaType) -> "FieldSchema":
        return cls(type=schema_type)

    @classmethod
    def nullable_of(cls, schema: "FieldSchema") -> "FieldSchema":
        return replace(schema, nullable=True)

    @classmethod
    def date(cls) -> "FieldSchema":
        return cls(type=SchemaType.INT, logical_type=LogicalType.DATE)

    @classmethod
    def timestamp_micros(cls) -> "FieldSchema":
        return cls(type=SchemaType.LONG, logical_type=LogicalType.TIMESTAMP_MICROS)

    @classmethod
    def time_micros(cls) -> "FieldSchema":
        return cls(type=SchemaType.LONG, logical_type=LogicalType.TIME_MICROS)

    @classmethod
    def decimal(cls, precision: int, scale: int = 0) -> "FieldSchema":
        if precision <= 0:
            raise ValueError(f"Decimal precision must be positive, got {precision}")
        if scale < 0 or scale > precision:
            raise ValueError(f"Decimal scale must be in [0, {precision}], got {scale}")
        return cls(
            type=SchemaType.BYTES,
            logical_type=LogicalType.DECIMAL,
            precision=precision,
            scale=scale,
        )

    def non_nullable(self) -> "FieldSchema":
        return replace(self, nullable=False) if self.nullable else self


@dataclass(frozen=True)
class Field:
    name: str
    schema: FieldSchema


@dataclass(frozen=True)
class RecordSchema:
    """Named, ordered collection of fields."""

    name: str
    fields: tuple[Field, ...]

    def __post_init__(self):
        names = [f.name for f in self.fields]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate field names in schema '{self.name}': {duplicates}")
        object.__setattr__(self, "_by_name", {f.name: f for f in self.fields})

    @classmethod
    def of(cls, name: str, *fields: Field) -> "RecordSchema":
        return cls(name=name, fields=tuple(fields))

    def field(self, name: str) -> Optional[Field]:
        return self._by_name.get(name)

    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]


def parse_schema(schema: Union[str, dict]) -> RecordSchema:
    """
    Parse an Avro-style JSON record schema.

    Supported field types are the primitive names, ``{"type": ..., "logicalType": ...}``
    objects, and two-member unions with ``"null"`` (nullable fields). Nested
    ``array``, ``map`` and ``record`` types are accepted as opaque base types.

    Args:
        schema: JSON text or an already-decoded dict

    Returns:
        RecordSchema with fields in declaration order

    Raises:
        ValueError: If the schema is not a record or a field type is malformed
    """
    data = json.loads(schema) if isinstance(schema, str) else schema
    if not isinstance(data, dict) or data.get("type") != "record":
        raise ValueError("Top-level schema must be a JSON object with type 'record'")

    fields = []
    for entry in data.get("fields", []):
        if "name" not in entry or "type" not in entry:
            raise ValueError(f"Schema field must have 'name' and 'type': {entry}")
        fields.append(Field(entry["name"], _parse_field_type(entry["type"], entry["name"])))

    return RecordSchema(name=data.get("name", "record"), fields=tuple(fields))


def _parse_field_type(type_def, field_name: str) -> FieldSchema:
    if isinstance(type_def, list):
        members = [m for m in type_def if m != "null"]
        if len(members) != 1 or len(type_def) != 2:
            raise ValueError(
                f"Field '{field_name}': only unions of one type with 'null' are supported"
            )
        return FieldSchema.nullable_of(_parse_field_type(members[0], field_name))

    if isinstance(type_def, str):
        return FieldSchema.of(_schema_type(type_def, field_name))

    if isinstance(type_def, dict):
        schema_type = _schema_type(type_def.get("type"), field_name)
        logical_name = type_def.get("logicalType")
        if logical_name is None:
            return FieldSchema.of(schema_type)
        try:
            logical_type = LogicalType(logical_name)
        except ValueError:
            raise ValueError(
                f"Field '{field_name}': unknown logical type '{logical_name}'"
            ) from None
        if logical_type is LogicalType.DECIMAL:
            return FieldSchema.decimal(type_def.get("precision", 38), type_def.get("scale", 0))
        return FieldSchema(type=schema_type, logical_type=logical_type)

    raise ValueError(f"Field '{field_name}': malformed type {type_def!r}")


def _schema_type(name, field_name: str) -> SchemaType:
    try:
        return SchemaType(name)
    except ValueError:
        raise ValueError(f"Field '{field_name}': unknown type '{name}'") from None
