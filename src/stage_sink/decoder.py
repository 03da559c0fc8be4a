"""Decoding of warehouse rows (string maps) into typed structured records."""

import logging
import re
from collections.abc import Mapping
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, Inexact, InvalidOperation, localcontext
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterator, Optional

from stage_sink.errors import DecodeError, UnsupportedTypeError
from stage_sink.schema import FieldSchema, LogicalType, RecordSchema, SchemaType

logger = logging.getLogger(__name__)

EPOCH_DATE = date(1970, 1, 1)
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1

_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")
_TIME_RE = re.compile(r"(\d{2}):(\d{2})(?::(\d{2})(?:\.(\d{1,9}))?)?")
_TIMESTAMP_RE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt]"
    r"(\d{2}):(\d{2})(?::(\d{2})(?:\.(\d{1,9}))?)?"
    r"(?:([Zz])|([+-])(\d{2}):(\d{2})(?::(\d{2}))?)"
)

# Decimal literals plus NaN and Infinity; Python-only forms such as "1_000" or "inf" are rejected
_DOUBLE_RE = re.compile(r"[+-]?(?:NaN|Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

# Used when a decimal schema carries no precision
DEFAULT_DECIMAL_PRECISION = 38


class DecimalRounding(Enum):
    """How decimal values with more fractional digits than the schema scale are rescaled."""

    HALF_UP = "half_up"
    DOWN = "down"
    UNNECESSARY = "unnecessary"


class StructuredRecord(Mapping):
    """Immutable record keyed by schema field name."""

    def __init__(self, schema: RecordSchema, values: dict[str, Any]):
        self.schema = schema
        self._values = MappingProxyType(values)

    def __getitem__(self, name: str) -> Any:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"StructuredRecord({self.schema.name}, {dict(self._values)!r})"


class MapToRecordTransformer:
    """
    Transforms warehouse rows into StructuredRecord instances of a fixed schema.

    Every schema field appears in the output; fields missing from the row, and
    fields whose value is ``None`` or the empty string, decode to ``None``. Row
    keys that are not in the schema are ignored. The transformer keeps no state
    between calls.
    """

    def __init__(
        self, schema: RecordSchema, decimal_rounding: DecimalRounding = DecimalRounding.HALF_UP
    ):
        self.schema = schema
        self.decimal_rounding = decimal_rounding

    def transform(self, row: Mapping[str, Optional[str]]) -> StructuredRecord:
        """
        Decode one row.

        Raises:
            DecodeError: If a value cannot be parsed as its field type
            UnsupportedTypeError: If the schema uses a type that cannot be decoded
        """
        values: dict[str, Any] = dict.fromkeys(self.schema.field_names())
        for name, value in row.items():
            field = self.schema.field(name)
            if field is None:
                continue
            values[name] = self._convert_value(name, value, field.schema)
        return StructuredRecord(self.schema, values)

    def _convert_value(self, field_name: str, value: Any, field_schema: FieldSchema) -> Any:
        field_schema = field_schema.non_nullable()

        # empty string is null in the CSV exchange format
        if value is None or value == "":
            return None

        if not isinstance(value, str):
            raise DecodeError(field_name, value, f"expected a string, got {type(value).__name__}")

        logical_type = field_schema.logical_type
        if logical_type is not None:
            if logical_type is LogicalType.DATE:
                return _decode_date(field_name, value)
            if logical_type is LogicalType.TIMESTAMP_MICROS:
                return _decode_timestamp_micros(field_name, value)
            if logical_type is LogicalType.TIME_MICROS:
                return _decode_time_micros(field_name, value)
            if logical_type is LogicalType.DECIMAL:
                return _decode_decimal(field_name, value, field_schema, self.decimal_rounding)
            raise UnsupportedTypeError(
                f"Field '{field_name}' is of unsupported type '{logical_type.value}'"
            )

        schema_type = field_schema.type
        if schema_type is SchemaType.NULL:
            return None
        if schema_type is SchemaType.BYTES:
            return value.encode("utf-8")
        if schema_type is SchemaType.BOOLEAN:
            return value.lower() == "true"
        if schema_type is SchemaType.DOUBLE:
            if not _DOUBLE_RE.fullmatch(value.strip()):
                raise DecodeError(field_name, value, "not a number")
            return float(value)
        if schema_type is SchemaType.STRING:
            return value

        raise UnsupportedTypeError(
            f"Unsupported schema type: '{schema_type.value}' for field: '{field_name}'. "
            "Supported types are 'bytes, boolean, double, string'."
        )


def _decode_date(field_name: str, value: str) -> int:
    if not _DATE_RE.fullmatch(value):
        raise DecodeError(field_name, value, "expected a date in YYYY-MM-DD format")
    try:
        days = (date.fromisoformat(value) - EPOCH_DATE).days
    except ValueError as e:
        raise DecodeError(field_name, value, str(e)) from None
    if not INT32_MIN <= days <= INT32_MAX:
        raise DecodeError(field_name, value, "date is out of the 32-bit day range")
    return days


def _decode_timestamp_micros(field_name: str, value: str) -> int:
    match = _TIMESTAMP_RE.fullmatch(value)
    if not match:
        raise DecodeError(field_name, value, "expected an ISO-8601 date-time with offset")

    year, month, day, hour, minute, second, fraction = match.group(1, 2, 3, 4, 5, 6, 7)
    zulu, sign, off_hours, off_minutes, off_seconds = match.group(8, 9, 10, 11, 12)

    if zulu:
        offset = timedelta(0)
    else:
        if int(off_minutes) > 59 or int(off_seconds or 0) > 59:
            raise DecodeError(field_name, value, "offset field out of range")
        offset = timedelta(
            hours=int(off_hours), minutes=int(off_minutes), seconds=int(off_seconds or 0)
        )
        if offset > timedelta(hours=18):
            raise DecodeError(field_name, value, "offset is out of range")
        if sign == "-":
            offset = -offset

    try:
        parsed = datetime(
            int(year),
            int(month),
            int(day),
            int(hour),
            int(minute),
            int(second or 0),
            _fraction_to_nanos(fraction) // 1000,
            tzinfo=timezone(offset),
        )
    except ValueError as e:
        raise DecodeError(field_name, value, str(e)) from None

    epoch_micros = (parsed - EPOCH) // timedelta(microseconds=1)
    # precision is capped at milliseconds
    return (epoch_micros // 1000) * 1000


def _decode_time_micros(field_name: str, value: str) -> int:
    match = _TIME_RE.fullmatch(value)
    if not match:
        raise DecodeError(field_name, value, "expected a local time in HH:MM[:SS[.fff]] format")

    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3) or 0)
    if hour > 23 or minute > 59 or second > 59:
        raise DecodeError(field_name, value, "time field out of range")

    nanos = ((hour * 60 + minute) * 60 + second) * 1_000_000_000 + _fraction_to_nanos(
        match.group(4)
    )
    return nanos // 1000


def _fraction_to_nanos(fraction: Optional[str]) -> int:
    return int(fraction.ljust(9, "0")) if fraction else 0


_ROUNDING_MODES = {
    DecimalRounding.HALF_UP: ROUND_HALF_UP,
    DecimalRounding.DOWN: ROUND_DOWN,
    DecimalRounding.UNNECESSARY: ROUND_DOWN,
}


def _decode_decimal(
    field_name: str, value: str, field_schema: FieldSchema, rounding: DecimalRounding
) -> bytes:
    try:
        number = Decimal(value)
    except InvalidOperation:
        raise DecodeError(field_name, value, "not a decimal number") from None
    if not number.is_finite():
        raise DecodeError(field_name, value, "not a finite decimal number")

    scale = field_schema.scale or 0
    precision = field_schema.precision or DEFAULT_DECIMAL_PRECISION

    # integer digits alone already overflow; rounding can only add one
    if number and number.adjusted() + 1 + scale > precision:
        raise DecodeError(field_name, value, f"exceeds precision {precision}")

    with localcontext() as ctx:
        ctx.prec = precision + 1
        if rounding is DecimalRounding.UNNECESSARY:
            ctx.traps[Inexact] = True
        try:
            rescaled = number.quantize(
                Decimal(1).scaleb(-scale), rounding=_ROUNDING_MODES[rounding]
            )
        except Inexact:
            raise DecodeError(
                field_name, value, f"has more than {scale} fractional digits"
            ) from None

    if rescaled and rescaled.adjusted() + 1 + scale > precision:
        raise DecodeError(field_name, value, f"exceeds precision {precision}")

    sign, digits, _ = rescaled.as_tuple()
    unscaled = int("".join(map(str, digits)))
    return unscaled_to_bytes(-unscaled if sign else unscaled)



def unscaled_to_bytes(unscaled: int) -> bytes:
    """Minimal big-endian two's-complement encoding of an integer."""
    bits = unscaled.bit_length() if unscaled >= 0 else (~unscaled).bit_length()
    return unscaled.to_bytes(bits // 8 + 1, "big", signed=True)


def bytes_to_unscaled(data: bytes) -> int:
    return int.from_bytes(data, "big", signed=True)
