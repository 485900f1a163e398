"""Record codec: typed values <-> flat relational rows.

JSON columns decode to a ``Decoded | Raw`` union. Malformed JSON text never
raises; it collapses to ``Raw`` so rows written by other writer versions,
which may hold plain strings in these columns, stay readable.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any, Mapping, Union

from ..core.exceptions import ConstraintError, QueryError
from .types import ColumnDefinition, ColumnType, TableSchema

_BIGNUMBER = re.compile(r"^-?[0-9]+(\.[0-9]+)?$")


@dataclass(frozen=True)
class Decoded:
    value: Any


@dataclass(frozen=True)
class Raw:
    text: str

    @property
    def value(self) -> str:
        return self.text


JsonField = Union[Decoded, Raw]


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_json(value: Any) -> str | None:
    """Serialize a composite value; strings are stored verbatim."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=_json_default)


def decode_json(value: Any) -> JsonField:
    if value is None or not isinstance(value, (str, bytes)):
        # NULL, or a driver that already returns structured JSON
        return Decoded(value)
    text = value.decode("utf-8") if isinstance(value, bytes) else value
    try:
        return Decoded(json.loads(text))
    except ValueError:
        return Raw(text)


def parse_timestamp(value: Any) -> datetime:
    """Accept a ``datetime`` or ISO-8601 text; return an aware UTC datetime."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise ConstraintError(f"Invalid timestamp: {value!r}") from exc
    else:
        raise ConstraintError(f"Invalid timestamp: {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def encode_timestamp(value: Any) -> str:
    # Fixed width so text order equals chronological order
    return parse_timestamp(value).isoformat(timespec="microseconds")


def encode_bignumber(value: Any) -> str:
    if isinstance(value, bool) or isinstance(value, float):
        raise ConstraintError(f"Big number must be an int or numeric string, got {value!r}")
    if isinstance(value, (int, Decimal)):
        return str(value)
    if isinstance(value, str) and _BIGNUMBER.match(value.strip()):
        return value.strip()
    raise ConstraintError(f"Invalid big number: {value!r}")


def encode_value(column: ColumnDefinition, value: Any) -> Any:
    if value is None:
        return None
    kind = column.type
    if kind is ColumnType.JSON:
        try:
            return encode_json(value)
        except TypeError as exc:
            raise ConstraintError(str(exc)) from exc
    if kind is ColumnType.TIMESTAMP:
        return encode_timestamp(value)
    if kind is ColumnType.BIGNUMBER:
        return encode_bignumber(value)
    if kind is ColumnType.BOOLEAN:
        return 1 if value else 0
    if kind is ColumnType.INTEGER:
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, int):
            return value
        if isinstance(value, str) and re.fullmatch(r"\s*-?[0-9]+\s*", value):
            return int(value)
        raise ConstraintError(f"Invalid integer: {value!r}")
    if kind is ColumnType.FLOAT:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        raise ConstraintError(f"Invalid float: {value!r}")
    if isinstance(value, (dict, list)):
        return encode_json(value)
    return value if isinstance(value, str) else str(value)


def decode_value(column: ColumnDefinition, value: Any) -> Any:
    if value is None:
        return None
    kind = column.type
    if kind is ColumnType.JSON:
        return decode_json(value).value
    if kind is ColumnType.TIMESTAMP:
        return parse_timestamp(value)
    if kind is ColumnType.BIGNUMBER:
        return str(value)
    if kind is ColumnType.BOOLEAN:
        return bool(value)
    if kind is ColumnType.INTEGER:
        return int(value)
    if kind is ColumnType.FLOAT:
        return float(value)
    return value


def encode_record(schema: TableSchema, record: Mapping[str, Any]) -> dict[str, Any]:
    """Encode every column present in ``record``; unknown keys are rejected."""
    unknown = [key for key in record if key not in schema.columns]
    if unknown:
        raise QueryError(f"Unknown columns: {', '.join(sorted(unknown))}", details={"columns": unknown})
    row: dict[str, Any] = {}
    for name, value in record.items():
        try:
            row[name] = encode_value(schema.columns[name], value)
        except ConstraintError as exc:
            raise ConstraintError(f"Column {name!r}: {exc.message}", details={"column": name}) from exc
    return row


def decode_row(schema: TableSchema, row: Mapping[str, Any]) -> dict[str, Any]:
    """Decode a raw row; columns the schema does not know pass through."""
    out: dict[str, Any] = {}
    for name, value in row.items():
        column = schema.columns.get(name)
        out[name] = decode_value(column, value) if column is not None else value
    return out
