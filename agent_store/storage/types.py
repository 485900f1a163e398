"""Table schema types: a closed set of column types and immutable schemas."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from ..core.exceptions import SchemaError

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def check_identifier(name: str, kind: str = "identifier") -> str:
    """Return ``name`` if it is a safe SQL identifier, else raise ``SchemaError``."""
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise SchemaError(f"Invalid {kind}: {name!r}", details={kind: name})
    return name


def quote(name: str) -> str:
    return f'"{check_identifier(name)}"'


class ColumnType(str, enum.Enum):
    TEXT = "text"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    BIGNUMBER = "bignumber"
    JSON = "json"

    @property
    def sql_type(self) -> str:
        return _SQL_TYPES[self]


# Timestamps are stored as fixed-width UTC ISO text, big numbers as text so
# they never pass through a binary float, JSON as text.
_SQL_TYPES = {
    ColumnType.TEXT: "TEXT",
    ColumnType.INTEGER: "INTEGER",
    ColumnType.FLOAT: "REAL",
    ColumnType.BOOLEAN: "INTEGER",
    ColumnType.TIMESTAMP: "TEXT",
    ColumnType.BIGNUMBER: "TEXT",
    ColumnType.JSON: "TEXT",
}


@dataclass(frozen=True)
class ColumnDefinition:
    type: ColumnType
    nullable: bool = True
    primary_key: bool = False

    @property
    def required(self) -> bool:
        return self.primary_key or not self.nullable

    def ddl(self, name: str) -> str:
        parts = [quote(name), self.type.sql_type]
        if self.required:
            parts.append("NOT NULL")
        return " ".join(parts)

    @classmethod
    def from_dict(cls, definition: Mapping[str, Any]) -> "ColumnDefinition":
        try:
            column_type = ColumnType(str(definition["type"]).lower())
        except (KeyError, ValueError) as exc:
            raise SchemaError(f"Invalid column type in {dict(definition)!r}") from exc
        return cls(
            type=column_type,
            nullable=bool(definition.get("nullable", True)),
            primary_key=bool(definition.get("primary_key", definition.get("primaryKey", False))),
        )


@dataclass(frozen=True)
class TableSchema:
    """Ordered column set of one table.

    ``sequence_column`` names an INTEGER column the query engine fills with a
    database-assigned, strictly increasing write-sequence number.
    """

    columns: Mapping[str, ColumnDefinition]
    sequence_column: str | None = None
    _pk: tuple[str, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.columns:
            raise SchemaError("A table schema needs at least one column")
        for name in self.columns:
            check_identifier(name, "column")
        if self.sequence_column is not None:
            seq = self.columns.get(self.sequence_column)
            if seq is None or seq.type is not ColumnType.INTEGER:
                raise SchemaError(
                    f"Sequence column {self.sequence_column!r} must be an integer column of the table"
                )
        object.__setattr__(self, "columns", MappingProxyType(dict(self.columns)))
        object.__setattr__(
            self, "_pk", tuple(name for name, col in self.columns.items() if col.primary_key)
        )

    @property
    def primary_key(self) -> tuple[str, ...]:
        return self._pk

    @property
    def json_columns(self) -> tuple[str, ...]:
        return tuple(name for name, col in self.columns.items() if col.type is ColumnType.JSON)

    def column(self, name: str) -> ColumnDefinition:
        try:
            return self.columns[name]
        except KeyError:
            raise SchemaError(f"Unknown column: {name!r}", details={"column": name}) from None

    def ddl(self, table: str) -> str:
        lines = [col.ddl(name) for name, col in self.columns.items()]
        if self.primary_key:
            lines.append(f"PRIMARY KEY ({', '.join(quote(c) for c in self.primary_key)})")
        body = ",\n  ".join(lines)
        return f"CREATE TABLE IF NOT EXISTS {quote(table)} (\n  {body}\n)"

    @classmethod
    def from_dict(cls, definition: Mapping[str, Mapping[str, Any]], sequence_column: str | None = None) -> "TableSchema":
        """Build a schema from ``{"col": {"type": "text", "nullable": False}}``."""
        return cls(
            columns={name: ColumnDefinition.from_dict(col) for name, col in definition.items()},
            sequence_column=sequence_column,
        )
