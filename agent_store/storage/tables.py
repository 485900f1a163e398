"""Schema & table manager: lifecycle, column checks, additive migration."""

from __future__ import annotations

import re

from ..binding import ColumnMetadata, SQLBinding, Statement
from ..core.exceptions import NotFoundError, SchemaError
from ..core.logging import get_logger, operation_scope
from .errors import backend_errors
from .types import ColumnDefinition, TableSchema, check_identifier, quote

logger = get_logger(__name__)

_PREFIX = re.compile(r"^[A-Za-z0-9_]*$")

# Write-sequence counters, one row per table with a sequence column
SEQUENCES_TABLE = "store_sequences"


class TableManager:
    """Owns the registry of known table schemas.

    Every physical table name is ``prefix + logical name``; the prefix is
    fixed at construction.
    """

    def __init__(self, binding: SQLBinding, prefix: str = ""):
        if not _PREFIX.match(prefix or ""):
            raise SchemaError(f"Invalid table prefix: {prefix!r}")
        self._binding = binding
        self._prefix = prefix or ""
        self._schemas: dict[str, TableSchema] = {}

    @property
    def prefix(self) -> str:
        return self._prefix

    def table_name(self, name: str) -> str:
        return check_identifier(f"{self._prefix}{name}", "table")

    @property
    def sequences_table(self) -> str:
        return self.table_name(SEQUENCES_TABLE)

    def is_registered(self, name: str) -> bool:
        return name in self._schemas

    def schema_for(self, name: str) -> TableSchema:
        try:
            return self._schemas[name]
        except KeyError:
            raise NotFoundError(f"Table {name!r} is not defined", details={"table": name}) from None

    async def table_exists(self, name: str) -> bool:
        physical = self.table_name(name)
        with backend_errors("describe", physical):
            return bool(await self._binding.get_column_metadata(physical))

    async def create_table(self, name: str, schema: TableSchema) -> None:
        """Create the table if absent; re-invocation is a no-op."""
        physical = self.table_name(name)
        with operation_scope("create_table", physical), backend_errors("create_table", physical):
            live = await self._binding.get_column_metadata(physical)
            if live and schema.primary_key:
                live_pk = {col.name for col in live if col.primary_key}
                if live_pk != set(schema.primary_key):
                    raise SchemaError(
                        f"Table {physical} exists with primary key {sorted(live_pk)}, "
                        f"requested {list(schema.primary_key)}",
                        details={"table": physical},
                    )
            await self._binding.execute(schema.ddl(physical))
            if schema.sequence_column is not None:
                await self._seed_sequence(physical, schema.sequence_column, live)
        self._schemas[name] = schema
        logger.info(f"Table ready: {physical}", data={"columns": list(schema.columns)})

    async def _seed_sequence(self, physical: str, column: str, live: list[ColumnMetadata]) -> None:
        """Create the counter row for ``physical``, starting after its highest stored value."""
        counters = quote(self.sequences_table)
        await self._binding.execute(
            f"CREATE TABLE IF NOT EXISTS {counters} (name TEXT NOT NULL PRIMARY KEY, value INTEGER NOT NULL)"
        )
        # An older table may lack the column until its additive migration runs
        if any(col.name == column for col in live):
            start = f"(SELECT COALESCE(MAX({quote(column)}), 0) FROM {quote(physical)})"
        else:
            start = "0"
        await self._binding.execute(
            f"INSERT INTO {counters} (name, value) VALUES (:name, {start}) ON CONFLICT (name) DO NOTHING",
            {"name": physical},
        )

    async def clear_table(self, name: str) -> None:
        """Delete every row; the schema stays."""
        physical = self.table_name(name)
        with operation_scope("clear_table", physical), backend_errors("clear_table", physical):
            if not await self._binding.get_column_metadata(physical):
                raise NotFoundError(f"Table {physical} does not exist", details={"table": physical})
            await self._binding.execute(f"DELETE FROM {quote(physical)}")

    async def drop_table(self, name: str) -> None:
        physical = self.table_name(name)
        with operation_scope("drop_table", physical), backend_errors("drop_table", physical):
            statements = [Statement(f"DROP TABLE IF EXISTS {quote(physical)}")]
            schema = self._schemas.get(name)
            if schema is not None and schema.sequence_column is not None:
                statements.append(
                    Statement(f"DELETE FROM {quote(self.sequences_table)} WHERE name = :name", {"name": physical})
                )
            await self._binding.execute_batch(statements)
        self._schemas.pop(name, None)
        logger.info(f"Table dropped: {physical}")

    async def has_column(self, table: str, column: str) -> bool:
        """Check live schema metadata, not the registered schema."""
        physical = self.table_name(table)
        with backend_errors("has_column", physical):
            live = await self._binding.get_column_metadata(physical)
        return any(col.name == column for col in live)

    async def ensure_column(self, table: str, column: str, definition: ColumnDefinition) -> bool:
        """Add ``column`` as a nullable column when missing. Returns True if added."""
        check_identifier(column, "column")
        if await self.has_column(table, column):
            return False
        physical = self.table_name(table)
        # Added columns are always nullable: existing rows have no value.
        added = ColumnDefinition(type=definition.type, nullable=True)
        with operation_scope("ensure_column", physical), backend_errors("ensure_column", physical):
            await self._binding.execute(f"ALTER TABLE {quote(physical)} ADD COLUMN {added.ddl(column)}")
        schema = self._schemas.get(table)
        if schema is not None and column not in schema.columns:
            self._schemas[table] = TableSchema(
                columns={**schema.columns, column: added},
                sequence_column=schema.sequence_column,
            )
        logger.info(f"Column added: {physical}.{column}", data={"type": added.type.value})
        return True
