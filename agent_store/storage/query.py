"""Query engine: keyed loads, inserts, upserts, atomic batches and filtered reads."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping, Sequence, Union

from ..binding import SQLBinding, Statement
from ..core.exceptions import ConstraintError, QueryError, StoreError
from ..core.logging import get_logger, operation_scope
from .codec import Decoded, decode_json, decode_row, encode_record, encode_timestamp, encode_value
from .errors import backend_errors
from .tables import TableManager
from .types import ColumnType, TableSchema, quote

logger = get_logger(__name__)


@dataclass(frozen=True)
class Eq:
    column: str
    value: Any


@dataclass(frozen=True)
class Prefix:
    """Case-sensitive prefix match on a text column."""

    column: str
    prefix: str


@dataclass(frozen=True)
class AttributesContain:
    """The decoded JSON mapping in ``column`` contains every given pair."""

    column: str
    attributes: Mapping[str, Any]


@dataclass(frozen=True)
class DateRange:
    """Inclusive timestamp range; either bound may be omitted."""

    column: str
    start: datetime | str | None = None
    end: datetime | str | None = None


Filter = Union[Eq, Prefix, AttributesContain, DateRange]


@dataclass(frozen=True)
class OrderBy:
    column: str
    descending: bool = False


@dataclass(frozen=True)
class Pagination:
    limit: int | None = None
    offset: int = 0

    @classmethod
    def pages(cls, page: int, per_page: int) -> "Pagination":
        """Zero-indexed page window."""
        if page < 0 or per_page <= 0:
            raise QueryError(f"Invalid pagination: page={page} per_page={per_page}")
        return cls(limit=per_page, offset=page * per_page)

    @classmethod
    def window(cls, limit: int | None = None, offset: int | None = None) -> "Pagination":
        if (limit is not None and limit < 0) or (offset is not None and offset < 0):
            raise QueryError(f"Invalid pagination: limit={limit} offset={offset}")
        return cls(limit=limit, offset=offset or 0)


@dataclass
class Page:
    rows: list[dict[str, Any]]
    total: int


def _contains(field: Any, attributes: Mapping[str, Any]) -> bool:
    decoded = decode_json(field)
    if not isinstance(decoded, Decoded) or not isinstance(decoded.value, dict):
        return False
    return all(key in decoded.value and decoded.value[key] == value for key, value in attributes.items())


class QueryEngine:
    def __init__(self, binding: SQLBinding, tables: TableManager):
        self._binding = binding
        self._tables = tables

    @property
    def tables(self) -> TableManager:
        return self._tables

    # ------------------------------------------------------------------
    # statement builders
    # ------------------------------------------------------------------
    def _target(self, table: str) -> tuple[TableSchema, str]:
        return self._tables.schema_for(table), self._tables.table_name(table)

    @staticmethod
    def _key_of(schema: TableSchema, record: Mapping[str, Any]) -> dict[str, Any] | None:
        if not schema.primary_key:
            return None
        return {name: record.get(name) for name in schema.primary_key}

    @staticmethod
    def _check_required(schema: TableSchema, record: Mapping[str, Any]) -> None:
        for name, column in schema.columns.items():
            if name == schema.sequence_column or not column.required:
                continue
            if record.get(name) is None:
                kind = "primary key" if column.primary_key else "non-nullable"
                raise ConstraintError(f"Missing {kind} column {name!r}", details={"column": name})

    def sequence_statement(self, table: str) -> Statement:
        """Advance the write-sequence counter of ``table``.

        The counter row stays locked until the batch commits, so concurrent
        writers to one table take sequence numbers one batch at a time.
        """
        physical = self._tables.table_name(table)
        return Statement(
            f"UPDATE {quote(self._tables.sequences_table)} SET value = value + 1 WHERE name = :seq_name",
            {"seq_name": physical},
            min_rows=1,
        )

    def insert_statements(
        self,
        table: str,
        record: Mapping[str, Any],
        *,
        upsert: bool = False,
        preserve: Iterable[str] = (),
    ) -> list[Statement]:
        """Build the INSERT (or INSERT ... ON CONFLICT DO UPDATE) for one record.

        On a table with a sequence column the INSERT is preceded by the
        counter advance it reads its number from; run both in one batch.
        """
        schema, physical = self._target(table)
        self._check_required(schema, record)
        seq = schema.sequence_column
        row = encode_record(schema, record)
        if upsert:
            # Full replace: columns absent from the record become NULL
            row = {name: row.get(name) for name in schema.columns}
        if seq is not None:
            row.pop(seq, None)

        columns = list(row)
        params = {f"p{i}": row[name] for i, name in enumerate(columns)}
        values = [f":p{i}" for i in range(len(columns))]
        if seq is not None:
            columns.append(seq)
            values.append(f"(SELECT value FROM {quote(self._tables.sequences_table)} WHERE name = :seq_name)")
            params["seq_name"] = physical

        sql = (
            f"INSERT INTO {quote(physical)} ({', '.join(quote(c) for c in columns)}) "
            f"VALUES ({', '.join(values)})"
        )
        if upsert:
            if not schema.primary_key:
                raise QueryError(f"Upsert needs a primary key on {table}", details={"table": table})
            kept = set(preserve) | set(schema.primary_key)
            updates = [c for c in row if c not in kept]
            conflict = ", ".join(quote(c) for c in schema.primary_key)
            if updates:
                assignments = ", ".join(f"{quote(c)} = excluded.{quote(c)}" for c in updates)
                sql += f" ON CONFLICT ({conflict}) DO UPDATE SET {assignments}"
            else:
                sql += f" ON CONFLICT ({conflict}) DO NOTHING"
        if seq is None:
            return [Statement(sql, params)]
        return [self.sequence_statement(table), Statement(sql, params)]

    def _compile_filters(
        self, schema: TableSchema, filters: Sequence[Filter]
    ) -> tuple[str, dict[str, Any], list[AttributesContain]]:
        clauses: list[str] = []
        params: dict[str, Any] = {}
        post: list[AttributesContain] = []
        for i, flt in enumerate(filters):
            column = self._column(schema, flt.column)
            name = quote(flt.column)
            if isinstance(flt, Eq):
                if flt.value is None:
                    clauses.append(f"{name} IS NULL")
                else:
                    params[f"f{i}"] = encode_value(column, flt.value)
                    clauses.append(f"{name} = :f{i}")
            elif isinstance(flt, Prefix):
                params[f"f{i}"] = flt.prefix
                params[f"n{i}"] = len(flt.prefix)
                clauses.append(f"substr({name}, 1, :n{i}) = :f{i}")
            elif isinstance(flt, DateRange):
                if column.type is not ColumnType.TIMESTAMP:
                    raise QueryError(f"Date range on non-timestamp column {flt.column!r}")
                if flt.start is not None:
                    params[f"a{i}"] = encode_timestamp(flt.start)
                    clauses.append(f"{name} >= :a{i}")
                if flt.end is not None:
                    params[f"b{i}"] = encode_timestamp(flt.end)
                    clauses.append(f"{name} <= :b{i}")
            elif isinstance(flt, AttributesContain):
                if column.type is not ColumnType.JSON:
                    raise QueryError(f"Attribute match on non-JSON column {flt.column!r}")
                post.append(flt)
            else:
                raise QueryError(f"Unsupported filter: {flt!r}")
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params, post

    @staticmethod
    def _column(schema: TableSchema, name: str):
        try:
            return schema.column(name)
        except StoreError as exc:
            raise QueryError(exc.message, details=exc.details) from None

    def _where_keys(self, schema: TableSchema, table: str, keys: Mapping[str, Any]) -> tuple[str, dict[str, Any]]:
        if not keys:
            raise QueryError(f"No key columns given for {table}", details={"table": table})
        missing = [name for name in schema.primary_key if name not in keys]
        if missing:
            raise QueryError(
                f"Missing key columns for {table}: {', '.join(missing)}",
                details={"table": table, "columns": missing},
            )
        none_keys = [name for name, value in keys.items() if value is None]
        if none_keys:
            raise QueryError(f"Key columns must not be null: {', '.join(none_keys)}", details={"table": table})
        where, params, _ = self._compile_filters(schema, [Eq(name, value) for name, value in keys.items()])
        return where, params

    def update_statement(self, table: str, keys: Mapping[str, Any], values: Mapping[str, Any]) -> Statement:
        schema, physical = self._target(table)
        if not values:
            raise QueryError(f"Nothing to update in {table}", details={"table": table})
        where, params = self._where_keys(schema, table, keys)
        row = encode_record(schema, values)
        for name in row:
            if schema.columns[name].required and row[name] is None:
                raise ConstraintError(f"Column {name!r} must not be null", details={"column": name})
        assignments = []
        for i, (name, value) in enumerate(row.items()):
            params[f"u{i}"] = value
            assignments.append(f"{quote(name)} = :u{i}")
        return Statement(f"UPDATE {quote(physical)} SET {', '.join(assignments)}{where}", params)

    def delete_statement(self, table: str, keys: Mapping[str, Any]) -> Statement:
        """DELETE matching an AND of equalities; keys need not be the primary key."""
        schema, physical = self._target(table)
        if not keys:
            raise QueryError(f"No key columns given for {table}", details={"table": table})
        where, params, _ = self._compile_filters(schema, [Eq(name, value) for name, value in keys.items()])
        return Statement(f"DELETE FROM {quote(physical)}{where}", params)

    # ------------------------------------------------------------------
    # operations
    # ------------------------------------------------------------------
    async def _write(self, statements: Sequence[Statement]) -> None:
        if len(statements) == 1:
            await self._binding.execute(statements[0].sql, statements[0].params)
        else:
            await self._binding.execute_batch(statements)

    async def insert(self, table: str, record: Mapping[str, Any]) -> None:
        schema, physical = self._target(table)
        statements = self.insert_statements(table, record)
        with operation_scope("insert", physical), backend_errors("insert", physical, self._key_of(schema, record)):
            await self._write(statements)

    async def upsert(self, table: str, record: Mapping[str, Any], preserve: Iterable[str] = ()) -> None:
        """Insert, or fully replace the non-key columns of the existing row.

        Columns named in ``preserve`` keep their stored value on replace.
        """
        schema, physical = self._target(table)
        statements = self.insert_statements(table, record, upsert=True, preserve=preserve)
        with operation_scope("upsert", physical), backend_errors("upsert", physical, self._key_of(schema, record)):
            await self._write(statements)

    async def batch_insert(self, table: str, records: Sequence[Mapping[str, Any]]) -> None:
        """Insert every record in one atomic batch; all rows or none."""
        if not records:
            return
        schema, physical = self._target(table)
        statements: list[Statement] = []
        for index, record in enumerate(records):
            try:
                statements.extend(self.insert_statements(table, record))
            except (ConstraintError, QueryError) as exc:
                raise type(exc)(
                    f"Row {index} of batch into {table}: {exc.message}",
                    details={**exc.details, "table": table, "row": index},
                ) from exc
        await self.run_batch("batch_insert", table, statements, key={"rows": len(records)})

    async def run_batch(self, operation: str, table: str, statements: Sequence[Statement], key: Any = None) -> None:
        physical = self._tables.table_name(table)
        with operation_scope(operation, physical), backend_errors(operation, physical, key):
            await self._binding.execute_batch(statements)
        logger.debug(f"{operation} committed", data={"table": physical, "statements": len(statements)})

    async def load(self, table: str, keys: Mapping[str, Any]) -> dict[str, Any] | None:
        """Return the single row matching ``keys`` or ``None``."""
        schema, physical = self._target(table)
        where, params = self._where_keys(schema, table, keys)
        with operation_scope("load", physical), backend_errors("load", physical, dict(keys)):
            result = await self._binding.execute(f"SELECT * FROM {quote(physical)}{where} LIMIT 1", params)
        if not result.rows:
            return None
        return decode_row(schema, result.rows[0])

    async def update(self, table: str, keys: Mapping[str, Any], values: Mapping[str, Any]) -> int:
        """Set ``values`` on rows matching ``keys``; returns the affected row count."""
        _, physical = self._target(table)
        stmt = self.update_statement(table, keys, values)
        with operation_scope("update", physical), backend_errors("update", physical, dict(keys)):
            result = await self._binding.execute(stmt.sql, stmt.params)
        return result.rows_affected

    async def delete(self, table: str, keys: Mapping[str, Any]) -> int:
        _, physical = self._target(table)
        stmt = self.delete_statement(table, keys)
        with operation_scope("delete", physical), backend_errors("delete", physical, dict(keys)):
            result = await self._binding.execute(stmt.sql, stmt.params)
        return result.rows_affected

    async def query(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        pagination: Pagination | None = None,
        order_by: Sequence[OrderBy] | None = None,
    ) -> Page:
        """Rows matching every filter, one page of them, plus the total count.

        Default order is ``created_at`` descending when the table has it.
        """
        schema, physical = self._target(table)
        pagination = pagination or Pagination()
        if order_by is None:
            order_by = [OrderBy("created_at", descending=True)] if "created_at" in schema.columns else []
        for order in order_by:
            self._column(schema, order.column)

        where, params, post = self._compile_filters(schema, filters)
        order_sql = ""
        if order_by:
            order_sql = " ORDER BY " + ", ".join(
                f"{quote(o.column)} {'DESC' if o.descending else 'ASC'}" for o in order_by
            )
        select_sql = f"SELECT * FROM {quote(physical)}{where}{order_sql}"

        with operation_scope("query", physical), backend_errors("query", physical):
            if post:
                # Attribute matches are evaluated on decoded values, so the
                # window is applied after filtering.
                result = await self._binding.execute(select_sql, params)
                rows = [
                    row for row in result.rows
                    if all(_contains(row.get(f.column), f.attributes) for f in post)
                ]
                total = len(rows)
                end = None if pagination.limit is None else pagination.offset + pagination.limit
                window = rows[pagination.offset:end]
            else:
                count_sql = f"SELECT COUNT(*) AS total FROM {quote(physical)}{where}"
                if pagination.limit is not None:
                    select_sql += f" LIMIT {int(pagination.limit)} OFFSET {int(pagination.offset)}"
                count, page = await self._binding.execute_batch(
                    [Statement(count_sql, params), Statement(select_sql, params)]
                )
                total = int(count.rows[0]["total"]) if count.rows else 0
                window = page.rows
                if pagination.limit is None and pagination.offset:
                    window = window[pagination.offset:]
        return Page(rows=[decode_row(schema, row) for row in window], total=total)
