"""SQL binding: the minimal statement-executing collaborator the store runs on.

The store only needs three things from a database: run one statement, run a
list of statements atomically, and describe a table's columns. ``SQLBinding``
is that contract; ``SQLAlchemyBinding`` implements it on an async SQLAlchemy
engine (aiosqlite or asyncpg).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, NamedTuple, Protocol, Sequence, runtime_checkable

from sqlalchemy import inspect, text
from sqlalchemy.exc import CompileError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from .core.logging import get_logger

logger = get_logger(__name__)


class Statement(NamedTuple):
    sql: str
    params: Mapping[str, Any] | None = None
    # Inside a batch, fewer affected rows than this aborts and rolls back the batch
    min_rows: int = 0


@dataclass
class ExecResult:
    rows: list[dict[str, Any]] = field(default_factory=list)
    rows_affected: int = 0


@dataclass(frozen=True)
class ColumnMetadata:
    name: str
    type: str
    nullable: bool
    primary_key: bool


class BindingError(Exception):
    """Statement or batch rejected by the database."""

    def __init__(self, message: str, sql: str | None = None):
        self.sql = sql
        super().__init__(message)


class BindingIntegrityError(BindingError):
    """Unique, primary-key or NOT NULL violation."""


class BindingPreconditionError(BindingError):
    """A guarded batch statement affected fewer rows than required."""

    def __init__(self, message: str, sql: str | None = None, index: int | None = None):
        self.index = index
        super().__init__(message, sql=sql)


@runtime_checkable
class SQLBinding(Protocol):
    async def execute(self, sql: str, params: Mapping[str, Any] | None = None) -> ExecResult: ...
    async def execute_batch(self, statements: Sequence[Statement]) -> list[ExecResult]: ...
    async def get_column_metadata(self, table: str) -> list[ColumnMetadata]: ...
    async def close(self) -> None: ...


def _type_name(column_type: Any) -> str:
    try:
        return str(column_type)
    except CompileError:
        return type(column_type).__name__


class SQLAlchemyBinding:
    """Binding over an ``AsyncEngine``; one transaction per call."""

    def __init__(self, engine: AsyncEngine):
        self._engine = engine

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def execute(self, sql: str, params: Mapping[str, Any] | None = None) -> ExecResult:
        try:
            async with self._engine.begin() as conn:
                return await self._run(conn, sql, params)
        except IntegrityError as exc:
            raise BindingIntegrityError(str(exc.orig), sql=sql) from exc
        except SQLAlchemyError as exc:
            raise BindingError(str(exc), sql=sql) from exc

    async def execute_batch(self, statements: Sequence[Statement]) -> list[ExecResult]:
        """Run every statement in one transaction; any failure rolls back all."""
        results: list[ExecResult] = []
        current: str | None = None
        try:
            async with self._engine.begin() as conn:
                for index, stmt in enumerate(statements):
                    current = stmt.sql
                    result = await self._run(conn, stmt.sql, stmt.params)
                    if result.rows_affected < stmt.min_rows:
                        raise BindingPreconditionError(
                            f"Statement {index} affected {result.rows_affected} row(s), needed {stmt.min_rows}",
                            sql=stmt.sql,
                            index=index,
                        )
                    results.append(result)
        except IntegrityError as exc:
            raise BindingIntegrityError(str(exc.orig), sql=current) from exc
        except SQLAlchemyError as exc:
            raise BindingError(str(exc), sql=current) from exc
        return results

    async def get_column_metadata(self, table: str) -> list[ColumnMetadata]:
        def _describe(sync_conn) -> list[ColumnMetadata]:
            inspector = inspect(sync_conn)
            if not inspector.has_table(table):
                return []
            pk = set(inspector.get_pk_constraint(table).get("constrained_columns") or [])
            return [
                ColumnMetadata(
                    name=col["name"],
                    type=_type_name(col["type"]),
                    nullable=bool(col.get("nullable", True)),
                    primary_key=col["name"] in pk,
                )
                for col in inspector.get_columns(table)
            ]

        try:
            async with self._engine.connect() as conn:
                return await conn.run_sync(_describe)
        except SQLAlchemyError as exc:
            raise BindingError(str(exc)) from exc

    async def close(self) -> None:
        await self._engine.dispose()

    async def _run(self, conn: AsyncConnection, sql: str, params: Mapping[str, Any] | None) -> ExecResult:
        logger.debug("execute", data={"sql": sql})
        result = await conn.execute(text(sql), dict(params or {}))
        if result.returns_rows:
            rows = [dict(row) for row in result.mappings().all()]
            return ExecResult(rows=rows, rows_affected=len(rows))
        affected = result.rowcount if result.rowcount and result.rowcount > 0 else 0
        return ExecResult(rows=[], rows_affected=affected)
