"""Message repository."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Protocol, Sequence, Union, runtime_checkable

from ..core.exceptions import ConstraintError, QueryError, ReferentialError
from ..core.logging import get_logger
from ..models import (
    AnyMessage,
    MessageContent,
    MessageFormat,
    MessagesPage,
    MessageV1,
    MessageV2,
    PageInfo,
    content_from_v1,
    to_v1,
    to_v2,
    utcnow,
)
from ..storage.codec import encode_json
from ..storage.query import DateRange, Eq, OrderBy, Pagination
from ..storage.schemas import TABLE_MESSAGES, TABLE_THREADS
from .base import EngineRepository

logger = get_logger(__name__)

MessageInput = Union[MessageV2, MessageV1, Mapping[str, Any]]

_CHRONOLOGICAL = [OrderBy("created_at"), OrderBy("seq")]
_NEWEST_FIRST = [OrderBy("created_at", descending=True), OrderBy("seq", descending=True)]


@runtime_checkable
class MessageRepository(Protocol):
    async def save(self, messages: Sequence[MessageInput], format: MessageFormat = "v1") -> list[AnyMessage]: ...
    async def get(self, thread_id: str, format: MessageFormat = "v1", last: int | None = None) -> list[AnyMessage]: ...
    async def get_paginated(
        self,
        thread_id: str,
        format: MessageFormat = "v1",
        page: int = 0,
        per_page: int = 40,
        from_date: datetime | str | None = None,
        to_date: datetime | str | None = None,
    ) -> MessagesPage: ...


def _parse(message: MessageInput) -> AnyMessage:
    if isinstance(message, (MessageV2, MessageV1)):
        return message
    content = message.get("content")
    if isinstance(content, (dict, MessageContent)):
        return MessageV2.model_validate(message)
    return MessageV1.model_validate(message)


def _content(value: Any) -> MessageContent:
    """Stored body to v2; legacy rows hold plain text or a v1 part list."""
    if isinstance(value, dict) and value.get("format") == 2:
        return MessageContent.model_validate(value)
    if isinstance(value, (str, list)):
        try:
            return content_from_v1(value)
        except (KeyError, ValueError):
            pass
    return MessageContent(content=encode_json(value))


def _from_row(row: Mapping[str, Any], format: MessageFormat) -> AnyMessage:
    message = MessageV2(
        id=row["id"],
        thread_id=row["thread_id"],
        resource_id=row.get("resource_id"),
        role=row["role"],
        content=_content(row["content"]),
        created_at=row["created_at"],
    )
    return to_v1(message) if format == "v1" else message


def _check_format(format: str) -> None:
    if format not in ("v1", "v2"):
        raise QueryError(f"Unknown message format: {format!r}")


class SQLMessageRepository(EngineRepository):
    async def save(self, messages: Sequence[MessageInput], format: MessageFormat = "v1") -> list[AnyMessage]:
        """Write all messages in one atomic batch.

        Every message is validated and every referenced thread checked before
        anything is written. Rows get contiguous sequence numbers in call order.
        """
        _check_format(format)
        if not messages:
            return []

        parsed: list[AnyMessage] = []
        for index, raw in enumerate(messages):
            try:
                parsed.append(_parse(raw))
            except ValueError as exc:
                raise ConstraintError(
                    f"Invalid message at row {index}: {exc}", details={"table": TABLE_MESSAGES, "row": index}
                ) from exc

        thread_ids = list(dict.fromkeys(message.thread_id for message in parsed))
        for thread_id in thread_ids:
            if await self._engine.load(TABLE_THREADS, {"id": thread_id}) is None:
                raise ReferentialError(
                    f"Thread {thread_id} not found", details={"table": TABLE_MESSAGES, "thread_id": thread_id}
                )

        # Thread touches lead the batch and each must match a row
        now = utcnow()
        statements = [
            self._engine.update_statement(TABLE_THREADS, {"id": thread_id}, {"updated_at": now})._replace(min_rows=1)
            for thread_id in thread_ids
        ]
        for index, message in enumerate(parsed):
            v2 = to_v2(message)
            record = {
                "id": v2.id,
                "thread_id": v2.thread_id,
                "resource_id": v2.resource_id,
                "role": v2.role,
                "type": v2.type,
                "content": v2.content.model_dump(mode="json"),
                "created_at": v2.created_at,
            }
            try:
                statements.extend(self._engine.insert_statements(TABLE_MESSAGES, record))
            except (ConstraintError, QueryError) as exc:
                raise type(exc)(
                    f"Invalid message at row {index}: {exc.message}", details={**exc.details, "row": index}
                ) from exc

        try:
            await self._engine.run_batch("save_messages", TABLE_MESSAGES, statements, key={"rows": len(parsed)})
        except ReferentialError as exc:
            index = exc.details.get("statement")
            if index is None or index >= len(thread_ids):
                raise
            thread_id = thread_ids[index]
            raise ReferentialError(
                f"Thread {thread_id} not found", details={**exc.details, "table": TABLE_MESSAGES, "thread_id": thread_id}
            ) from exc
        logger.debug("Messages saved", data={"count": len(parsed), "threads": thread_ids})

        converter = to_v1 if format == "v1" else to_v2
        return [converter(message) for message in parsed]

    async def get(self, thread_id: str, format: MessageFormat = "v1", last: int | None = None) -> list[AnyMessage]:
        """Messages of a thread in chronological order; ``last`` keeps only the most recent N."""
        _check_format(format)
        filters = [Eq("thread_id", thread_id)]
        if last is not None:
            page = await self._engine.query(TABLE_MESSAGES, filters, Pagination.window(limit=last), _NEWEST_FIRST)
            rows = list(reversed(page.rows))
        else:
            rows = (await self._engine.query(TABLE_MESSAGES, filters, order_by=_CHRONOLOGICAL)).rows
        return [_from_row(row, format) for row in rows]

    async def get_paginated(
        self,
        thread_id: str,
        format: MessageFormat = "v1",
        page: int = 0,
        per_page: int = 40,
        from_date: datetime | str | None = None,
        to_date: datetime | str | None = None,
    ) -> MessagesPage:
        _check_format(format)
        filters: list[Any] = [Eq("thread_id", thread_id)]
        if from_date is not None or to_date is not None:
            filters.append(DateRange("created_at", from_date, to_date))
        result = await self._engine.query(TABLE_MESSAGES, filters, Pagination.pages(page, per_page), _CHRONOLOGICAL)
        messages = [_from_row(row, format) for row in result.rows]
        return MessagesPage(messages=messages, **PageInfo.compute(result.total, page, per_page, len(messages)))
