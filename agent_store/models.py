"""Domain models of the agent store."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(UTC)


class StoreModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    @field_validator("created_at", "updated_at", mode="after", check_fields=False)
    @classmethod
    def _as_utc(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


# ---------------------------------------------------------------------------
# Threads
# ---------------------------------------------------------------------------


class Thread(StoreModel):
    id: str
    resource_id: str
    title: str = ""
    # Any JSON value; malformed JSON written by other writers reads back as its raw text
    metadata: Any = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("metadata", mode="before")
    @classmethod
    def _metadata_default(cls, value: Any) -> Any:
        return {} if value is None else value


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

Role = Literal["user", "assistant", "system", "tool"]


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolInvocation(BaseModel):
    model_config = ConfigDict(extra="allow")
    state: Literal["partial-call", "call", "result"] = "call"
    tool_call_id: str
    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)
    result: Any = None
    step: int | None = None


class ToolInvocationPart(BaseModel):
    type: Literal["tool-invocation"] = "tool-invocation"
    tool_invocation: ToolInvocation


class ReasoningPart(BaseModel):
    type: Literal["reasoning"] = "reasoning"
    reasoning: str
    details: list[dict[str, Any]] = Field(default_factory=list)


class FilePart(BaseModel):
    type: Literal["file"] = "file"
    data: str
    mime_type: str


class SourcePart(BaseModel):
    type: Literal["source"] = "source"
    source: dict[str, Any]


class StepStartPart(BaseModel):
    type: Literal["step-start"] = "step-start"


MessagePart = Annotated[
    Union[TextPart, ToolInvocationPart, ReasoningPart, FilePart, SourcePart, StepStartPart],
    Field(discriminator="type"),
]


class MessageContent(BaseModel):
    """Rich (v2) message body."""

    format: Literal[2] = 2
    parts: list[MessagePart] = Field(default_factory=list)
    content: str | None = None
    metadata: dict[str, Any] | None = None


class MessageV2(StoreModel):
    id: str
    thread_id: str
    resource_id: str | None = None
    role: Role
    type: str = "v2"
    content: MessageContent
    created_at: datetime = Field(default_factory=utcnow)


class MessageV1(StoreModel):
    """Legacy message shape: content is plain text or a list of core parts.

    Core parts are mappings with a ``type`` of ``text``, ``tool-call``,
    ``tool-result``, ``reasoning``, ``image`` or ``file``.
    """

    id: str
    thread_id: str
    resource_id: str | None = None
    role: Role
    type: Literal["text", "tool-call", "tool-result"] = "text"
    content: str | list[dict[str, Any]]
    created_at: datetime = Field(default_factory=utcnow)


AnyMessage = Union[MessageV2, MessageV1]
MessageFormat = Literal["v1", "v2"]


def content_from_v1(content: str | list[dict[str, Any]]) -> MessageContent:
    """Build a v2 body from legacy content."""
    if isinstance(content, str):
        return MessageContent(parts=[TextPart(text=content)], content=content)

    parts: list[Any] = []
    # tool_call_id -> index of its part, so a later result completes the call
    calls: dict[str, int] = {}
    texts: list[str] = []
    for raw in content:
        kind = raw.get("type")
        if kind == "text":
            parts.append(TextPart(text=raw.get("text", "")))
            texts.append(raw.get("text", ""))
        elif kind == "tool-call":
            call = ToolInvocation(
                state="call",
                tool_call_id=raw["tool_call_id"],
                tool_name=raw["tool_name"],
                args=raw.get("args") or {},
            )
            calls[call.tool_call_id] = len(parts)
            parts.append(ToolInvocationPart(tool_invocation=call))
        elif kind == "tool-result":
            index = calls.get(raw["tool_call_id"])
            if index is not None:
                call = parts[index].tool_invocation.model_copy(
                    update={"state": "result", "result": raw.get("result")}
                )
                parts[index] = ToolInvocationPart(tool_invocation=call)
            else:
                parts.append(
                    ToolInvocationPart(
                        tool_invocation=ToolInvocation(
                            state="result",
                            tool_call_id=raw["tool_call_id"],
                            tool_name=raw.get("tool_name", ""),
                            args=raw.get("args") or {},
                            result=raw.get("result"),
                        )
                    )
                )
        elif kind == "reasoning":
            parts.append(ReasoningPart(reasoning=raw.get("text", "")))
        elif kind in ("file", "image"):
            data = raw.get("data", raw.get("image", ""))
            parts.append(FilePart(data=str(data), mime_type=raw.get("mime_type", "application/octet-stream")))
        else:
            raise ValueError(f"Unsupported v1 content part: {kind!r}")
    return MessageContent(parts=parts, content="".join(texts) or None)


def content_to_v1(content: MessageContent) -> str | list[dict[str, Any]]:
    """Flatten a v2 body to legacy content; parts v1 cannot express are dropped."""
    out: list[dict[str, Any]] = []
    for part in content.parts:
        if isinstance(part, TextPart):
            out.append({"type": "text", "text": part.text})
        elif isinstance(part, ToolInvocationPart):
            call = part.tool_invocation
            out.append(
                {"type": "tool-call", "tool_call_id": call.tool_call_id, "tool_name": call.tool_name, "args": call.args}
            )
            if call.state == "result":
                out.append(
                    {
                        "type": "tool-result",
                        "tool_call_id": call.tool_call_id,
                        "tool_name": call.tool_name,
                        "result": call.result,
                    }
                )
        elif isinstance(part, ReasoningPart):
            out.append({"type": "reasoning", "text": part.reasoning})
        elif isinstance(part, FilePart):
            out.append({"type": "file", "data": part.data, "mime_type": part.mime_type})
    if not out:
        return content.content or ""
    if len(out) == 1 and out[0]["type"] == "text":
        return out[0]["text"]
    return out


def to_v2(message: AnyMessage) -> MessageV2:
    if isinstance(message, MessageV2):
        return message
    return MessageV2(
        id=message.id,
        thread_id=message.thread_id,
        resource_id=message.resource_id,
        role=message.role,
        content=content_from_v1(message.content),
        created_at=message.created_at,
    )


def to_v1(message: AnyMessage) -> MessageV1:
    if isinstance(message, MessageV1):
        return message
    content = content_to_v1(message.content)
    if message.role == "tool":
        kind = "tool-result"
    elif isinstance(content, list) and any(p["type"] == "tool-call" for p in content):
        kind = "tool-call"
    else:
        kind = "text"
    return MessageV1(
        id=message.id,
        thread_id=message.thread_id,
        resource_id=message.resource_id,
        role=message.role,
        type=kind,
        content=content,
        created_at=message.created_at,
    )


# ---------------------------------------------------------------------------
# Traces
# ---------------------------------------------------------------------------


class Trace(StoreModel):
    id: str
    parent_span_id: str | None = None
    name: str
    trace_id: str
    scope: str
    kind: int
    attributes: Any = Field(default_factory=dict)
    status: Any = None
    events: Any = None
    links: Any = None
    other: Any = None
    start_time: str
    end_time: str
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("attributes", mode="before")
    @classmethod
    def _attributes_default(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _big_number(cls, value: Any) -> Any:
        # Nanosecond clocks overflow float precision
        if isinstance(value, float):
            raise ValueError("big number must be an int or numeric string")
        if isinstance(value, (int, Decimal)) and not isinstance(value, bool):
            return str(value)
        return value


# ---------------------------------------------------------------------------
# Workflows
# ---------------------------------------------------------------------------


class WorkflowRun(StoreModel):
    workflow_name: str
    run_id: str
    resource_id: str | None = None
    snapshot: Any
    created_at: datetime
    updated_at: datetime


class WorkflowRuns(BaseModel):
    runs: list[WorkflowRun]
    total: int


# ---------------------------------------------------------------------------
# Evals
# ---------------------------------------------------------------------------


class EvalRow(StoreModel):
    agent_name: str
    input: str
    output: str
    result: Any
    metric_name: str
    instructions: str
    test_info: Any = None
    global_run_id: str
    run_id: str
    created_at: datetime = Field(default_factory=utcnow)


EvalType = Literal["test", "live"]


# ---------------------------------------------------------------------------
# Paginated results
# ---------------------------------------------------------------------------


class PageInfo(BaseModel):
    total: int
    page: int
    per_page: int
    has_more: bool

    @staticmethod
    def compute(total: int, page: int, per_page: int, returned: int) -> dict[str, Any]:
        return {
            "total": total,
            "page": page,
            "per_page": per_page,
            "has_more": page * per_page + returned < total,
        }


class ThreadsPage(PageInfo):
    threads: list[Thread]


class MessagesPage(PageInfo):
    messages: list[AnyMessage]


class TracesPage(PageInfo):
    traces: list[Trace]
