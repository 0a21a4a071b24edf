"""Merge streamed completion chunks into complete messages."""

from collections.abc import Iterable
from dataclasses import dataclass, field

from chattrace.errors import EmptyToolCallSetError
from chattrace.models.llm import (
    AssistantMessage,
    FinishReason,
    LLMUsage,
    StreamChunk,
    ToolCallDelta,
    ToolCallRequest,
)


def _carries_data(delta: ToolCallDelta) -> bool:
    # Some services send placeholder deltas with every field empty
    return bool(delta.id or delta.function_name or delta.arguments)


@dataclass
class _ToolCallBuffer:
    """Tool call being assembled across chunks."""

    id: str | None = None
    function_name: str | None = None
    arguments: list[str] = field(default_factory=list)

    def merge(self, delta: ToolCallDelta) -> None:
        # id and name are sent once; continuation chunks leave them empty
        if delta.id and self.id is None:
            self.id = delta.id
        if delta.function_name and self.function_name is None:
            self.function_name = delta.function_name
        if delta.arguments is not None:
            self.arguments.append(delta.arguments)

    def as_request(self) -> ToolCallRequest:
        return ToolCallRequest(
            id=self.id or "",
            function_name=self.function_name or "",
            raw_arguments="".join(self.arguments),
        )


class StreamAccumulator:
    """Single-pass merger for the chunks of one streaming completion call.

    Content fragments and tool-call fragments are collected independently. The
    accumulator does not decide whether the stream was a tool call or a final
    answer; the caller picks ``as_tool_calls()`` or ``content``.
    """

    def __init__(self) -> None:
        self._content: list[str] = []
        self._tool_calls: dict[int, _ToolCallBuffer] = {}
        self.finish_reason: FinishReason | None = None
        self.usage = LLMUsage()
        self.chunk_count = 0

    def add(self, chunk: StreamChunk) -> None:
        """Merge one chunk."""
        self.chunk_count += 1

        if chunk.content is not None:
            self._content.append(chunk.content)

        if chunk.tool_call is not None and _carries_data(chunk.tool_call):
            buffer = self._tool_calls.setdefault(chunk.tool_call.index, _ToolCallBuffer())
            buffer.merge(chunk.tool_call)

        if chunk.finish_reason is not None:
            self.finish_reason = chunk.finish_reason

        self.usage.add(chunk.usage)

    def consume(self, chunks: Iterable[StreamChunk]) -> "StreamAccumulator":
        """Drain a chunk stream into this accumulator."""
        for chunk in chunks:
            self.add(chunk)
        return self

    @property
    def content(self) -> str:
        return "".join(self._content)

    def as_tool_calls(self) -> list[ToolCallRequest]:
        """Get the merged tool calls in stream index order."""
        return [self._tool_calls[index].as_request() for index in sorted(self._tool_calls)]

    def as_tool_call(self) -> ToolCallRequest:
        """Get the first merged tool call.

        Raises:
            EmptyToolCallSetError: If the stream carried no tool-call data
        """
        tool_calls = self.as_tool_calls()
        if not tool_calls:
            raise EmptyToolCallSetError()
        return tool_calls[0]

    def as_assistant_message(self, expect_tool_calls: bool) -> AssistantMessage:
        """Build the assistant turn, with tool calls only when the caller expects them."""
        if expect_tool_calls:
            return AssistantMessage(text=self.content, tool_calls=tuple(self.as_tool_calls()))
        return AssistantMessage(text=self.content)
