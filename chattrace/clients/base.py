"""Chat-completion client interface."""

from collections.abc import Iterator, Sequence
from typing import Protocol

from chattrace.models.llm import CompletionResult, Message, StreamChunk, ToolDefinition


class CompletionClient(Protocol):
    """Interface for hosted chat-completion services.

    Implementations raise RemoteCallFailure for any failure of the service.
    """

    def complete(self, messages: Sequence[Message], tools: Sequence[ToolDefinition]) -> CompletionResult:
        """Send the conversation and block until the full response arrives."""
        ...

    def stream(self, messages: Sequence[Message], tools: Sequence[ToolDefinition]) -> Iterator[StreamChunk]:
        """Send the conversation and yield the response as incremental chunks."""
        ...
