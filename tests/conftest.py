"""Shared fixtures for chattrace tests."""

from collections.abc import Iterator, Sequence

import pytest
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from chattrace.models.llm import (
    AssistantMessage,
    CompletionResult,
    FinishReason,
    Message,
    StreamChunk,
    ToolCallRequest,
    ToolDefinition,
)
from chattrace.telemetry import Telemetry


class ScriptedClient:
    """Completion client that replays canned responses and records every request."""

    def __init__(
        self,
        responses: Sequence[CompletionResult] = (),
        streams: Sequence[Sequence[StreamChunk]] = (),
    ):
        self.responses = list(responses)
        self.streams = [list(stream) for stream in streams]
        self.calls: list[tuple[tuple[Message, ...], list[ToolDefinition]]] = []

    def complete(self, messages: Sequence[Message], tools: Sequence[ToolDefinition]) -> CompletionResult:
        self.calls.append((tuple(messages), list(tools)))
        return self.responses.pop(0)

    def stream(self, messages: Sequence[Message], tools: Sequence[ToolDefinition]) -> Iterator[StreamChunk]:
        self.calls.append((tuple(messages), list(tools)))
        return iter(self.streams.pop(0))


def tool_calls_result(*calls: tuple[str, str, str]) -> CompletionResult:
    """Completion that asks for the given (id, name, arguments) tool calls."""
    return CompletionResult(
        finish_reason=FinishReason.TOOL_CALLS,
        message=AssistantMessage(
            tool_calls=tuple(ToolCallRequest(id=id_, function_name=name, raw_arguments=args) for id_, name, args in calls)
        ),
    )


def answer_result(text: str) -> CompletionResult:
    """Completion that ends the conversation with ``text``."""
    return CompletionResult(finish_reason=FinishReason.STOP, message=AssistantMessage(text=text))


@pytest.fixture
def span_exporter():
    """In-memory exporter collecting finished spans."""
    return InMemorySpanExporter()


@pytest.fixture
def telemetry(span_exporter):
    """Telemetry exporting synchronously to the in-memory exporter."""
    telemetry = Telemetry.create(service_name="chattrace-tests", exporter=span_exporter)
    yield telemetry
    telemetry.shutdown()


@pytest.fixture
def tracer(telemetry):
    """Tracer bound to the test telemetry."""
    return telemetry.tracer("chattrace.tests")


@pytest.fixture
def scripted_client():
    """Factory for scripted completion clients."""
    return ScriptedClient


@pytest.fixture
def tool_calls():
    """Factory for tool-call completions."""
    return tool_calls_result


@pytest.fixture
def answer():
    """Factory for final-answer completions."""
    return answer_result
