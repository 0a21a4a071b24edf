"""LLM-related data models and types (provider-agnostic)."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel


class FinishReason(StrEnum):
    """Why the model stopped producing output."""

    STOP = "stop"
    TOOL_CALLS = "tool_calls"
    LENGTH = "length"
    CONTENT_FILTER = "content_filter"


class ToolCallRequest(BaseModel):
    """A request from the model to run a local function."""

    id: str
    function_name: str
    raw_arguments: str = ""

    class Config:
        frozen = True


class ToolDefinition(BaseModel):
    """Definition of a tool sent with every completion request."""

    name: str
    description: str
    parameter_schema: dict[str, Any]

    class Config:
        frozen = True


# Message types
class SystemMessage(BaseModel):
    """System instructions for the model."""

    role: Literal["system"] = "system"
    text: str

    class Config:
        frozen = True


class UserMessage(BaseModel):
    """A message from the user."""

    role: Literal["user"] = "user"
    text: str

    class Config:
        frozen = True


class AssistantMessage(BaseModel):
    """A model turn, optionally carrying tool-call requests."""

    role: Literal["assistant"] = "assistant"
    text: str = ""
    tool_calls: tuple[ToolCallRequest, ...] = ()

    class Config:
        frozen = True


class ToolResultMessage(BaseModel):
    """Result of a local tool invocation, correlated by tool call id."""

    role: Literal["tool"] = "tool"
    tool_call_id: str
    result_text: str

    class Config:
        frozen = True


Message = SystemMessage | UserMessage | AssistantMessage | ToolResultMessage


@dataclass
class LLMUsage:
    """Token usage information from the LLM provider."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    def add(self, other: "LLMUsage | None") -> None:
        """Accumulate another usage record into this one."""
        if other is None:
            return
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.total_tokens += other.total_tokens


@dataclass
class CompletionResult:
    """Provider-agnostic response from one completion call."""

    finish_reason: FinishReason
    message: AssistantMessage
    usage: LLMUsage | None = None
    model: str = ""


class ToolCallDelta(BaseModel):
    """Partial tool-call data carried by one streamed chunk."""

    index: int = 0
    id: str | None = None
    function_name: str | None = None
    arguments: str | None = None


class StreamChunk(BaseModel):
    """One incremental update from a streaming completion call."""

    content: str | None = None
    tool_call: ToolCallDelta | None = None
    finish_reason: FinishReason | None = None
    usage: LLMUsage | None = None


@dataclass
class ConversationResult:
    """Result from running a conversation to completion."""

    content: str
    finish_reason: FinishReason
    messages: tuple[Message, ...]
    turns: int
    usage: LLMUsage = field(default_factory=LLMUsage)
