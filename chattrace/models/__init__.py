"""Data models for chattrace."""

from chattrace.models.llm import (
    AssistantMessage,
    CompletionResult,
    ConversationResult,
    FinishReason,
    LLMUsage,
    Message,
    StreamChunk,
    SystemMessage,
    ToolCallDelta,
    ToolCallRequest,
    ToolDefinition,
    ToolResultMessage,
    UserMessage,
)

__all__ = [
    "AssistantMessage",
    "CompletionResult",
    "ConversationResult",
    "FinishReason",
    "LLMUsage",
    "Message",
    "StreamChunk",
    "SystemMessage",
    "ToolCallDelta",
    "ToolCallRequest",
    "ToolDefinition",
    "ToolResultMessage",
    "UserMessage",
]
