"""Anthropic API client with rate limiting, tracing and error handling."""

import json
import os
import time
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from typing import Any, Literal, TypeVar

import tiktoken
from anthropic import Anthropic, APIConnectionError, APIError, APIStatusError
from anthropic.types import Message as AnthropicResponse
from limits import RateLimitItem, parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter
from opentelemetry import trace
from opentelemetry.trace import SpanKind, Status, StatusCode, Tracer
from pydantic import BaseModel

from chattrace.errors import ConfigurationError, RemoteCallFailure
from chattrace.models.llm import (
    AssistantMessage,
    CompletionResult,
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
from chattrace.telemetry import traced_span
from chattrace.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

STOP_REASONS: dict[str, FinishReason] = {
    "tool_use": FinishReason.TOOL_CALLS,
    "end_turn": FinishReason.STOP,
    "stop_sequence": FinishReason.STOP,
    "pause_turn": FinishReason.STOP,
    "max_tokens": FinishReason.LENGTH,
    "refusal": FinishReason.CONTENT_FILTER,
}


def to_finish_reason(stop_reason: str | None) -> FinishReason:
    """Map an Anthropic stop reason onto the provider-agnostic finish reason."""
    if stop_reason is None:
        return FinishReason.STOP
    return STOP_REASONS.get(stop_reason, FinishReason.STOP)


class AnthropicMessage(BaseModel):
    """Message format for Anthropic API."""

    role: Literal["user", "assistant"]
    content: str | list[dict[str, Any]]


class AnthropicTool(BaseModel):
    """Tool definition for Anthropic API."""

    name: str
    description: str
    input_schema: dict[str, Any]


@dataclass
class ClientConfig:
    """Configuration for the Anthropic API client."""

    model: str = "claude-sonnet-4-5"
    max_tokens: int = 1024
    temperature: float = 0.1
    max_retries: int = 3
    retry_delay: float = 1.0

    # Client-side rate limits
    requests_per_minute: int = 50
    tokens_per_minute: int = 40_000
    use_tiktoken: bool = True


class RateLimiter:
    """Moving-window limiter for requests and estimated tokens per minute."""

    def __init__(self, requests_per_minute: int = 50, tokens_per_minute: int = 40_000):
        self.storage = MemoryStorage()
        self.limiter = MovingWindowRateLimiter(self.storage)

        self.request_limit = parse(f"{requests_per_minute}/minute")
        self.token_limit = parse(f"{tokens_per_minute}/minute")

    def acquire(self, estimated_tokens: int, identifier: str = "anthropic") -> None:
        """Block until the request fits within the configured limits."""
        logger.debug(f"Checking rate limit for {estimated_tokens} tokens, identifier: {identifier}")
        self._wait_for(self.request_limit, identifier, 1, "Request")
        self._wait_for(self.token_limit, f"{identifier}_tokens", estimated_tokens, "Token")

    def _wait_for(self, limit: RateLimitItem, identifier: str, cost: int, label: str) -> None:
        # A cost above the limit could never be admitted
        cost = min(cost, limit.amount)

        while not self.limiter.hit(limit, identifier, cost=cost):
            window_stats = self.limiter.get_window_stats(limit, identifier)
            wait_time = max(0.0, window_stats.reset_time - time.time())
            logger.warning(f"{label} rate limit exceeded, waiting {wait_time:.2f}s")
            time.sleep(wait_time)


def _retry_after(error: APIStatusError, default: float) -> float:
    """Seconds to wait from the Retry-After header, or the default."""
    try:
        return float(error.response.headers.get("retry-after", default))
    except ValueError:
        return default


def _decode_arguments(raw_arguments: str) -> dict[str, Any]:
    """Decode tool-call arguments for a tool_use block."""
    try:
        decoded = json.loads(raw_arguments or "{}")
    except json.JSONDecodeError:
        return {}
    return decoded if isinstance(decoded, dict) else {}


def to_anthropic_messages(messages: Sequence[Message]) -> tuple[str, list[AnthropicMessage]]:
    """Convert the conversation into a system prompt and Anthropic messages.

    Consecutive tool results are folded into one user message, as the API
    expects all results for an assistant turn in the following user turn.
    """
    system_parts: list[str] = []
    converted: list[AnthropicMessage] = []

    for message in messages:
        if isinstance(message, SystemMessage):
            system_parts.append(message.text)

        elif isinstance(message, UserMessage):
            converted.append(AnthropicMessage(role="user", content=message.text))

        elif isinstance(message, AssistantMessage):
            blocks: list[dict[str, Any]] = []
            if message.text:
                blocks.append({"type": "text", "text": message.text})
            for tool_call in message.tool_calls:
                blocks.append(
                    {
                        "type": "tool_use",
                        "id": tool_call.id,
                        "name": tool_call.function_name,
                        "input": _decode_arguments(tool_call.raw_arguments),
                    }
                )
            converted.append(AnthropicMessage(role="assistant", content=blocks or message.text))

        elif isinstance(message, ToolResultMessage):
            block = {"type": "tool_result", "tool_use_id": message.tool_call_id, "content": message.result_text}
            previous = converted[-1] if converted else None
            if (
                previous is not None
                and previous.role == "user"
                and isinstance(previous.content, list)
                and all(item.get("type") == "tool_result" for item in previous.content)
            ):
                previous.content.append(block)
            else:
                converted.append(AnthropicMessage(role="user", content=[block]))

    return "\n\n".join(system_parts), converted


def to_anthropic_tools(tools: Sequence[ToolDefinition]) -> list[AnthropicTool]:
    """Convert tool definitions to the Anthropic tool format."""
    return [
        AnthropicTool(name=tool.name, description=tool.description, input_schema=tool.parameter_schema)
        for tool in tools
    ]


class AnthropicClient:
    """Chat-completion client backed by the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        config: ClientConfig | None = None,
        tracer: Tracer | None = None,
        rate_limiter: RateLimiter | None = None,
    ):
        """Initialize Anthropic client.

        Args:
            api_key: Anthropic API key (defaults to ANTHROPIC_API_KEY env var)
            base_url: Service endpoint (defaults to ANTHROPIC_BASE_URL env var, then the public API)
            config: Client configuration
            tracer: Tracer for the per-request ``chat <model>`` spans
            rate_limiter: Shared limiter, one is created from the config otherwise
        """
        anthropic_api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not anthropic_api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY environment variable is required")

        self.api_key = anthropic_api_key
        self.base_url = base_url or os.getenv("ANTHROPIC_BASE_URL")
        self.config = config or ClientConfig()
        self.tracer = tracer or trace.get_tracer(__name__)
        self.rate_limiter = rate_limiter or RateLimiter(
            self.config.requests_per_minute, self.config.tokens_per_minute
        )

        # Retries are handled here so they show up in logs and spans
        self.client = Anthropic(api_key=self.api_key, base_url=self.base_url, max_retries=0)

        self.tokenizer: tiktoken.Encoding | None = None
        self._tokenizer_loaded = not self.config.use_tiktoken

    def complete(self, messages: Sequence[Message], tools: Sequence[ToolDefinition]) -> CompletionResult:
        """Send the conversation and wait for the complete response.

        Args:
            messages: Conversation history
            tools: Tools the model may call

        Returns:
            Provider-agnostic completion result

        Raises:
            RemoteCallFailure: If the request fails after retries
        """
        request_params = self._build_request(messages, tools)

        with traced_span(
            self.tracer, f"chat {request_params['model']}", kind=SpanKind.CLIENT, attributes=self._span_attributes()
        ) as span:
            response: AnthropicResponse = self._request_with_retries(
                lambda: self.client.messages.create(**request_params)
            )
            result = self._to_completion_result(response)

            span.set_attribute("gen_ai.response.model", result.model)
            span.set_attribute("gen_ai.response.finish_reasons", [str(result.finish_reason)])
            if result.usage:
                span.set_attribute("gen_ai.usage.input_tokens", result.usage.input_tokens)
                span.set_attribute("gen_ai.usage.output_tokens", result.usage.output_tokens)

        logger.debug(
            f"Response received - Finish reason: {result.finish_reason}, Tool calls: {len(result.message.tool_calls)}"
        )
        return result

    def stream(self, messages: Sequence[Message], tools: Sequence[ToolDefinition]) -> Iterator[StreamChunk]:
        """Send the conversation and yield the response as it arrives.

        The span covering the request stays open until the stream is exhausted.

        Raises:
            RemoteCallFailure: If the request or the stream fails
        """
        request_params = self._build_request(messages, tools)
        span = self.tracer.start_span(
            f"chat {request_params['model']}", kind=SpanKind.CLIENT, attributes=self._span_attributes()
        )
        span.set_attribute("gen_ai.request.stream", True)

        events = None
        try:
            events = self._request_with_retries(lambda: self.client.messages.create(**request_params, stream=True))
            for event in events:
                chunk = self._to_stream_chunk(event)
                if chunk is not None:
                    if chunk.finish_reason is not None:
                        span.set_attribute("gen_ai.response.finish_reasons", [str(chunk.finish_reason)])
                    yield chunk
        except APIError as e:
            failure = RemoteCallFailure(f"Stream from Anthropic API failed: {e}", getattr(e, "status_code", None))
            span.record_exception(failure)
            span.set_status(Status(StatusCode.ERROR, str(failure)))
            raise failure from e
        except Exception as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            raise
        else:
            span.set_status(Status(StatusCode.OK))
        finally:
            # Also reached when the consumer stops iterating early
            if events is not None:
                events.close()
            span.end()

    def _build_request(self, messages: Sequence[Message], tools: Sequence[ToolDefinition]) -> dict[str, Any]:
        """Build the keyword arguments for ``messages.create``."""
        system_prompt, anthropic_messages = to_anthropic_messages(messages)
        anthropic_tools = to_anthropic_tools(tools)

        estimated_tokens = self._estimate_tokens(anthropic_messages, system_prompt)
        logger.debug(f"Estimated tokens: {estimated_tokens}")
        self.rate_limiter.acquire(estimated_tokens)

        request_params: dict[str, Any] = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "messages": [msg.model_dump() for msg in anthropic_messages],
        }
        if system_prompt:
            request_params["system"] = system_prompt
        if anthropic_tools:
            request_params["tools"] = [tool.model_dump() for tool in anthropic_tools]

        logger.debug(f"Creating message with {len(anthropic_messages)} messages, {len(anthropic_tools)} tools")
        return request_params

    def _span_attributes(self) -> dict[str, Any]:
        return {
            "gen_ai.system": "anthropic",
            "gen_ai.operation.name": "chat",
            "gen_ai.request.model": self.config.model,
            "gen_ai.request.max_tokens": self.config.max_tokens,
            "gen_ai.request.temperature": self.config.temperature,
        }

    def _request_with_retries(self, call: Callable[[], T]) -> T:
        """Execute an Anthropic API request with retry logic."""
        for attempt in range(self.config.max_retries):
            last_attempt = attempt == self.config.max_retries - 1
            try:
                return call()

            except APIStatusError as e:
                if e.status_code == 429 and not last_attempt:  # Rate limit exceeded
                    retry_after = _retry_after(e, self.config.retry_delay * (2**attempt))
                    if retry_after < 120:
                        logger.warning(f"Rate limited by Anthropic API, retrying in {retry_after:.1f}s")
                        time.sleep(retry_after)
                        continue

                elif e.status_code >= 500 and not last_attempt:
                    # Server error, retry with exponential backoff
                    delay = self.config.retry_delay * (2**attempt)
                    logger.warning(f"Anthropic API returned {e.status_code}, retrying in {delay:.1f}s")
                    time.sleep(delay)
                    continue

                raise RemoteCallFailure(f"Anthropic API request failed: {e.message}", e.status_code) from e

            except APIConnectionError as e:
                if not last_attempt:
                    delay = self.config.retry_delay * (2**attempt)
                    logger.warning(f"Connection to Anthropic API failed, retrying in {delay:.1f}s")
                    time.sleep(delay)
                    continue
                raise RemoteCallFailure(f"Could not reach Anthropic API: {e}") from e

            except APIError as e:
                raise RemoteCallFailure(f"Anthropic API request failed: {e}") from e

        raise RemoteCallFailure(f"Failed to complete request after {self.config.max_retries} attempts")

    def _to_completion_result(self, response: AnthropicResponse) -> CompletionResult:
        """Convert an Anthropic response to a completion result."""
        text_parts: list[str] = []
        tool_calls: list[ToolCallRequest] = []

        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCallRequest(id=block.id, function_name=block.name, raw_arguments=json.dumps(block.input))
                )
            else:
                logger.warning(f"Unknown content block type: {block.type}")

        usage = None
        if response.usage:
            usage = LLMUsage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
                total_tokens=response.usage.input_tokens + response.usage.output_tokens,
            )

        return CompletionResult(
            finish_reason=to_finish_reason(response.stop_reason),
            message=AssistantMessage(text="".join(text_parts), tool_calls=tuple(tool_calls)),
            usage=usage,
            model=response.model,
        )

    def _to_stream_chunk(self, event: Any) -> StreamChunk | None:
        """Convert one raw stream event to a chunk, or None for events without payload."""
        if event.type == "message_start":
            input_tokens = event.message.usage.input_tokens
            return StreamChunk(usage=LLMUsage(input_tokens=input_tokens, total_tokens=input_tokens))

        if event.type == "content_block_start":
            block = event.content_block
            if block.type == "tool_use":
                return StreamChunk(tool_call=ToolCallDelta(index=event.index, id=block.id, function_name=block.name))
            if block.type == "text" and block.text:
                return StreamChunk(content=block.text)
            return None

        if event.type == "content_block_delta":
            delta = event.delta
            if delta.type == "text_delta":
                return StreamChunk(content=delta.text)
            if delta.type == "input_json_delta":
                return StreamChunk(tool_call=ToolCallDelta(index=event.index, arguments=delta.partial_json))
            return None

        if event.type == "message_delta":
            output_tokens = event.usage.output_tokens if event.usage else 0
            return StreamChunk(
                finish_reason=to_finish_reason(event.delta.stop_reason),
                usage=LLMUsage(output_tokens=output_tokens, total_tokens=output_tokens),
            )

        return None

    def _get_tokenizer(self) -> tiktoken.Encoding | None:
        """Load the tokenizer on first use."""
        if not self._tokenizer_loaded:
            self._tokenizer_loaded = True
            try:
                # Close approximation for Claude
                self.tokenizer = tiktoken.get_encoding("cl100k_base")
            except Exception as e:
                logger.warning(f"Tokenizer unavailable, falling back to character estimate: {e}")
                self.tokenizer = None
        return self.tokenizer

    def _estimate_tokens(self, messages: list[AnthropicMessage], system_prompt: str) -> int:
        """Estimate token count for rate limiting.

        Args:
            messages: Conversation messages
            system_prompt: System prompt

        Returns:
            Estimated token count
        """
        text_content = system_prompt

        for message in messages:
            if isinstance(message.content, str):
                text_content += message.content
            else:
                for item in message.content:
                    text_content += str(item.get("text") or item.get("content") or item.get("input") or "")

        tokenizer = self._get_tokenizer()
        if tokenizer is None:
            # Roughly 4 characters per token
            return len(text_content) // 4
        return len(tokenizer.encode(text_content))
