"""Tool-calling conversation loop."""

from collections.abc import Sequence
from enum import StrEnum

from opentelemetry.trace import SpanKind, Tracer

from chattrace.clients.base import CompletionClient
from chattrace.errors import EmptyToolCallSetError, MaxIterationsExceededError
from chattrace.models.llm import (
    CompletionResult,
    ConversationResult,
    FinishReason,
    LLMUsage,
    Message,
)
from chattrace.services.dispatcher import ToolDispatcher
from chattrace.services.streaming import StreamAccumulator
from chattrace.telemetry import traced_span
from chattrace.tools.registry import ToolCatalog
from chattrace.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_ITERATIONS = 10


class LoopState(StrEnum):
    """Where the loop currently is."""

    AWAITING_MODEL = "awaiting_model"
    RESOLVING_TOOLS = "resolving_tools"


class ConversationLoop:
    """Alternates between the model and local tools until the model answers."""

    def __init__(
        self,
        client: CompletionClient,
        catalog: ToolCatalog,
        tracer: Tracer,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        streaming: bool = False,
        span_name: str = "chattrace.conversation",
    ):
        """Initialize the conversation loop.

        Args:
            client: Chat-completion service
            catalog: Tools offered to the model on every request
            tracer: Tracer for the conversation span and the tool spans
            max_iterations: Maximum number of model calls in one run
            streaming: Use the streaming variant of the completion call
            span_name: Name of the span wrapping the whole run
        """
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")

        self.client = client
        self.catalog = catalog
        self.tracer = tracer
        self.max_iterations = max_iterations
        self.streaming = streaming
        self.span_name = span_name
        self.dispatcher = ToolDispatcher(catalog, tracer)
        self.state = LoopState.AWAITING_MODEL

    def run(self, seed_messages: Sequence[Message]) -> ConversationResult:
        """Run the conversation until the model stops requesting tools.

        Args:
            seed_messages: Initial conversation, typically a system and a user message

        Returns:
            The final answer together with the conversation sent on the last call

        Raises:
            EmptyToolCallSetError: If the model asks for tool calls but names none
            UnknownToolError: If the model asks for a tool that is not registered
            ArgumentParseError: If a tool call carries unusable arguments
            MaxIterationsExceededError: If the model keeps requesting tools
            RemoteCallFailure: If the completion service fails
        """
        messages: list[Message] = list(seed_messages)
        usage = LLMUsage()
        turns = 0
        self.state = LoopState.AWAITING_MODEL

        logger.info(
            f"Starting conversation with {len(messages)} seed messages, {len(self.catalog)} tools, "
            f"max_iterations: {self.max_iterations}"
        )

        with traced_span(self.tracer, self.span_name, kind=SpanKind.CLIENT) as span:
            span.set_attribute("conversation.streaming", self.streaming)
            span.set_attribute("conversation.tools", self.catalog.names())

            while True:
                if turns >= self.max_iterations:
                    logger.warning(f"Conversation reached max iterations ({self.max_iterations})")
                    raise MaxIterationsExceededError(self.max_iterations)

                turns += 1
                self.state = LoopState.AWAITING_MODEL
                logger.debug(f"Conversation turn {turns}/{self.max_iterations}")

                result = self._complete(messages)
                usage.add(result.usage)

                if result.finish_reason != FinishReason.TOOL_CALLS:
                    logger.info(f"Conversation completed in {turns} turns ({result.finish_reason})")
                    span.set_attribute("conversation.turns", turns)
                    span.set_attribute("conversation.finish_reason", str(result.finish_reason))
                    return ConversationResult(
                        content=result.message.text,
                        finish_reason=result.finish_reason,
                        messages=tuple(messages),
                        turns=turns,
                        usage=usage,
                    )

                tool_calls = result.message.tool_calls
                if not tool_calls:
                    raise EmptyToolCallSetError()

                self.state = LoopState.RESOLVING_TOOLS
                logger.info(f"Model wants to use {len(tool_calls)} tools")

                messages.append(result.message)
                for request in tool_calls:
                    messages.append(self.dispatcher.invoke(request))

    def run_conversation(self, seed_messages: Sequence[Message]) -> str:
        """Run the conversation and return only the final answer text."""
        return self.run(seed_messages).content

    def _complete(self, messages: list[Message]) -> CompletionResult:
        """Make one model call with the current conversation and every tool definition."""
        snapshot = tuple(messages)
        tools = self.catalog.definitions()

        if not self.streaming:
            return self.client.complete(snapshot, tools)

        accumulator = StreamAccumulator().consume(self.client.stream(snapshot, tools))

        finish_reason = accumulator.finish_reason
        if finish_reason is None:
            # Streams that end without a finish reason are judged by their payload
            finish_reason = FinishReason.TOOL_CALLS if accumulator.as_tool_calls() else FinishReason.STOP

        logger.debug(f"Merged {accumulator.chunk_count} chunks, finish reason: {finish_reason}")
        return CompletionResult(
            finish_reason=finish_reason,
            message=accumulator.as_assistant_message(expect_tool_calls=finish_reason == FinishReason.TOOL_CALLS),
            usage=accumulator.usage,
        )
