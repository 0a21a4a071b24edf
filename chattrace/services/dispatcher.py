"""Resolve tool-call requests against the tool catalog."""

from opentelemetry.trace import Tracer

from chattrace.errors import UnknownToolError
from chattrace.models.llm import ToolCallRequest, ToolResultMessage
from chattrace.telemetry import traced_span
from chattrace.tools.base import arguments_as_attributes
from chattrace.tools.registry import ToolCatalog
from chattrace.utils.logging import get_logger

logger = get_logger(__name__)


class ToolDispatcher:
    """Runs the local handler for one requested tool call at a time."""

    def __init__(self, catalog: ToolCatalog, tracer: Tracer):
        """Initialize the dispatcher.

        Args:
            catalog: Tools that may be invoked
            tracer: Tracer used for the per-invocation ``local_<tool>`` spans
        """
        self.catalog = catalog
        self.tracer = tracer

    def invoke(self, request: ToolCallRequest) -> ToolResultMessage:
        """Execute a tool call and wrap its output as a tool result message.

        Args:
            request: Tool call as requested by the model

        Returns:
            Tool result correlated with ``request.id``

        Raises:
            UnknownToolError: If no registered tool matches the requested name
            ArgumentParseError: If the arguments are malformed or incomplete
        """
        tool = self.catalog.handler_for(request.function_name)
        if tool is None:
            logger.error(f"Unknown tool requested: {request.function_name}")
            raise UnknownToolError(request.function_name)

        with traced_span(self.tracer, f"local_{tool.name}") as span:
            span.set_attribute("tool.call_id", request.id)
            arguments = tool.parse_arguments(request.raw_arguments)
            span.set_attributes(arguments_as_attributes(arguments))

            logger.debug(f"Executing tool: {tool.name} with input: {request.raw_arguments}")
            result = tool.handler(arguments)
            logger.debug(f"Tool {tool.name} succeeded: {result[:100]}")

        return ToolResultMessage(tool_call_id=request.id, result_text=result)
