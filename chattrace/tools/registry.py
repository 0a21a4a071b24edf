"""Tool catalog for declaring and resolving callable tools."""

from typing import Any

from pydantic import BaseModel

from chattrace.errors import DuplicateToolNameError
from chattrace.models.llm import ToolDefinition
from chattrace.tools.base import RegisteredTool, ToolHandler
from chattrace.utils.logging import get_logger

logger = get_logger(__name__)


class ToolCatalog:
    """Ordered registry of tools offered to the model.

    Names are matched case-insensitively; definitions keep registration order.
    """

    def __init__(self) -> None:
        self._tools: dict[str, RegisteredTool] = {}

    def register(
        self,
        name: str,
        description: str,
        parameters: type[BaseModel] | dict[str, Any],
        handler: ToolHandler,
    ) -> ToolDefinition:
        """Register a new tool.

        Args:
            name: Function name the model will use
            description: What the tool does, shown to the model
            parameters: Pydantic model describing the arguments, or a raw JSON schema
            handler: Called with the parsed arguments, returns the result text

        Returns:
            The tool definition sent to the model

        Raises:
            DuplicateToolNameError: If the name is already registered
        """
        key = name.lower()
        if key in self._tools:
            raise DuplicateToolNameError(name)

        if isinstance(parameters, dict):
            input_model = None
            schema = parameters
        else:
            input_model = parameters
            schema = parameters.model_json_schema()

        definition = ToolDefinition(name=name, description=description, parameter_schema=schema)
        self._tools[key] = RegisteredTool(definition=definition, handler=handler, input_model=input_model)
        logger.debug(f"Registered tool {name}")
        return definition

    def definitions(self) -> list[ToolDefinition]:
        """Get the tool definitions in registration order."""
        return [tool.definition for tool in self._tools.values()]

    def handler_for(self, name: str) -> RegisteredTool | None:
        """Look up a tool by name, ignoring case."""
        return self._tools.get(name.lower())

    def names(self) -> list[str]:
        """Get list of all registered tool names."""
        return [tool.name for tool in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._tools

    def __len__(self) -> int:
        return len(self._tools)
