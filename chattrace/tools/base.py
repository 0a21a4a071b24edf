"""Base types and definitions for tools."""

import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from chattrace.errors import ArgumentParseError
from chattrace.models.llm import ToolDefinition

ToolArguments = BaseModel | dict[str, Any]
ToolHandler = Callable[[Any], str]


@dataclass(frozen=True)
class RegisteredTool:
    """A tool definition together with its argument model and local handler."""

    definition: ToolDefinition
    handler: ToolHandler
    input_model: type[BaseModel] | None = None

    @property
    def name(self) -> str:
        return self.definition.name

    def parse_arguments(self, raw_arguments: str) -> ToolArguments:
        """Parse and validate JSON-encoded tool arguments.

        Args:
            raw_arguments: Arguments as sent by the model

        Returns:
            An instance of the tool's input model, or a plain dict when the tool
            was registered with a raw JSON schema

        Raises:
            ArgumentParseError: If the JSON is malformed or required fields are missing
        """
        text = raw_arguments or "{}"
        if self.input_model is not None:
            try:
                return self.input_model.model_validate_json(text)
            except ValidationError as e:
                reason = "; ".join(error["msg"] for error in e.errors())
                raise ArgumentParseError(self.name, raw_arguments, reason) from e

        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            raise ArgumentParseError(self.name, raw_arguments, e.msg) from e
        if not isinstance(parsed, dict):
            raise ArgumentParseError(self.name, raw_arguments, "expected a JSON object")
        return parsed


def arguments_as_attributes(arguments: ToolArguments) -> dict[str, str | bool | int | float]:
    """Flatten parsed arguments into ``parameter.<name>`` span attributes."""
    values = arguments.model_dump() if isinstance(arguments, BaseModel) else arguments

    attributes: dict[str, str | bool | int | float] = {}
    for key, value in values.items():
        if value is None:
            continue
        if not isinstance(value, str | bool | int | float):
            value = json.dumps(value, default=str)
        attributes[f"parameter.{key}"] = value
    return attributes
