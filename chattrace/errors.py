"""Exception hierarchy for chattrace.

All chattrace-specific exceptions inherit from ChatTraceError.
"""


class ChatTraceError(Exception):
    """Base exception for all chattrace errors."""


class ConfigurationError(ChatTraceError):
    """Missing or invalid configuration (e.g., no API key)."""


class DuplicateToolNameError(ChatTraceError):
    """Raised when a tool name is registered twice in one catalog."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool already registered: {name}")


class ToolDispatchError(ChatTraceError):
    """Base for failures resolving a requested tool call."""


class UnknownToolError(ToolDispatchError):
    """Raised when the model requests a tool the catalog does not know.

    The model and the local program have diverged, so the run cannot continue.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Service requested tool-call has no matching function: {name}")


class ArgumentParseError(ToolDispatchError):
    """Raised when tool-call arguments are not valid JSON or miss required fields."""

    def __init__(self, name: str, raw_arguments: str, reason: str = "") -> None:
        self.name = name
        self.raw_arguments = raw_arguments
        message = f"Invalid arguments for tool '{name}': {raw_arguments!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class EmptyToolCallSetError(ChatTraceError):
    """Raised when the service asks for tool calls but supplies none."""

    def __init__(self) -> None:
        super().__init__("Service requested tool-calls, but without information about function(s) to invoke.")


class MaxIterationsExceededError(ChatTraceError):
    """Raised when the model keeps requesting tools past the iteration limit."""

    def __init__(self, max_iterations: int) -> None:
        self.max_iterations = max_iterations
        super().__init__(f"Conversation did not finish within {max_iterations} model calls")


class RemoteCallFailure(ChatTraceError):
    """Any failure surfaced by the chat-completion service (network, auth, rate limit)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        if status_code is not None:
            message = f"{message} (status {status_code})"
        super().__init__(message)
