"""Chat-completion service clients."""

from chattrace.clients.anthropic import AnthropicClient, ClientConfig
from chattrace.clients.base import CompletionClient

__all__ = ["AnthropicClient", "ClientConfig", "CompletionClient"]
