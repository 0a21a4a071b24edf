"""Conversation orchestration services."""

from chattrace.services.conversation import ConversationLoop, LoopState
from chattrace.services.dispatcher import ToolDispatcher
from chattrace.services.streaming import StreamAccumulator

__all__ = ["ConversationLoop", "LoopState", "StreamAccumulator", "ToolDispatcher"]
