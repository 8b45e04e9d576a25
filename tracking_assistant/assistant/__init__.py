"""Assistant run driver, hosted backend and tool dispatch."""

from .backend import OpenAIAssistantBackend, RunBackend, RunSnapshot, ToolCall, ToolOutput
from .driver import AssistantRunDriver, RunOutcome, RunPhase
from .tools import ConversationLogTools, ToolDispatcher, tool_definitions

__all__ = [
    "AssistantRunDriver",
    "ConversationLogTools",
    "OpenAIAssistantBackend",
    "RunBackend",
    "RunOutcome",
    "RunPhase",
    "RunSnapshot",
    "ToolCall",
    "ToolDispatcher",
    "ToolOutput",
    "tool_definitions",
]
