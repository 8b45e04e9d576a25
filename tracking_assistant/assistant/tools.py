"""Tools the assistant may call while a run is paused.

The supported tools form a closed set of request variants. A call is parsed
into one variant and then executed through :class:`ToolVisitor`, so adding a
tool means adding a variant plus a ``visit_*`` method. Unknown names and
malformed arguments still produce a textual output instead of an error so the
run can finish.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Mapping, Protocol

from ..conversations.repository import (
    RECENT_TURNS_LIMIT,
    SUMMARY_TURNS_LIMIT,
    ConversationLogStore,
)
from .backend import ToolCall, ToolOutput

logger = logging.getLogger(__name__)


def not_implemented_output(name: str) -> str:
    return f'Tool "{name}" is not implemented.'


def invalid_arguments_output(name: str) -> str:
    return f'Invalid arguments for tool "{name}".'


def _limit_argument(arguments: Mapping[str, Any], default: int, maximum: int) -> int:
    value = arguments.get("limit", default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError("limit must be an integer")
    return max(1, min(value, maximum))


class ToolVisitor(Protocol):
    def visit_chat_count(self, request: "ChatCountRequest") -> str: ...

    def visit_recent_chats(self, request: "RecentChatsRequest") -> str: ...

    def visit_chat_summary(self, request: "ChatSummaryRequest") -> str: ...


@dataclass(frozen=True)
class ChatCountRequest:
    name: ClassVar[str] = "get_chat_count"
    description: ClassVar[str] = "Get the total number of chatbot messages logged"

    @classmethod
    def from_arguments(cls, arguments: Mapping[str, Any]) -> "ChatCountRequest":
        return cls()

    def accept(self, visitor: ToolVisitor) -> str:
        return visitor.visit_chat_count(self)


@dataclass(frozen=True)
class RecentChatsRequest:
    name: ClassVar[str] = "get_recent_chats"
    description: ClassVar[str] = "Get the most recent chatbot conversations"

    limit: int = RECENT_TURNS_LIMIT

    @classmethod
    def from_arguments(cls, arguments: Mapping[str, Any]) -> "RecentChatsRequest":
        return cls(limit=_limit_argument(arguments, RECENT_TURNS_LIMIT, 50))

    def accept(self, visitor: ToolVisitor) -> str:
        return visitor.visit_recent_chats(self)


@dataclass(frozen=True)
class ChatSummaryRequest:
    name: ClassVar[str] = "get_all_chats_summary"
    description: ClassVar[str] = (
        "Summarise the logged chatbot conversations, oldest first"
    )

    limit: int = SUMMARY_TURNS_LIMIT

    @classmethod
    def from_arguments(cls, arguments: Mapping[str, Any]) -> "ChatSummaryRequest":
        return cls(
            limit=_limit_argument(arguments, SUMMARY_TURNS_LIMIT, SUMMARY_TURNS_LIMIT)
        )

    def accept(self, visitor: ToolVisitor) -> str:
        return visitor.visit_chat_summary(self)


@dataclass(frozen=True)
class UnknownTool:
    name: str

    def accept(self, visitor: ToolVisitor) -> str:
        return not_implemented_output(self.name)


@dataclass(frozen=True)
class InvalidArguments:
    name: str

    def accept(self, visitor: ToolVisitor) -> str:
        return invalid_arguments_output(self.name)


ToolRequest = (
    ChatCountRequest | RecentChatsRequest | ChatSummaryRequest | UnknownTool | InvalidArguments
)

KNOWN_TOOLS = (ChatCountRequest, RecentChatsRequest, ChatSummaryRequest)
_TOOLS_BY_NAME = {tool.name: tool for tool in KNOWN_TOOLS}


def parse_tool_call(call: ToolCall) -> ToolRequest:
    """Turn a backend tool call into one of the supported request variants."""

    tool = _TOOLS_BY_NAME.get(call.name)
    if tool is None:
        return UnknownTool(call.name)
    try:
        arguments = json.loads(call.arguments or "{}")
        if not isinstance(arguments, dict):
            raise ValueError("arguments must be a JSON object")
        return tool.from_arguments(arguments)
    except ValueError:
        return InvalidArguments(call.name)


def tool_definitions() -> List[Dict[str, Any]]:
    """OpenAI function definitions for every supported tool."""

    definitions = []
    for tool in KNOWN_TOOLS:
        properties: Dict[str, Any] = {}
        if tool is not ChatCountRequest:
            properties["limit"] = {
                "type": "integer",
                "description": "Maximum number of conversations to return",
            }
        definitions.append(
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": {"type": "object", "properties": properties},
                },
            }
        )
    return definitions


class ConversationLogTools:
    """Executes tool requests as read-only queries on the conversation log."""

    def __init__(self, store: ConversationLogStore) -> None:
        self._store = store

    def visit_chat_count(self, request: ChatCountRequest) -> str:
        return f"Total chats: {self._store.count_turns()}"

    def visit_recent_chats(self, request: RecentChatsRequest) -> str:
        rows = [
            {
                "user_message": turn.user_message,
                "assistant_reply": turn.assistant_reply,
                "created_at": turn.created_at.isoformat() if turn.created_at else None,
            }
            for turn in self._store.recent_turns(request.limit)
        ]
        return json.dumps(rows, indent=2)

    def visit_chat_summary(self, request: ChatSummaryRequest) -> str:
        turns = self._store.oldest_turns(request.limit)
        if not turns:
            return "No chats found."
        blocks = []
        for index, turn in enumerate(turns, start=1):
            when = turn.created_at.strftime("%Y-%m-%d %H:%M:%S") if turn.created_at else "unknown"
            blocks.append(
                f"Chat #{index} ({when}):\nUser: {turn.user_message}\nBot: {turn.assistant_reply}"
            )
        return "\n\n".join(blocks)


class ToolDispatcher:
    """Runs every tool call of one polling step and pairs outputs to call ids."""

    def __init__(self, visitor: ToolVisitor) -> None:
        self._visitor = visitor

    def _run_one(self, call: ToolCall) -> ToolOutput:
        request = parse_tool_call(call)
        logger.info("Tool called: %s %s", call.name, call.arguments)
        return ToolOutput(tool_call_id=call.id, output=request.accept(self._visitor))

    async def dispatch(self, tool_calls: List[ToolCall]) -> List[ToolOutput]:
        # gather keeps input order, so outputs line up with their calls.
        return list(
            await asyncio.gather(
                *(asyncio.to_thread(self._run_one, call) for call in tool_calls)
            )
        )


__all__ = [
    "ChatCountRequest",
    "ChatSummaryRequest",
    "ConversationLogTools",
    "InvalidArguments",
    "KNOWN_TOOLS",
    "RecentChatsRequest",
    "ToolDispatcher",
    "ToolRequest",
    "ToolVisitor",
    "UnknownTool",
    "not_implemented_output",
    "parse_tool_call",
    "tool_definitions",
]
