"""Hosted assistant backend (threads, runs and tool-output submission)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Protocol

import openai
from openai import AsyncOpenAI

from ..errors import AssistantBackendError, GatewayError

logger = logging.getLogger(__name__)

THREAD_ID_PREFIX = "thread_"

# Statuses reported by the Assistants API.
STATUS_COMPLETED = "completed"
STATUS_REQUIRES_ACTION = "requires_action"
FAILURE_STATUSES = frozenset({"failed", "cancelled", "expired", "incomplete"})


def is_thread_id(value: Optional[str]) -> bool:
    """Whether ``value`` looks like an identifier issued by the backend."""
    return bool(value) and value.startswith(THREAD_ID_PREFIX)


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: str = "{}"


@dataclass(frozen=True)
class ToolOutput:
    tool_call_id: str
    output: str

    def as_payload(self) -> dict[str, str]:
        return {"tool_call_id": self.tool_call_id, "output": self.output}


@dataclass(frozen=True)
class RunSnapshot:
    """Status of a run as last reported by the backend."""

    id: str
    status: str
    tool_calls: List[ToolCall] = field(default_factory=list)
    last_error: Optional[str] = None


class RunBackend(Protocol):
    """Operations the run driver needs from the hosted assistant."""

    async def create_thread(self) -> str: ...

    async def add_user_message(self, thread_id: str, text: str) -> None: ...

    async def create_run(self, thread_id: str, assistant_id: str) -> RunSnapshot: ...

    async def retrieve_run(self, thread_id: str, run_id: str) -> RunSnapshot: ...

    async def submit_tool_outputs(
        self, thread_id: str, run_id: str, outputs: List[ToolOutput]
    ) -> RunSnapshot: ...

    async def latest_assistant_reply(self, thread_id: str) -> Optional[str]: ...


def snapshot_from_run(run: Any) -> RunSnapshot:
    """Convert an OpenAI ``Run`` object into a :class:`RunSnapshot`."""

    tool_calls: List[ToolCall] = []
    required = getattr(run, "required_action", None)
    submit = getattr(required, "submit_tool_outputs", None) if required else None
    for call in getattr(submit, "tool_calls", None) or []:
        function = call.function
        tool_calls.append(
            ToolCall(id=call.id, name=function.name, arguments=function.arguments or "{}")
        )
    last_error = getattr(run, "last_error", None)
    return RunSnapshot(
        id=run.id,
        status=run.status,
        tool_calls=tool_calls,
        last_error=getattr(last_error, "message", None) if last_error else None,
    )


class OpenAIAssistantBackend:
    """:class:`RunBackend` backed by the OpenAI Assistants API.

    SDK failures (connection or API errors) are re-raised as
    :class:`AssistantBackendError` so callers only handle gateway errors.
    """

    def __init__(self, client: AsyncOpenAI) -> None:
        self._client = client

    @classmethod
    def from_api_key(cls, api_key: Optional[str]) -> "OpenAIAssistantBackend":
        if not api_key:
            raise GatewayError("OPENAI_API_KEY is not configured")
        return cls(AsyncOpenAI(api_key=api_key))

    async def create_thread(self) -> str:
        try:
            thread = await self._client.beta.threads.create()
        except openai.OpenAIError as exc:
            raise AssistantBackendError(f"Failed to create thread: {exc}") from exc
        return thread.id

    async def add_user_message(self, thread_id: str, text: str) -> None:
        try:
            await self._client.beta.threads.messages.create(
                thread_id, role="user", content=text
            )
        except openai.OpenAIError as exc:
            raise AssistantBackendError(
                f"Failed to add message to {thread_id}: {exc}"
            ) from exc

    async def create_run(self, thread_id: str, assistant_id: str) -> RunSnapshot:
        try:
            run = await self._client.beta.threads.runs.create(
                thread_id=thread_id, assistant_id=assistant_id
            )
        except openai.OpenAIError as exc:
            raise AssistantBackendError(f"Failed to start run: {exc}") from exc
        logger.debug("Started run %s on thread %s", run.id, thread_id)
        return snapshot_from_run(run)

    async def retrieve_run(self, thread_id: str, run_id: str) -> RunSnapshot:
        try:
            run = await self._client.beta.threads.runs.retrieve(
                run_id, thread_id=thread_id
            )
        except openai.OpenAIError as exc:
            raise AssistantBackendError(f"Failed to poll run {run_id}: {exc}") from exc
        return snapshot_from_run(run)

    async def submit_tool_outputs(
        self, thread_id: str, run_id: str, outputs: List[ToolOutput]
    ) -> RunSnapshot:
        try:
            run = await self._client.beta.threads.runs.submit_tool_outputs(
                run_id,
                thread_id=thread_id,
                tool_outputs=[output.as_payload() for output in outputs],
            )
        except openai.OpenAIError as exc:
            raise AssistantBackendError(
                f"Failed to submit tool outputs for {run_id}: {exc}"
            ) from exc
        return snapshot_from_run(run)

    async def latest_assistant_reply(self, thread_id: str) -> Optional[str]:
        try:
            page = await self._client.beta.threads.messages.list(
                thread_id, order="desc", limit=20
            )
        except openai.OpenAIError as exc:
            raise AssistantBackendError(
                f"Failed to list messages of {thread_id}: {exc}"
            ) from exc
        for message in page.data:
            if message.role != "assistant":
                continue
            for block in message.content:
                if getattr(block, "type", None) == "text":
                    return block.text.value
        return None

    async def close(self) -> None:
        await self._client.close()
