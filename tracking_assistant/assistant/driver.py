"""State machine that drives an assistant run from submission to a reply.

The driver appends the user message to a thread, starts a run and polls it
until the backend reports a terminal status. Whenever the run pauses with
``requires_action`` every pending tool call is dispatched and the outputs are
submitted back as one batch before polling resumes.

Polling is bounded twice: by a wall-clock timeout (``asyncio.wait_for``) and
by a maximum number of polls. A caller may also pass an ``asyncio.Event`` to
cancel a run between polls. All three end the turn with :class:`RunTimeout`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..config import RunSettings
from ..errors import RunFailure, RunTimeout
from .backend import (
    FAILURE_STATUSES,
    STATUS_COMPLETED,
    STATUS_REQUIRES_ACTION,
    RunBackend,
    RunSnapshot,
    is_thread_id,
)
from .tools import ToolDispatcher

logger = logging.getLogger(__name__)

NO_RESPONSE = "No response."


class RunPhase(str, Enum):
    CREATED = "created"
    SUBMITTED = "submitted"
    POLLING = "polling"
    REQUIRES_ACTION = "requires_action"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class RunState:
    """Per-turn bookkeeping; never persisted."""

    thread_id: str
    run_id: Optional[str] = None
    status: Optional[str] = None
    phase: RunPhase = RunPhase.CREATED
    polls: int = 0

    def observe(self, snapshot: RunSnapshot) -> None:
        self.run_id = snapshot.id
        self.status = snapshot.status


@dataclass(frozen=True)
class RunOutcome:
    thread_id: str
    run_id: str
    reply: str


class AssistantRunDriver:
    def __init__(
        self,
        backend: RunBackend,
        dispatcher: ToolDispatcher,
        *,
        settings: RunSettings | None = None,
    ) -> None:
        self._backend = backend
        self._dispatcher = dispatcher
        self._settings = settings or RunSettings()

    async def run_turn(
        self,
        message: str,
        *,
        assistant_id: str,
        thread_id: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
        timeout: Optional[float] = None,
    ) -> RunOutcome:
        """Drive one user message to a final assistant reply."""

        if is_thread_id(thread_id):
            state = RunState(thread_id=thread_id)
        else:
            state = RunState(thread_id=await self._backend.create_thread())
            logger.info("Created thread %s", state.thread_id)

        effective_timeout = self._settings.timeout_seconds if timeout is None else timeout
        try:
            return await asyncio.wait_for(
                self._drive(state, message, assistant_id, cancel_event),
                timeout=effective_timeout,
            )
        except asyncio.TimeoutError as exc:
            state.phase = RunPhase.FAILED
            raise RunTimeout(
                f"Assistant run {state.run_id or '<pending>'} did not finish "
                f"within {effective_timeout:g}s"
            ) from exc

    async def _drive(
        self,
        state: RunState,
        message: str,
        assistant_id: str,
        cancel_event: Optional[asyncio.Event],
    ) -> RunOutcome:
        await self._backend.add_user_message(state.thread_id, message)
        snapshot = await self._backend.create_run(state.thread_id, assistant_id)
        state.observe(snapshot)
        state.phase = RunPhase.SUBMITTED

        while True:
            if snapshot.status == STATUS_COMPLETED:
                break
            if snapshot.status in FAILURE_STATUSES:
                state.phase = RunPhase.FAILED
                logger.warning(
                    "Run %s on thread %s ended with status %s",
                    state.run_id,
                    state.thread_id,
                    snapshot.status,
                )
                raise RunFailure(snapshot.status, snapshot.last_error)
            if snapshot.status == STATUS_REQUIRES_ACTION:
                snapshot = await self._resolve_tool_calls(state, snapshot)
                state.observe(snapshot)
                continue

            state.phase = RunPhase.POLLING
            if cancel_event is not None and cancel_event.is_set():
                state.phase = RunPhase.FAILED
                raise RunTimeout(f"Assistant run {state.run_id} was cancelled")
            if state.polls >= self._settings.max_polls:
                state.phase = RunPhase.FAILED
                raise RunTimeout(
                    f"Assistant run {state.run_id} exceeded {self._settings.max_polls} polls"
                )
            await asyncio.sleep(self._settings.poll_interval)
            state.polls += 1
            snapshot = await self._backend.retrieve_run(state.thread_id, snapshot.id)
            state.observe(snapshot)

        state.phase = RunPhase.COMPLETED
        reply = await self._backend.latest_assistant_reply(state.thread_id)
        logger.info(
            "Run %s completed after %d polls", state.run_id, state.polls
        )
        return RunOutcome(
            thread_id=state.thread_id,
            run_id=snapshot.id,
            reply=reply or NO_RESPONSE,
        )

    async def _resolve_tool_calls(
        self, state: RunState, snapshot: RunSnapshot
    ) -> RunSnapshot:
        state.phase = RunPhase.REQUIRES_ACTION
        if not snapshot.tool_calls:
            state.phase = RunPhase.FAILED
            raise RunFailure(
                snapshot.status, "Run requires an action without any tool calls"
            )
        outputs = await self._dispatcher.dispatch(snapshot.tool_calls)
        return await self._backend.submit_tool_outputs(
            state.thread_id, snapshot.id, outputs
        )


__all__ = [
    "AssistantRunDriver",
    "NO_RESPONSE",
    "RunOutcome",
    "RunPhase",
    "RunState",
]
