"""HTTP routers and shared request dependencies."""

from __future__ import annotations

import asyncio

from fastapi import Request

from ..context import GatewayContext, build_context


async def get_context(request: Request) -> GatewayContext:
    """Return the application's :class:`GatewayContext`, building it on demand.

    The build opens database pools and HTTP sessions, so it runs in a worker
    thread behind a lock; concurrent first requests share a single context.

    Raises :class:`~tracking_assistant.errors.GatewayError` when required
    configuration is missing, so callers resolve it inside their error
    handling.
    """

    state = request.app.state
    context = getattr(state, "context", None)
    if context is not None:
        return context

    lock = getattr(state, "context_lock", None)
    if lock is None:
        lock = state.context_lock = asyncio.Lock()
    async with lock:
        context = getattr(state, "context", None)
        if context is None:
            context = await asyncio.to_thread(build_context)
            state.context = context
    return context
