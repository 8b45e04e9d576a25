"""Read-only access to the conversation log."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..errors import GatewayError
from ..schemas import ChatLogEntry, ErrorResponse
from . import get_context

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat-logs"])


@router.get(
    "/api/chat-logs/search",
    response_model=list[ChatLogEntry],
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def search_chat_logs(request: Request, q: str | None = None):
    """Substring search over user messages and replies, newest first."""
    if not q:
        return JSONResponse(status_code=400, content={"error": "Missing search query"})
    try:
        context = await get_context(request)
        turns = await asyncio.to_thread(context.log_store.search, q)
    except GatewayError:
        logger.exception("Search error")
        return JSONResponse(status_code=500, content={"error": "Query failed"})
    return [ChatLogEntry(**turn.model_dump()) for turn in turns]
