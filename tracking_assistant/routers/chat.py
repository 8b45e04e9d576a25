"""Chat and analytics assistant routes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..errors import GatewayError
from ..rate_limit import CHAT_RATE_LIMIT, limiter
from ..schemas import (
    AnalyticsRequest,
    AnalyticsResponse,
    ChatRequest,
    ChatResponse,
    ErrorResponse,
)
from . import get_context

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


@router.post(
    "/api/chat",
    response_model=ChatResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
@limiter.limit(CHAT_RATE_LIMIT)
async def chat(request: Request, payload: ChatRequest):
    """Answer one user message.

    Tracking numbers are looked up directly with the carrier; anything else
    goes to the assistant and the completed turn is logged.
    """
    try:
        context = await get_context(request)
        if len(payload.message) > context.settings.chat_max_message_length:
            return JSONResponse(status_code=400, content={"error": "Message too long"})
        turn = await context.orchestrator.handle_turn(
            payload.message, payload.thread_id
        )
    except GatewayError as exc:
        logger.exception("Error processing chat")
        return JSONResponse(
            status_code=500, content={"error": f"Something went wrong: {exc}"}
        )
    return ChatResponse(response=turn.reply, thread_id=turn.thread_id)


@router.post(
    "/api/analytics-bot",
    response_model=AnalyticsResponse,
    responses={500: {"model": ErrorResponse}},
)
async def analytics_bot(request: Request, payload: AnalyticsRequest):
    """Let the analytics assistant answer questions about logged chats."""
    try:
        context = await get_context(request)
        reply = await context.orchestrator.answer_analytics_question(payload.message)
    except GatewayError:
        logger.exception("Analytics assistant failed")
        return JSONResponse(
            status_code=500, content={"error": "Assistant failed to respond."}
        )
    return AnalyticsResponse(response=reply)
