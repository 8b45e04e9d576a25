"""Direct carrier lookups that bypass message classification."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..classifier import Carrier
from ..errors import GatewayError
from ..schemas import ErrorResponse
from . import get_context

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tracking"])


@router.get("/api/test-track/{number}", responses={500: {"model": ErrorResponse}})
async def test_track(number: str, request: Request):
    """Call the UPS adapter for ``number`` and return the normalized result."""
    try:
        context = await get_context(request)
        result = await context.orchestrator.track(Carrier.UPS, number)
    except GatewayError as exc:
        logger.warning("UPS test lookup failed for %s: %s", number, exc)
        return JSONResponse(
            status_code=500, content={"error": f"UPS tracking failed: {exc.message}"}
        )
    return result.as_dict()
