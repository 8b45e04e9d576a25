"""Turn orchestration: classify, resolve, log."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Optional

from .assistant.driver import AssistantRunDriver
from .carriers.base import CarrierAdapter, TrackingResult
from .classifier import Carrier, CarrierTrack, classify
from .conversations.models import Turn, TurnReply
from .conversations.repository import ConversationLogStore
from .errors import GatewayError

logger = logging.getLogger(__name__)

#: Thread id echoed back for carrier turns when the caller supplied none.
NO_THREAD = "N/A"


def format_tracking_reply(result: TrackingResult) -> str:
    """Render a carrier result as the user-facing reply text."""

    if result.carrier is Carrier.USPS:
        history = "\n".join(result.history)
        return (
            f"USPS Tracking Summary:\n{result.summary}\n\n"
            f"Tracking History:\n{history}"
        )
    return (
        f"Here’s your {result.carrier.value} tracking info:\n\n"
        f"{json.dumps(result.payload, indent=2)}"
    )


class TurnOrchestrator:
    """Coordinates classification, carrier lookups, assistant runs and logging."""

    def __init__(
        self,
        *,
        carriers: Mapping[Carrier, CarrierAdapter],
        driver: AssistantRunDriver,
        log_store: ConversationLogStore,
        assistant_id: Optional[str],
        analytics_assistant_id: Optional[str] = None,
    ) -> None:
        self._carriers = dict(carriers)
        self._driver = driver
        self._log_store = log_store
        self._assistant_id = assistant_id
        self._analytics_assistant_id = analytics_assistant_id

    async def track(self, carrier: Carrier, tracking_number: str) -> TrackingResult:
        """Run a carrier lookup without blocking the event loop."""

        adapter = self._carriers[carrier]
        return await asyncio.to_thread(adapter.track, tracking_number)

    async def handle_turn(
        self,
        message: str,
        thread_id: Optional[str] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TurnReply:
        route = classify(message)
        if isinstance(route, CarrierTrack):
            logger.info(
                "Detected %s tracking number: %s", route.carrier.value, route.tracking_number
            )
            result = await self.track(route.carrier, route.tracking_number)
            return TurnReply(
                reply=format_tracking_reply(result), thread_id=thread_id or NO_THREAD
            )

        if not self._assistant_id:
            raise GatewayError("OPENAI_ASSISTANT_ID is not configured")
        outcome = await self._driver.run_turn(
            message,
            assistant_id=self._assistant_id,
            thread_id=thread_id,
            cancel_event=cancel_event,
        )
        # A failed insert surfaces as StoreError; the reply is not retried.
        await asyncio.to_thread(
            self._log_store.append_turn,
            Turn(
                thread_id=outcome.thread_id,
                user_message=message,
                assistant_reply=outcome.reply,
            ),
        )
        return TurnReply(reply=outcome.reply, thread_id=outcome.thread_id)

    async def answer_analytics_question(self, message: str) -> str:
        """Ask the analytics assistant on a fresh thread; nothing is logged."""

        if not self._analytics_assistant_id:
            raise GatewayError("OPENAI_ANALYTICS_ASSISTANT_ID is not configured")
        outcome = await self._driver.run_turn(
            message, assistant_id=self._analytics_assistant_id
        )
        return outcome.reply
