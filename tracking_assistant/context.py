"""Explicitly owned runtime resources.

:class:`GatewayContext` holds everything with a lifetime longer than a request
(database pool, HTTP sessions, OpenAI client) so tests can assemble one from
fakes and the application can release it on shutdown.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from .assistant.backend import OpenAIAssistantBackend, RunBackend
from .assistant.driver import AssistantRunDriver
from .assistant.tools import ConversationLogTools, ToolDispatcher
from .carriers import get_adapter
from .carriers.base import CarrierAdapter
from .classifier import Carrier
from .config import GatewaySettings
from .conversations.repository import (
    ConversationLogStore,
    InMemoryConversationLogStore,
    PostgresConversationLogStore,
)
from .orchestrator import TurnOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class GatewayContext:
    settings: GatewaySettings
    log_store: ConversationLogStore
    backend: RunBackend
    carriers: Dict[Carrier, CarrierAdapter] = field(default_factory=dict)
    orchestrator: Optional[TurnOrchestrator] = None

    def __post_init__(self) -> None:
        if self.orchestrator is None:
            driver = AssistantRunDriver(
                self.backend,
                ToolDispatcher(ConversationLogTools(self.log_store)),
                settings=self.settings.run,
            )
            self.orchestrator = TurnOrchestrator(
                carriers=self.carriers,
                driver=driver,
                log_store=self.log_store,
                assistant_id=self.settings.assistant_id,
                analytics_assistant_id=self.settings.analytics_assistant_id,
            )

    async def aclose(self) -> None:
        """Release pooled connections, HTTP sessions and the OpenAI client."""

        for adapter in self.carriers.values():
            adapter.close()
        self.log_store.close()
        close_backend: Any = getattr(self.backend, "close", None)
        if close_backend is not None:
            await close_backend()


def build_carriers(
    settings: GatewaySettings, session: requests.Session | None = None
) -> Dict[Carrier, CarrierAdapter]:
    carrier_settings = {Carrier.UPS: settings.ups, Carrier.USPS: settings.usps}
    return {
        carrier: get_adapter(carrier)(
            config,
            session=session or requests.Session(),
            timeout=settings.carrier_http_timeout,
        )
        for carrier, config in carrier_settings.items()
    }


def build_log_store(settings: GatewaySettings) -> ConversationLogStore:
    if not settings.database_url:
        logger.warning("DATABASE_URL not configured; conversation logs kept in memory")
        return InMemoryConversationLogStore()
    store = PostgresConversationLogStore.connect(
        settings.database_url,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
    )
    store.ensure_schema()
    return store


def build_context(settings: GatewaySettings | None = None) -> GatewayContext:
    """Assemble the production context from ``settings`` (or the environment)."""

    settings = settings or GatewaySettings.from_env()
    logger.info("Gateway configuration: %s", settings.configured_secrets())
    return GatewayContext(
        settings=settings,
        log_store=build_log_store(settings),
        backend=OpenAIAssistantBackend.from_api_key(settings.openai_api_key),
        carriers=build_carriers(settings),
    )
