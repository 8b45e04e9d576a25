"""Base abstractions for carrier tracking adapters."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import requests

from ..classifier import Carrier

#: Number of characters of an undecodable body kept for diagnosis.
RAW_EXCERPT_LENGTH = 200


@dataclass(frozen=True)
class TrackingResult:
    """Carrier-neutral tracking answer."""

    carrier: Carrier
    tracking_number: str
    payload: dict[str, Any]
    is_mock: bool = False
    summary: str | None = None
    history: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "carrier": self.carrier.value,
            "trackingNumber": self.tracking_number,
            "isMock": self.is_mock,
            "payload": self.payload,
        }


class CarrierAdapter(ABC):
    """Abstract base class encapsulating carrier-specific behaviour."""

    #: Carrier handled by the adapter, used as registry key.
    carrier: Carrier

    def __init__(
        self,
        *,
        session: requests.Session | None = None,
        timeout: float = 30.0,
        logger: logging.Logger | None = None,
    ) -> None:
        self.session = session or requests.Session()
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

    @abstractmethod
    def track(self, tracking_number: str) -> TrackingResult:
        """Look up ``tracking_number``.

        Implementations raise :class:`~tracking_assistant.errors.CarrierError`
        subclasses only; transport exceptions are wrapped before leaving the
        adapter.
        """

    def close(self) -> None:
        self.session.close()
