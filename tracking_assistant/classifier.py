"""Route inbound messages to a carrier lookup or the assistant."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class Carrier(str, Enum):
    UPS = "UPS"
    USPS = "USPS"


@dataclass(frozen=True)
class TrackingQuery:
    carrier: Carrier
    tracking_number: str


@dataclass(frozen=True)
class CarrierTrack:
    """Route for messages that carry a recognisable tracking number."""

    query: TrackingQuery

    @property
    def carrier(self) -> Carrier:
        return self.query.carrier

    @property
    def tracking_number(self) -> str:
        return self.query.tracking_number


@dataclass(frozen=True)
class Conversational:
    """Route for everything the assistant should answer."""


Route = CarrierTrack | Conversational

UPS_PATTERN = re.compile(r"1Z[0-9A-Z]{16}")
# Service-code prefix followed by 16-34 digits.
USPS_PATTERN = re.compile(r"\b(?:92|93|94|95|96|97|98|420)[0-9]{16,34}\b")

# First match wins; UPS is checked before USPS.
_CARRIER_PATTERNS: tuple[tuple[Carrier, re.Pattern[str]], ...] = (
    (Carrier.UPS, UPS_PATTERN),
    (Carrier.USPS, USPS_PATTERN),
)


def classify(text: str) -> Route:
    """Return the route for ``text``."""

    for carrier, pattern in _CARRIER_PATTERNS:
        match = pattern.search(text or "")
        if match:
            return CarrierTrack(TrackingQuery(carrier, match.group(0)))
    return Conversational()


__all__ = [
    "Carrier",
    "CarrierTrack",
    "Conversational",
    "Route",
    "TrackingQuery",
    "USPS_PATTERN",
    "UPS_PATTERN",
    "classify",
]
