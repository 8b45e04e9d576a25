"""Exception hierarchy shared by carriers, the run driver and the log store.

Every failure that leaves the core is a :class:`GatewayError`, so the HTTP
layer only needs a single ``except`` clause to turn it into an error envelope.
"""

from __future__ import annotations


class GatewayError(RuntimeError):
    """Base class for failures surfaced to the caller of a turn."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class CarrierError(GatewayError):
    """Raised when a carrier lookup cannot produce a tracking result."""

    def __init__(self, carrier: str, message: str) -> None:
        super().__init__(message)
        self.carrier = carrier

    def __str__(self) -> str:
        return f"{self.carrier} tracking failed: {self.message}"


class CarrierTokenError(CarrierError):
    """OAuth token acquisition failed."""


class CarrierParseError(CarrierError):
    """The carrier body could not be decoded in its expected format."""

    def __init__(self, carrier: str, message: str, excerpt: str = "") -> None:
        super().__init__(carrier, message)
        self.excerpt = excerpt

    def __str__(self) -> str:
        base = super().__str__()
        if self.excerpt:
            return f"{base}. Raw: {self.excerpt}"
        return base


class CarrierApiError(CarrierError):
    """The carrier answered with an error envelope or a non-success status."""

    def __init__(self, carrier: str, message: str, status: int | None = None) -> None:
        super().__init__(carrier, message)
        self.status = status

    def __str__(self) -> str:
        if self.status is not None:
            return f"{self.carrier} API error: {self.status} - {self.message}"
        return f"{self.carrier} API error: {self.message}"


class RunFailure(GatewayError):
    """The hosted run reached a terminal status other than ``completed``."""

    def __init__(self, status: str, message: str | None = None) -> None:
        super().__init__(message or f"Assistant run ended with status '{status}'")
        self.status = status


class RunTimeout(GatewayError):
    """The run exceeded its time or poll budget, or the caller cancelled it."""


class AssistantBackendError(GatewayError):
    """The hosted assistant API could not be reached or rejected a call."""


class StoreError(GatewayError):
    """Persisting or reading conversation logs failed."""


__all__ = [
    "AssistantBackendError",
    "CarrierApiError",
    "CarrierError",
    "CarrierParseError",
    "CarrierTokenError",
    "GatewayError",
    "RunFailure",
    "RunTimeout",
    "StoreError",
]
