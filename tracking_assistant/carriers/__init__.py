"""Carrier adapter registry for shipment tracking lookups."""

from __future__ import annotations

from ..classifier import Carrier
from .base import CarrierAdapter, TrackingResult
from .ups import UpsAdapter
from .usps import UspsAdapter

_REGISTRY: dict[Carrier, type[CarrierAdapter]] = {}


def register_adapter(adapter: type[CarrierAdapter]) -> None:
    """Register a carrier adapter class in the global registry."""
    _REGISTRY[adapter.carrier] = adapter


def get_adapter(carrier: Carrier | str) -> type[CarrierAdapter]:
    """Retrieve the adapter class for ``carrier`` or raise ``KeyError``."""
    try:
        key = Carrier(carrier.upper() if isinstance(carrier, str) else carrier)
    except ValueError as exc:
        raise KeyError(f"Carrier '{carrier}' is not supported") from exc
    if key not in _REGISTRY:
        raise KeyError(f"Carrier '{carrier}' is not supported")
    return _REGISTRY[key]


# Pre-register built-in adapters
register_adapter(UpsAdapter)
register_adapter(UspsAdapter)

__all__ = [
    "CarrierAdapter",
    "TrackingResult",
    "UpsAdapter",
    "UspsAdapter",
    "get_adapter",
    "register_adapter",
]
