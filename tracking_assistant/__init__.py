"""Conversational gateway for shipment tracking and assistant chat."""

from .__version__ import __version__

__all__ = ["__version__"]
