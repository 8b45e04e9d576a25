"""USPS adapter (XML request sent as a query-string parameter)."""

from __future__ import annotations

from typing import Any
from xml.etree import ElementTree

import requests

from ..classifier import Carrier
from ..config import UspsSettings
from ..errors import CarrierApiError, CarrierParseError
from .base import RAW_EXCERPT_LENGTH, CarrierAdapter, TrackingResult

DEFAULT_ERROR = "Unknown USPS error."
DEFAULT_SUMMARY = "No summary available."


def _element_text(element: ElementTree.Element) -> str:
    """Flatten ``element`` into one readable line.

    Plain elements contribute their text; structured ones (``TrackFieldRequest``
    answers) contribute the non-empty text of each child in document order.
    """

    if len(element) == 0:
        return (element.text or "").strip()
    parts = [(child.text or "").strip() for child in element]
    return " ".join(part for part in parts if part)


class UspsAdapter(CarrierAdapter):
    carrier = Carrier.USPS

    def __init__(self, settings: UspsSettings, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.settings = settings

    def build_request_xml(self, tracking_number: str) -> str:
        root = ElementTree.Element(
            "TrackFieldRequest", USERID=self.settings.user_id or ""
        )
        ElementTree.SubElement(root, "TrackID", ID=tracking_number)
        return ElementTree.tostring(root, encoding="unicode")

    def parse_response(self, tracking_number: str, xml_text: str) -> TrackingResult:
        """Map a TrackV2 XML body onto a :class:`TrackingResult`."""

        try:
            root = ElementTree.fromstring(xml_text)
        except ElementTree.ParseError as exc:
            raise CarrierParseError(
                self.carrier.value,
                f"Failed to parse USPS XML: {exc}",
                excerpt=xml_text[:RAW_EXCERPT_LENGTH],
            ) from exc

        info = root.find("TrackInfo") if root.tag == "TrackResponse" else None
        error = info.find("Error") if info is not None else None
        if info is None or error is not None:
            description = None
            if error is not None:
                description = (error.findtext("Description") or "").strip()
            raise CarrierApiError(self.carrier.value, description or DEFAULT_ERROR)

        summary_el = info.find("TrackSummary")
        summary = _element_text(summary_el) if summary_el is not None else ""
        history = [_element_text(detail) for detail in info.findall("TrackDetail")]
        summary = summary or DEFAULT_SUMMARY
        return TrackingResult(
            carrier=self.carrier,
            tracking_number=tracking_number,
            payload={"summary": summary, "history": history},
            summary=summary,
            history=history,
        )

    def track(self, tracking_number: str) -> TrackingResult:
        params = {"API": "TrackV2", "XML": self.build_request_xml(tracking_number)}
        try:
            response = self.session.get(
                self.settings.base_url, params=params, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise CarrierApiError(self.carrier.value, str(exc)) from exc

        if not response.ok:
            raise CarrierApiError(
                self.carrier.value,
                response.text[:RAW_EXCERPT_LENGTH] or "HTTP error",
                status=response.status_code,
            )
        return self.parse_response(tracking_number, response.text)


__all__ = ["UspsAdapter"]
