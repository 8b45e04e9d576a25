"""UPS adapter (OAuth client credentials + JSON tracking API)."""

from __future__ import annotations

import json
import threading
import time
from typing import Any

import requests

from ..classifier import Carrier
from ..config import UpsSettings
from ..errors import CarrierApiError, CarrierParseError, CarrierTokenError
from .base import RAW_EXCERPT_LENGTH, CarrierAdapter, TrackingResult

#: Tracking numbers with this prefix never reach the network.
MOCK_PREFIX = "1ZCIETST"
MOCK_STATUS = "This is a test UPS tracking number. No real data is available."

TOKEN_PATH = "/security/v1/oauth/token"
TRACKING_PATH = "/api/track/v1/details"
# Seconds shaved off ``expires_in`` when reusing cached tokens.
_TOKEN_EXPIRY_MARGIN = 60


def _is_set(value: Any) -> bool:
    return value not in (None, False, 0, "")


class UpsAdapter(CarrierAdapter):
    carrier = Carrier.UPS

    def __init__(self, settings: UpsSettings, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.settings = settings
        self._token_lock = threading.Lock()
        self._cached_token: str | None = None
        self._token_expires_at = 0.0

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def is_mock_number(tracking_number: str) -> bool:
        return tracking_number.startswith(MOCK_PREFIX)

    def _mock_result(self, tracking_number: str) -> TrackingResult:
        return TrackingResult(
            carrier=self.carrier,
            tracking_number=tracking_number,
            payload={
                "mock": True,
                "status": MOCK_STATUS,
                "trackingNumber": tracking_number,
            },
            is_mock=True,
            summary=MOCK_STATUS,
        )

    def _request_token(self) -> tuple[str, float]:
        if not (self.settings.client_id and self.settings.client_secret):
            raise CarrierTokenError(self.carrier.value, "UPS credentials are not configured")
        try:
            response = self.session.post(
                self.settings.base_url + TOKEN_PATH,
                data={"grant_type": "client_credentials"},
                auth=(self.settings.client_id, self.settings.client_secret),
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.timeout,
            )
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise CarrierTokenError(
                self.carrier.value, f"Failed to fetch UPS token: {exc}"
            ) from exc
        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise CarrierTokenError(self.carrier.value, "Failed to fetch UPS token")
        try:
            expires_in = float(data.get("expires_in") or 0)
        except (TypeError, ValueError):
            expires_in = 0.0
        return token, expires_in

    def get_token(self) -> str:
        """Return a bearer token, honouring the optional cache policy."""

        if not self.settings.cache_token:
            token, _ = self._request_token()
            return token
        with self._token_lock:
            now = time.monotonic()
            if self._cached_token and now < self._token_expires_at:
                return self._cached_token
            token, expires_in = self._request_token()
            self._cached_token = token
            self._token_expires_at = now + max(expires_in - _TOKEN_EXPIRY_MARGIN, 0)
            return token

    @staticmethod
    def _first_error_message(payload: Any) -> str | None:
        if not isinstance(payload, dict):
            return None
        candidates = [payload.get("errors")]
        nested = payload.get("response")
        if isinstance(nested, dict):
            candidates.append(nested.get("errors"))
        for errors in candidates:
            if isinstance(errors, list) and errors:
                first = errors[0]
                if isinstance(first, dict) and first.get("message"):
                    return str(first["message"])
        return None

    @staticmethod
    def _has_error_envelope(payload: Any) -> bool:
        if not isinstance(payload, dict):
            return False
        # Any non-empty value marks an envelope, including an empty ``errors`` list.
        if _is_set(payload.get("errors")):
            return True
        nested = payload.get("response")
        return isinstance(nested, dict) and _is_set(nested.get("errors"))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def track(self, tracking_number: str) -> TrackingResult:
        if self.is_mock_number(tracking_number):
            self.logger.info("Returning mock UPS result for %s", tracking_number)
            return self._mock_result(tracking_number)

        token = self.get_token()
        try:
            response = self.session.post(
                self.settings.base_url + TRACKING_PATH,
                json={"trackingNumber": [tracking_number]},
                headers={
                    "Content-Type": "application/json",
                    "transId": "ups-track-test",
                    "transactionSrc": "tracking-assistant",
                    "Authorization": f"Bearer {token}",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise CarrierApiError(self.carrier.value, str(exc)) from exc

        text = response.text
        try:
            payload = json.loads(text)
        except ValueError as exc:
            raise CarrierParseError(
                self.carrier.value,
                "Could not parse JSON",
                excerpt=text[:RAW_EXCERPT_LENGTH],
            ) from exc

        if not response.ok or self._has_error_envelope(payload):
            message = self._first_error_message(payload) or "Unknown UPS error"
            raise CarrierApiError(self.carrier.value, message, status=response.status_code)

        if not isinstance(payload, dict):
            payload = {"data": payload}
        return TrackingResult(
            carrier=self.carrier,
            tracking_number=tracking_number,
            payload=payload,
        )


__all__ = ["MOCK_PREFIX", "UpsAdapter"]
