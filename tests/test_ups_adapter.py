import pytest
import requests

from conftest import FakeResponse, FakeSession
from tracking_assistant.carriers import UpsAdapter, get_adapter
from tracking_assistant.classifier import Carrier
from tracking_assistant.config import UpsSettings
from tracking_assistant.errors import CarrierApiError, CarrierParseError, CarrierTokenError

SETTINGS = UpsSettings(client_id="id", client_secret="secret")
TOKEN = FakeResponse({"access_token": "tok-1", "expires_in": "14399"})


def _adapter(*responses, settings=SETTINGS) -> tuple[UpsAdapter, FakeSession]:
    session = FakeSession(*responses)
    return UpsAdapter(settings, session=session), session


def test_registry_returns_ups_adapter():
    assert get_adapter("ups") is UpsAdapter
    assert get_adapter(Carrier.UPS) is UpsAdapter
    with pytest.raises(KeyError):
        get_adapter("dhl")


@pytest.mark.parametrize("suffix", ["", "0000000000", "ABC", "1234567890XYZ"])
def test_mock_prefix_short_circuits_without_network(suffix):
    adapter, session = _adapter()
    number = "1ZCIETST" + suffix

    result = adapter.track(number)

    assert result.is_mock is True
    assert result.carrier is Carrier.UPS
    assert result.payload["trackingNumber"] == number
    assert result.payload["mock"] is True
    assert session.calls == []


def test_successful_lookup_fetches_token_and_posts_number():
    body = {"trackResponse": {"shipment": [{"package": [{"trackingNumber": "1Z1"}]}]}}
    adapter, session = _adapter(TOKEN, FakeResponse(body))

    result = adapter.track("1Z999AA10123456784")

    assert result.is_mock is False
    assert result.payload == body
    token_call, track_call = session.calls
    assert token_call[1] == "https://wwwcie.ups.com/security/v1/oauth/token"
    assert token_call[2]["data"] == {"grant_type": "client_credentials"}
    assert token_call[2]["auth"] == ("id", "secret")
    assert track_call[1] == "https://wwwcie.ups.com/api/track/v1/details"
    assert track_call[2]["json"] == {"trackingNumber": ["1Z999AA10123456784"]}
    assert track_call[2]["headers"]["Authorization"] == "Bearer tok-1"


def test_fresh_token_per_call_by_default():
    adapter, session = _adapter(
        TOKEN, FakeResponse({"ok": 1}), TOKEN, FakeResponse({"ok": 2})
    )

    adapter.track("1Z999AA10123456784")
    adapter.track("1Z999AA10123456784")

    token_calls = [c for c in session.calls if c[1].endswith("/oauth/token")]
    assert len(token_calls) == 2


def test_token_cache_reuses_token_when_enabled():
    settings = UpsSettings(client_id="id", client_secret="secret", cache_token=True)
    adapter, session = _adapter(
        TOKEN, FakeResponse({"ok": 1}), FakeResponse({"ok": 2}), settings=settings
    )

    adapter.track("1Z999AA10123456784")
    adapter.track("1Z999AA10123456784")

    token_calls = [c for c in session.calls if c[1].endswith("/oauth/token")]
    assert len(token_calls) == 1


def test_missing_access_token_raises_token_error():
    adapter, _ = _adapter(FakeResponse({"error": "invalid_client"}, status_code=401))

    with pytest.raises(CarrierTokenError):
        adapter.track("1Z999AA10123456784")


def test_missing_credentials_raise_token_error():
    adapter, session = _adapter(settings=UpsSettings())

    with pytest.raises(CarrierTokenError):
        adapter.track("1Z999AA10123456784")
    assert session.calls == []


def test_transport_failure_during_token_fetch_is_classified():
    adapter, _ = _adapter(requests.ConnectionError("boom"))

    with pytest.raises(CarrierTokenError):
        adapter.track("1Z999AA10123456784")


def test_unparseable_body_raises_parse_error_with_excerpt():
    raw = "<html>" + "x" * 500
    adapter, _ = _adapter(TOKEN, FakeResponse(text=raw, status_code=502))

    with pytest.raises(CarrierParseError) as excinfo:
        adapter.track("1Z999AA10123456784")

    assert excinfo.value.excerpt == raw[:200]


def test_top_level_error_envelope_raises_api_error():
    body = {"errors": [{"code": "151018", "message": "Invalid tracking number"}]}
    adapter, _ = _adapter(TOKEN, FakeResponse(body, status_code=400))

    with pytest.raises(CarrierApiError) as excinfo:
        adapter.track("1Z999AA10123456784")

    assert excinfo.value.status == 400
    assert excinfo.value.message == "Invalid tracking number"


def test_nested_response_errors_raise_even_with_success_status():
    body = {"response": {"errors": [{"code": "1", "message": "No data"}]}}
    adapter, _ = _adapter(TOKEN, FakeResponse(body, status_code=200))

    with pytest.raises(CarrierApiError) as excinfo:
        adapter.track("1Z999AA10123456784")

    assert excinfo.value.status == 200
    assert excinfo.value.message == "No data"


def test_non_success_status_without_message_uses_default():
    adapter, _ = _adapter(TOKEN, FakeResponse({}, status_code=503))

    with pytest.raises(CarrierApiError) as excinfo:
        adapter.track("1Z999AA10123456784")

    assert excinfo.value.message == "Unknown UPS error"
    assert "503" in str(excinfo.value)


@pytest.mark.parametrize(
    "body",
    [{"errors": []}, {"response": {"errors": []}}, {"errors": {}}],
)
def test_present_but_empty_errors_still_mark_an_envelope(body):
    adapter, _ = _adapter(TOKEN, FakeResponse(body, status_code=200))

    with pytest.raises(CarrierApiError) as excinfo:
        adapter.track("1Z999AA10123456784")

    assert excinfo.value.message == "Unknown UPS error"


@pytest.mark.parametrize("body", [{"errors": None}, {"response": "ok"}])
def test_null_errors_are_not_an_envelope(body):
    adapter, _ = _adapter(TOKEN, FakeResponse(body))

    result = adapter.track("1Z999AA10123456784")

    assert result.payload == body
