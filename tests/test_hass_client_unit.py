# =====================================================================
# hass-ecowitt-proxy Webhook Client Unit Tests
# =====================================================================
# Tests for ecowitt_proxy/hass_client.py
# Run with: pytest tests/test_hass_client_unit.py -v
# =====================================================================

import pytest

from ecowitt_proxy.hass_client import (
    DownstreamRejectedError,
    ForwardTransportError,
    HassWebhookClient,
    RequestBuildError,
)
from ecowitt_proxy.transport import TransportError, TransportResponse


# Mark all tests in this file as unit tests
pytestmark = pytest.mark.unit

WEBHOOK_URL = "http://ha.local:8123/api/webhook/ecowitt"


class TestRequestConstruction:
    """Test the outbound request shape"""

    def test_headers_and_body(self, ok_transport):
        client = HassWebhookClient(WEBHOOK_URL, "tok", {"temp": ["72"], "humidity": ["55"]}, ok_transport)

        client.post_data()

        call = ok_transport.last_call
        assert call["url"] == WEBHOOK_URL
        assert call["headers"]["Authorization"] == "Bearer tok"
        assert call["headers"]["Content-Type"] == "application/x-www-form-urlencoded"
        assert call["body"] == b"humidity=55&temp=72"

    def test_form_data_is_copied(self, ok_transport):
        form = {"temp": ["72"]}
        client = HassWebhookClient(WEBHOOK_URL, "tok", form, ok_transport)

        form["temp"].append("99")
        client.post_data()

        assert ok_transport.last_call["body"] == b"temp=72"

    def test_empty_form_sends_empty_body(self, ok_transport):
        HassWebhookClient(WEBHOOK_URL, "tok", {}, ok_transport).post_data()

        assert ok_transport.last_call["body"] == b""

    def test_unsupported_scheme_is_build_error(self, ok_transport):
        client = HassWebhookClient("ftp://ha.local/api/webhook/x", "tok", {}, ok_transport)

        with pytest.raises(RequestBuildError) as exc_info:
            client.post_data()

        assert "error creating HTTP request for ftp://ha.local/api/webhook/x" in str(exc_info.value)
        assert ok_transport.calls == []

    def test_missing_host_is_build_error(self, ok_transport):
        client = HassWebhookClient("http:///api/webhook/x", "tok", {}, ok_transport)

        with pytest.raises(RequestBuildError):
            client.post_data()

    def test_client_is_single_use(self, ok_transport):
        client = HassWebhookClient(WEBHOOK_URL, "tok", {}, ok_transport)
        client.post_data()

        with pytest.raises(RuntimeError):
            client.post_data()


class TestOutcomeClassification:
    """Test strict 200-only success"""

    def test_200_is_success(self, ok_transport):
        assert HassWebhookClient(WEBHOOK_URL, "tok", {}, ok_transport).post_data() is None

    @pytest.mark.parametrize("status_code", [201, 204, 301, 302, 400, 401, 404, 500, 503])
    def test_anything_else_is_rejected(self, make_transport, status_code):
        transport = make_transport(TransportResponse(status_code=status_code, body=b"nope"))

        with pytest.raises(DownstreamRejectedError) as exc_info:
            HassWebhookClient(WEBHOOK_URL, "tok", {}, transport).post_data()

        assert exc_info.value.status_code == status_code
        assert exc_info.value.body == "nope"

    def test_rejection_message_includes_status_and_body(self, make_transport):
        transport = make_transport(TransportResponse(status_code=500, body=b"boom"))

        with pytest.raises(DownstreamRejectedError) as exc_info:
            HassWebhookClient(WEBHOOK_URL, "tok", {}, transport).post_data()

        assert str(exc_info.value) == (
            f"error making request to '{WEBHOOK_URL}'. Response code: 500. Response: boom"
        )

    def test_transport_failure_is_wrapped(self, failing_transport):
        with pytest.raises(ForwardTransportError) as exc_info:
            HassWebhookClient(WEBHOOK_URL, "tok", {}, failing_transport).post_data()

        assert str(exc_info.value).startswith(f"error making request to '{WEBHOOK_URL}': ")
        assert "connection refused" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, TransportError)

    def test_context_is_passed_to_transport(self, ok_transport):
        from ecowitt_proxy.context import RequestContext
        context = RequestContext(timeout=5)

        HassWebhookClient(WEBHOOK_URL, "tok", {}, ok_transport).post_data(context)

        assert ok_transport.last_call["context"] is context
