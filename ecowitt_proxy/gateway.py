#!/usr/bin/env python3
"""
=====================================================================
Event Gateway
=====================================================================
Single entry point for "accept one Ecowitt upload and produce a response".

For every inbound event the gateway:
- extracts the form fields
- forwards them to {hass_url}/api/webhook/{webhook_id} with a bearer token
- classifies the outcome (strict HTTP 200 = success)
- bumps exactly one of the two counters
- returns an EventResponse or ErrorResponse value

No exception escapes handle_event_submit(); the HTTP layer only has to turn
the returned value into a status code.
=====================================================================
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from prometheus_client import Counter, Histogram

from .config import mask_secret
from .context import RequestContext
from .counters import CounterSnapshot, EventCounters
from .forms import normalize_form
from .hass_client import (
    DownstreamRejectedError,
    ForwardError,
    ForwardTransportError,
    HassWebhookClient,
    RequestBuildError,
)
from .transport import RequestsTransport, Transport, TransportCancelled

logger = logging.getLogger(__name__)

# =====================================================================
# PROMETHEUS METRICS
# =====================================================================

METRIC_EVENTS_TOTAL = Counter(
    'ecowitt_proxy_events_total',
    'Inbound events processed by the gateway',
    ['status', 'reason']  # status: success|fail, reason: input|request|transport|cancelled|rejected|unknown|''
)

METRIC_FORWARD_LATENCY = Histogram(
    'ecowitt_proxy_forward_latency_seconds',
    'Latency of forward attempts to Home Assistant',
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

FORM_ERROR_MESSAGE = "error retrieving form parameters"
WEBHOOK_PATH = "/api/webhook/"

# =====================================================================
# RESPONSE VALUES
# =====================================================================


@dataclass(frozen=True)
class EventResponse:
    status: str
    event_count: int
    error_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "eventCount": self.event_count,
            "errorCount": self.error_count,
        }


@dataclass(frozen=True)
class ErrorResponse:
    message: str
    error: str
    event_count: int
    error_count: int
    status: str = "ERROR"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "message": self.message,
            "error": self.error,
            "eventCount": self.event_count,
            "errorCount": self.error_count,
        }


# =====================================================================
# GATEWAY
# =====================================================================


@dataclass(frozen=True)
class GatewayConfig:
    """
    Construction parameters for EventGateway.

    Attributes:
        hass_url: Base URL of Home Assistant, e.g. "http://homeassistant.local:8123"
        auth_token: Long-lived access token sent as a Bearer token
        webhook_id: Webhook id; events go to {hass_url}/api/webhook/{webhook_id}
        transport: HTTP transport; None makes the gateway create and own a RequestsTransport
    """

    hass_url: str
    auth_token: str
    webhook_id: str
    transport: Optional[Transport] = None


class EventGateway:
    """Owns the counters and turns inbound events into forward attempts."""

    def __init__(self, config: GatewayConfig):
        missing = [name for name in ("hass_url", "auth_token", "webhook_id") if not getattr(config, name)]
        if missing:
            raise ValueError(f"EventGateway requires non-empty {', '.join(missing)}")

        self._config = config
        self._transport = config.transport or RequestsTransport()
        # Only a transport created here is closed by close()
        self._owns_transport = config.transport is None
        self._counters = EventCounters()
        self._forward_url = f"{config.hass_url}{WEBHOOK_PATH}{config.webhook_id}"

        logger.info(
            f"Event gateway ready: forwarding to {self._forward_url!r} "
            f"(token {mask_secret(config.auth_token)})"
        )

    # --- read-only identity -------------------------------------------------

    @property
    def hass_url(self) -> str:
        return self._config.hass_url

    @property
    def auth_token(self) -> str:
        return self._config.auth_token

    @property
    def webhook_id(self) -> str:
        return self._config.webhook_id

    @property
    def forward_url(self) -> str:
        return self._forward_url

    def snapshot_counts(self) -> CounterSnapshot:
        return self._counters.snapshot()

    def close(self) -> None:
        """Release the outbound connection pool if this gateway created it."""
        if self._owns_transport:
            self._transport.close()
        logger.info("Event gateway closed")

    # --- response shaping ---------------------------------------------------

    def make_event_response(self, status: str = "OK") -> EventResponse:
        counts = self._counters.snapshot()
        return EventResponse(status=status, event_count=counts.event_count, error_count=counts.error_count)

    def new_error_response(self, message: str, err: BaseException) -> ErrorResponse:
        counts = self._counters.snapshot()
        return ErrorResponse(
            message=message,
            error=str(err),
            event_count=counts.event_count,
            error_count=counts.error_count,
        )

    # --- operations -----------------------------------------------------------

    def handle_health_query(self) -> Dict[str, str]:
        return {"status": "OK"}

    def handle_event_query(self) -> EventResponse:
        return self.make_event_response("OK")

    def handle_event_submit(
        self,
        form_fields,
        context: Optional[RequestContext] = None,
    ) -> Union[EventResponse, ErrorResponse]:
        """
        Forward one inbound event.

        Args:
            form_fields: Mapping of form fields, or a zero-argument callable
                returning one. A callable that raises means the inbound form
                could not be parsed.
            context: Cancellation/deadline for the outbound call.

        Returns:
            EventResponse on success, ErrorResponse on any failure.
        """
        try:
            values = form_fields() if callable(form_fields) else form_fields
            payload = normalize_form(values)
        except Exception as e:
            self._counters.record_error()
            METRIC_EVENTS_TOTAL.labels(status='fail', reason='input').inc()
            logger.error(f"Error retrieving form parameters: {e}")
            return self.new_error_response(FORM_ERROR_MESSAGE, e)

        forward_url = self._forward_url
        logger.info(f"Forwarding Ecowitt event data to {forward_url!r}: {payload}")

        start_time = time.time()
        try:
            client = HassWebhookClient(forward_url, self._config.auth_token, payload, self._transport)
            client.post_data(context)

        except ForwardError as e:
            self._counters.record_error()
            METRIC_EVENTS_TOTAL.labels(status='fail', reason=_failure_reason(e)).inc()
            logger.error(f"Error posting event data to Home Assistant: {e}")
            return self.new_error_response(forward_url, e)

        except Exception as e:
            self._counters.record_error()
            METRIC_EVENTS_TOTAL.labels(status='fail', reason='unknown').inc()
            logger.error(f"Unexpected error forwarding event: {e}", exc_info=True)
            return self.new_error_response(forward_url, e)

        finally:
            METRIC_FORWARD_LATENCY.observe(time.time() - start_time)

        self._counters.record_event()
        METRIC_EVENTS_TOTAL.labels(status='success', reason='').inc()
        return self.make_event_response("OK")


def _failure_reason(err: ForwardError) -> str:
    if isinstance(err, DownstreamRejectedError):
        return 'rejected'
    if isinstance(err, RequestBuildError):
        return 'request'
    if isinstance(err, ForwardTransportError) and isinstance(err.__cause__, TransportCancelled):
        return 'cancelled'
    return 'transport'
