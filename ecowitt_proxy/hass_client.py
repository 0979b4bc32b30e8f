#!/usr/bin/env python3
"""
Home Assistant webhook client.

One HassWebhookClient performs exactly one authenticated form POST to a Home
Assistant webhook and classifies the outcome. Only HTTP 200 counts as success;
redirects and other 2xx codes are failures.
"""

import logging
from typing import Optional
from urllib.parse import urlsplit

from .context import RequestContext
from .forms import FORM_CONTENT_TYPE, FormValues, encode_form, normalize_form
from .transport import RequestsTransport, Transport, TransportError

logger = logging.getLogger(__name__)


class ForwardError(Exception):
    """Base class for every way a forward attempt can fail."""


class RequestBuildError(ForwardError):
    """The outbound request could not be constructed (e.g. malformed URL)."""


class ForwardTransportError(ForwardError):
    """Connection, DNS, timeout or cancellation failure."""


class DownstreamRejectedError(ForwardError):
    """Home Assistant answered with something other than 200."""

    def __init__(self, message: str, status_code: int, body: str):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


_default_transport: Optional[Transport] = None


def default_transport() -> Transport:
    """Process-wide RequestsTransport, created on first use."""
    global _default_transport  # noqa: PLW0603
    if _default_transport is None:
        _default_transport = RequestsTransport()
    return _default_transport


class HassWebhookClient:
    """
    Single-use client for one forward attempt.

    Args:
        url: Full webhook URL, e.g. http://ha.local:8123/api/webhook/<id>
        auth_token: Home Assistant long-lived access token
        form_data: Form fields to forward (copied, never mutated)
        transport: Transport to use; defaults to the shared RequestsTransport
    """

    def __init__(self, url: str, auth_token: str, form_data, transport: Optional[Transport] = None):
        self.url = url
        self.auth_token = auth_token
        self.form_data: FormValues = normalize_form(form_data)
        self.transport = transport or default_transport()
        self._used = False

    def _build_request(self):
        parts = urlsplit(self.url)
        if parts.scheme not in ("http", "https"):
            raise RequestBuildError(
                f"error creating HTTP request for {self.url}: unsupported protocol scheme {parts.scheme!r}"
            )
        if not parts.netloc:
            raise RequestBuildError(f"error creating HTTP request for {self.url}: no host in request URL")

        body = encode_form(self.form_data).encode("ascii")
        headers = {
            "Authorization": f"Bearer {self.auth_token}",
            "Content-Type": FORM_CONTENT_TYPE,
        }
        return body, headers

    def post_data(self, context: Optional[RequestContext] = None) -> None:
        """
        POST the form data. Returns None on HTTP 200.

        Raises:
            RequestBuildError: URL could not be turned into a request
            ForwardTransportError: network failure, timeout or cancellation
            DownstreamRejectedError: any status other than 200
        """
        if self._used:
            raise RuntimeError("HassWebhookClient instances are single-use")
        self._used = True

        body, headers = self._build_request()

        try:
            response = self.transport.post(self.url, body, headers, context)
        except TransportError as e:
            raise ForwardTransportError(f"error making request to {self.url!r}: {e}") from e

        if response.status_code != 200:
            text = response.text
            raise DownstreamRejectedError(
                f"error making request to {self.url!r}. Response code: {response.status_code}. Response: {text}",
                status_code=response.status_code,
                body=text,
            )

        logger.debug(f"Webhook accepted event ({len(body)} bytes)")
