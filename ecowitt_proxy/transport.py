#!/usr/bin/env python3
"""
HTTP transport used by the forwarding client.

A transport is anything that can POST a body with headers to a URL and hand
back the status code and (possibly truncated) response body. The production
implementation is RequestsTransport; tests substitute their own.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from .context import RequestContext

logger = logging.getLogger(__name__)

# Cap on how much of a response body is kept for diagnostics
DEFAULT_MAX_BODY_BYTES = 64 * 1024
READ_CHUNK_SIZE = 8192
# Socket timeout for exchanges whose context carries no deadline
DEFAULT_IDLE_TIMEOUT = 300.0


class TransportError(Exception):
    """Connection, DNS, timeout or protocol failure on the outbound call."""


class TransportCancelled(TransportError):
    """The caller's context was cancelled (or expired) before a response arrived."""


@dataclass(frozen=True)
class TransportResponse:
    status_code: int
    body: bytes = b""

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class Transport:
    """Capability interface: perform one POST and report status + body."""

    def post(
        self,
        url: str,
        body: bytes,
        headers: Dict[str, str],
        context: Optional[RequestContext] = None,
    ) -> TransportResponse:
        raise NotImplementedError

    def close(self) -> None:
        pass


class RequestsTransport(Transport):
    """
    Transport backed by a shared requests.Session.

    The HTTP exchange runs on its own daemon thread so the calling request
    thread can give up the moment its context is cancelled. The socket timeout
    handed to requests follows the context deadline, which bounds how long an
    abandoned worker thread can linger. Without a deadline it falls back to
    idle_timeout, a per-read bound rather than a total one.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        max_body_bytes: int = DEFAULT_MAX_BODY_BYTES,
        verify: bool = True,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
    ):
        self.session = session or requests.Session()
        self.max_body_bytes = max_body_bytes
        self.verify = verify
        self.idle_timeout = idle_timeout

    def post(self, url, body, headers, context=None):
        context = context or RequestContext.background()
        if context.cancelled:
            raise TransportCancelled(context.error)

        finished = threading.Event()
        outcome: Dict[str, Any] = {}

        def worker():
            try:
                outcome["response"] = self._exchange(url, body, headers, context.remaining())
            except BaseException as e:  # handed back to the waiting thread
                outcome["error"] = e
            finally:
                finished.set()

        context.add_cancel_callback(finished.set)
        thread = threading.Thread(target=worker, daemon=True, name="HassForward")
        thread.start()

        finished.wait(context.remaining())

        if "response" in outcome:
            return outcome["response"]
        if "error" in outcome:
            error = outcome["error"]
            if isinstance(error, requests.exceptions.RequestException):
                raise TransportError(str(error)) from error
            raise error

        logger.warning(f"Abandoning outbound request to {url!r}: {context.error}")
        raise TransportCancelled(context.error or "context canceled")

    def _exchange(self, url, body, headers, timeout) -> TransportResponse:
        if timeout is None:
            timeout = self.idle_timeout
        else:
            # urllib3 rejects a zero timeout
            timeout = max(timeout, 0.001)

        response = self.session.post(
            url,
            data=body,
            headers=headers,
            timeout=timeout,
            allow_redirects=False,
            stream=True,
            verify=self.verify,
        )
        try:
            if response.status_code == 200:
                return TransportResponse(status_code=200)
            return TransportResponse(
                status_code=response.status_code,
                body=self._read_capped(response),
            )
        finally:
            response.close()

    def _read_capped(self, response: requests.Response) -> bytes:
        buf = bytearray()
        for chunk in response.iter_content(chunk_size=READ_CHUNK_SIZE):
            buf.extend(chunk)
            if len(buf) >= self.max_body_bytes:
                del buf[self.max_body_bytes:]
                break
        return bytes(buf)

    def close(self) -> None:
        self.session.close()
