# =====================================================================
# hass-ecowitt-proxy Pytest Configuration and Fixtures
# =====================================================================
# This file contains shared fixtures and configuration for all tests
# =====================================================================

import threading

import pytest
from prometheus_client import REGISTRY, CollectorRegistry
from werkzeug.serving import make_server

from ecowitt_proxy.config import ServerOptions
from ecowitt_proxy.transport import Transport, TransportCancelled, TransportError, TransportResponse


# --- Prometheus Metrics Cleanup ---

@pytest.fixture(autouse=True, scope="function")
def cleanup_prometheus_metrics():
    """
    Clean up Flask exporter metrics from the global registry after each test.

    prometheus_flask_exporter registers its request metrics every time an app
    is created; leaving them behind causes 'Duplicated timeseries in
    CollectorRegistry' errors. The gateway's own ecowitt_proxy_* metrics are
    module-level and stay registered.
    """
    yield  # Run the test first

    collectors_to_remove = []
    for collector in list(REGISTRY._collector_to_names.keys()):
        names = REGISTRY._collector_to_names.get(collector, set())
        if any(name.startswith('flask_') for name in names):
            collectors_to_remove.append(collector)

    for collector in collectors_to_remove:
        try:
            REGISTRY.unregister(collector)
        except KeyError:
            pass


@pytest.fixture
def metrics_registry():
    """Fresh registry for the Flask request metrics of one app."""
    return CollectorRegistry()


# --- Transport Doubles ---

class RecordingTransport(Transport):
    """
    Transport double that records every call and answers from a script.

    ``responses`` items are TransportResponse objects to return or exceptions
    to raise; the last item repeats once the script runs out.
    """

    def __init__(self, *responses):
        self.responses = list(responses) or [TransportResponse(status_code=200)]
        self.calls = []
        self.lock = threading.Lock()

    def post(self, url, body, headers, context=None):
        with self.lock:
            self.calls.append({"url": url, "body": body, "headers": dict(headers), "context": context})
            item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, BaseException):
            raise item
        return item

    @property
    def last_call(self):
        return self.calls[-1]


class BlockingTransport(Transport):
    """Transport that never answers on its own; it only gives up when the context is done."""

    def __init__(self):
        self.started = threading.Event()

    def post(self, url, body, headers, context=None):
        self.started.set()
        done = threading.Event()
        context.add_cancel_callback(done.set)
        done.wait(context.remaining())
        raise TransportCancelled(context.error or "context canceled")


@pytest.fixture
def ok_transport():
    return RecordingTransport(TransportResponse(status_code=200))


@pytest.fixture
def make_transport():
    """Factory for scripted RecordingTransports."""
    return RecordingTransport


@pytest.fixture
def failing_transport():
    return RecordingTransport(TransportError("dial tcp 127.0.0.1:1: connect: connection refused"))


@pytest.fixture
def blocking_transport():
    return BlockingTransport()


# --- Sample Data Fixtures ---

@pytest.fixture
def sample_ecowitt_form():
    """A trimmed-down upload from a GW1100 gateway"""
    return {
        "PASSKEY": ["A1B2C3D4E5F6"],
        "stationtype": ["GW1100A_V2.1.4"],
        "dateutc": ["2024-05-01 12:00:00"],
        "tempinf": ["72.1"],
        "humidityin": ["41"],
        "baromrelin": ["29.921"],
        "tempf": ["58.3"],
        "humidity": ["55"],
        "winddir": ["270"],
        "windspeedmph": ["3.4"],
        "rainratein": ["0.000"],
        "model": ["GW1100A"],
    }


@pytest.fixture
def server_options():
    return ServerOptions(
        address="127.0.0.1",
        port=8181,
        hass_url="http://ha.local:8123",
        hass_auth_token="secret-token-1234",
        hass_webhook_id="ecowitt",
        forward_timeout=5.0,
    )


# --- Live Server Fixtures ---

class LiveServer:
    """A Flask app served by a threaded werkzeug server on an ephemeral port."""

    def __init__(self, app):
        self.app = app
        self.server = make_server("127.0.0.1", 0, app, threaded=True)
        self.port = self.server.server_port
        self.url = f"http://127.0.0.1:{self.port}"
        self.thread = threading.Thread(target=self.server.serve_forever, daemon=True)

    def start(self):
        self.thread.start()
        return self

    def stop(self):
        self.server.shutdown()
        self.thread.join(timeout=5)


@pytest.fixture
def live_server():
    """Factory: live_server(app) starts the app and stops it after the test."""
    servers = []

    def _start(app):
        server = LiveServer(app).start()
        servers.append(server)
        return server

    yield _start

    for server in servers:
        # Let any slow stub handlers finish before shutting down
        release = server.app.config.get("RELEASE")
        if release is not None:
            release.set()
        server.stop()


# --- Pytest Configuration ---

def pytest_configure(config):
    """Pytest configuration hook"""
    config.addinivalue_line(
        "markers", "unit: Unit tests (mock all external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (real HTTP servers on localhost)"
    )
    config.addinivalue_line(
        "markers", "smoke: Smoke tests against a deployed proxy (E2E_PROXY_BASE)"
    )
    config.addinivalue_line(
        "markers", "slow: Slow tests (>1 second)"
    )

