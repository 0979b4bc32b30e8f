# =====================================================================
# hass-ecowitt-proxy Request Context Unit Tests
# =====================================================================
# Tests for ecowitt_proxy/context.py
# Run with: pytest tests/test_context_unit.py -v
# =====================================================================

import time

import pytest

from ecowitt_proxy.context import CANCELED, DEADLINE_EXCEEDED, RequestContext


# Mark all tests in this file as unit tests
pytestmark = pytest.mark.unit


class TestRequestContext:
    """Test cancellation and deadlines"""

    def test_background_never_done(self):
        context = RequestContext.background()

        assert context.cancelled is False
        assert context.error is None
        assert context.remaining() is None

    def test_cancel_sets_error(self):
        context = RequestContext()

        context.cancel()

        assert context.cancelled is True
        assert context.error == CANCELED

    def test_deadline_expires(self):
        context = RequestContext(timeout=0.01)
        time.sleep(0.03)

        assert context.expired() is True
        assert context.cancelled is True
        assert context.error == DEADLINE_EXCEEDED
        assert context.remaining() == 0.0

    def test_zero_timeout_means_no_deadline(self):
        assert RequestContext(timeout=0).deadline is None

    def test_callbacks_run_once_on_cancel(self):
        context = RequestContext()
        calls = []
        context.add_cancel_callback(lambda: calls.append(1))

        context.cancel()
        context.cancel()

        assert calls == [1]

    def test_callback_runs_immediately_when_already_cancelled(self):
        context = RequestContext()
        context.cancel("shutting down")
        calls = []

        context.add_cancel_callback(lambda: calls.append(1))

        assert calls == [1]
        assert context.error == "shutting down"
