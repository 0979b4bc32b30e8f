#!/usr/bin/env python3
"""
=====================================================================
hass-ecowitt-proxy HTTP Service
=====================================================================
Flask front end for the event gateway.

Endpoints:
- GET  /event    current event/error counts
- POST /event    Ecowitt upload (form data), forwarded to Home Assistant
- GET  /health   liveness check
- GET  /status   human-readable status page (?format=json for JSON)
- GET  /metrics  Prometheus metrics

Production:
  gunicorn --bind 0.0.0.0:8181 --workers 1 --threads 8 \\
           'ecowitt_proxy.server:create_app_from_env()'
=====================================================================
"""

import logging
import signal
import sys
import uuid
from typing import Optional

from flask import Flask, g, jsonify, render_template_string, request
from prometheus_flask_exporter import PrometheusMetrics
from werkzeug.exceptions import HTTPException

from . import SERVICE_NAME, __version__
from .config import ServerOptions, load_options, mask_secret
from .context import RequestContext
from .forms import (
    FORM_CONTENT_TYPE,
    MAX_FORM_BYTES,
    FormParseError,
    FormValues,
    merge_form,
    normalize_form,
    parse_form_body,
)
from .gateway import ErrorResponse, EventGateway, GatewayConfig
from .transport import Transport

logger = logging.getLogger(__name__)

# =====================================================================
# FORM EXTRACTION
# =====================================================================


def read_form_params(req) -> FormValues:
    """
    Collect the form fields of an inbound request.

    Body fields come first (strictly parsed for url-encoded bodies, read
    through werkzeug for multipart), followed by URL query parameters.
    Other content types contribute no body fields.

    Raises:
        FormParseError: if the body or query string cannot be decoded, or
            a form body is larger than MAX_FORM_BYTES
    """
    body_fields: FormValues = {}
    mimetype = req.mimetype

    if mimetype == FORM_CONTENT_TYPE:
        if req.content_length is not None and req.content_length > MAX_FORM_BYTES:
            raise FormParseError(f"form body too large ({req.content_length} bytes)")
        try:
            data = req.get_data(cache=True)
        except HTTPException as e:
            raise FormParseError(f"could not read form body: {e.description}") from e
        body_fields = parse_form_body(data)
    elif mimetype == "multipart/form-data":
        try:
            body_fields = normalize_form(req.form)
        except HTTPException as e:
            raise FormParseError(f"could not read multipart form: {e.description}") from e

    query_fields = parse_form_body(req.query_string)
    return merge_form(body_fields, query_fields)


# =====================================================================
# STATUS PAGE
# =====================================================================

STATUS_HTML = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Ecowitt Proxy Status</title>
    <style>
        body { font-family: -apple-system, "Segoe UI", Roboto, Arial, sans-serif; margin: 24px; }
        table { border-collapse: collapse; }
        th, td { text-align: left; padding: 4px 16px 4px 0; }
        .errors { color: #c62828; }
    </style>
</head>
<body>
    <h1>Ecowitt &rarr; Home Assistant Proxy</h1>
    <table>
        <tr><th>Listen address</th><td>{{ address }}</td></tr>
        <tr><th>Home Assistant URL</th><td>{{ hass_url }}</td></tr>
        <tr><th>Auth token</th><td>{{ hass_auth_token }}</td></tr>
        <tr><th>Webhook ID</th><td>{{ webhook_id }}</td></tr>
        <tr><th>Events forwarded</th><td>{{ event_count }}</td></tr>
        <tr><th>Errors</th><td class="errors">{{ error_count }}</td></tr>
        <tr><th>Version</th><td>{{ version }}</td></tr>
    </table>
</body>
</html>
"""

# =====================================================================
# FLASK APPLICATION FACTORY
# =====================================================================


def create_app(
    options: ServerOptions,
    transport: Optional[Transport] = None,
    metrics_registry=None,
) -> Flask:
    """
    Creates and configures the Flask application.

    Args:
        options: Resolved server options
        transport: HTTP transport for forwarding (tests inject a double)
        metrics_registry: prometheus CollectorRegistry for the request metrics
            (defaults to the global registry)
    """
    app = Flask(__name__)
    app.config["OPTIONS"] = options
    # Werkzeug refuses to read bodies past this size
    app.config["MAX_CONTENT_LENGTH"] = MAX_FORM_BYTES

    gateway = EventGateway(GatewayConfig(
        hass_url=options.hass_url,
        auth_token=options.hass_auth_token,
        webhook_id=options.hass_webhook_id,
        transport=transport,
    ))
    app.config["GATEWAY"] = gateway

    if metrics_registry is not None:
        PrometheusMetrics(app, registry=metrics_registry)
    else:
        PrometheusMetrics(app)
    logger.info("Prometheus metrics endpoint initialized at /metrics")

    # ================================================================
    # REQUEST HANDLERS
    # ================================================================

    @app.before_request
    def assign_correlation_id():
        """Generate or extract a correlation ID for request tracing."""
        g.correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())

    @app.after_request
    def echo_correlation_id(response):
        correlation_id = g.get("correlation_id")
        if correlation_id:
            response.headers["X-Correlation-ID"] = correlation_id
        return response

    @app.route("/event", methods=["GET"])
    def handle_event_get():
        """Current counts, no side effects."""
        return jsonify(gateway.handle_event_query().to_dict()), 200

    @app.route("/event", methods=["POST"])
    def handle_event_post():
        """Forward one Ecowitt upload to Home Assistant."""
        context = RequestContext(timeout=options.forward_timeout or None)
        result = gateway.handle_event_submit(lambda: read_form_params(request), context)

        if isinstance(result, ErrorResponse):
            return jsonify(result.to_dict()), 500
        return jsonify(result.to_dict()), 200

    @app.route("/health", methods=["GET"])
    def handle_health():
        """Health check endpoint for load balancers and orchestrators."""
        return jsonify(gateway.handle_health_query()), 200

    @app.route("/status", methods=["GET"])
    def handle_status():
        counts = gateway.snapshot_counts()
        data = {
            "address": options.listen_addr,
            "hass_url": gateway.hass_url,
            "hass_auth_token": mask_secret(gateway.auth_token),
            "webhook_id": gateway.webhook_id,
            "event_count": counts.event_count,
            "error_count": counts.error_count,
            "version": __version__,
        }

        wants_json = request.args.get("format") == "json" or (
            request.accept_mimetypes.best == "application/json"
        )
        if wants_json:
            return jsonify(data), 200
        return render_template_string(STATUS_HTML, **data), 200

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        if isinstance(e, HTTPException):
            if e.code is None or e.code < 400:
                return e
            logger.warning(f"{request.method} {request.path}: {e}")
            return jsonify({"message": e.name}), e.code

        logger.error(f"Unhandled exception: {e}", exc_info=True)
        return jsonify({"message": "Internal Server Error"}), 500

    return app


def create_app_from_env() -> Flask:
    """Factory for WSGI servers: options come from the environment / config file."""
    return create_app(load_options())


# =====================================================================
# GRACEFUL SHUTDOWN HANDLING
# =====================================================================

def setup_signal_handlers(app: Flask) -> None:
    """Set up signal handlers for graceful shutdown."""

    def shutdown_handler(signum, frame):
        sig_name = "SIGTERM" if signum == signal.SIGTERM else "SIGINT"
        logger.info(f"Received {sig_name}, initiating graceful shutdown...")

        gateway = app.config.get("GATEWAY")
        if gateway is not None:
            counts = gateway.snapshot_counts()
            logger.info(
                f"Final counts: {counts.event_count} events forwarded, {counts.error_count} errors"
            )
            gateway.close()

        logger.info("Graceful shutdown complete")
        sys.exit(0)

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)

    logger.info("Signal handlers registered for graceful shutdown")


def run_server(app: Flask) -> None:
    """Serve the app with werkzeug's threaded server (one thread per request)."""
    options: ServerOptions = app.config["OPTIONS"]
    host = options.address or "0.0.0.0"

    logger.info("=" * 70)
    logger.info(f"{SERVICE_NAME} v{__version__}")
    logger.info(f"Listening on {host}:{options.port}")
    logger.info("=" * 70)

    app.run(host=host, port=options.port, threaded=True)
