#!/usr/bin/env python3
"""
Simple mock Home Assistant webhook service for local and integration testing.

Endpoints:
- POST /api/webhook/<webhook_id>  -> accepts form payloads, records them
- GET  /health                    -> basic health
- GET  /stats                     -> returns counts and the last request seen

Env:
- PORT (default 8123)
- MOCK_HASS_STATUS (default 200)   status code returned for webhook posts
- MOCK_HASS_DELAY  (default 0)     seconds to wait before answering
"""

import threading

from flask import Flask, jsonify, request


class Stats:
    def __init__(self):
        self.lock = threading.Lock()
        self.count = 0
        self.last_webhook_id = None
        self.last_form = None
        self.last_auth = None
        self.last_body = None

    def record(self, webhook_id, form, auth, body):
        with self.lock:
            self.count += 1
            self.last_webhook_id = webhook_id
            self.last_form = form
            self.last_auth = auth
            self.last_body = body

    def to_dict(self):
        with self.lock:
            return {
                "count": self.count,
                "last_webhook_id": self.last_webhook_id,
                "last_form": self.last_form,
                "last_auth": self.last_auth,
            }


def create_app(status_code: int = 200, response_body: str = "", delay: float = 0) -> Flask:
    """
    Build a stub webhook app.

    ``app.config["STATS"]`` holds the recorded requests. With a delay, the
    handler sleeps on ``app.config["RELEASE"]`` so tests can let it finish early.
    """
    app = Flask(__name__)
    stats = Stats()
    release = threading.Event()
    app.config["STATS"] = stats
    app.config["RELEASE"] = release

    @app.route('/health', methods=['GET'])
    def health():
        return jsonify({"status": "healthy", "service": "mock-hass"})

    @app.route('/api/webhook/<webhook_id>', methods=['POST'])
    def webhook(webhook_id):
        body = request.get_data(cache=True, as_text=True)
        form = {key: values for key, values in request.form.lists()}
        stats.record(webhook_id, form, request.headers.get("Authorization"), body)

        if delay:
            release.wait(delay)

        return response_body, status_code

    @app.route('/stats', methods=['GET'])
    def get_stats():
        return jsonify(stats.to_dict())

    return app


if __name__ == '__main__':
    import os
    app = create_app(
        status_code=int(os.environ.get('MOCK_HASS_STATUS', '200')),
        delay=float(os.environ.get('MOCK_HASS_DELAY', '0')),
    )
    port = int(os.environ.get('PORT', '8123'))
    app.run(host='0.0.0.0', port=port, threaded=True)
