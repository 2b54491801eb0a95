"""Pytest fixtures for Flask integration tests."""

import pytest

pytest.importorskip(
    "flask",
    reason="Flask not installed; skipping Flask tests.",
)

from flask import Flask, Response, jsonify, request

from access_watch import access_watch_sync
from helpers import API_BASE, RecordingCacheSync


@pytest.fixture
def session_cache() -> RecordingCacheSync:
    return RecordingCacheSync()


@pytest.fixture
def flask_app(fake_http_sync, session_cache) -> Flask:
    """Create a Flask application guarded by a sync Access Watch client.

    Returns:
        A configured Flask application; blocked sessions get a 403 before
        any route runs.
    """
    app = Flask(__name__)

    aw = access_watch_sync(
        api_key="test-instance-apikey",
        cache=session_cache,
        api_base=API_BASE,
        http_client=fake_http_sync,
    )

    @app.before_request
    def block_known_bad():
        if aw.is_blocked(request):
            return "Forbidden", 403
        return None

    @app.route("/protected", methods=["GET"])
    def protected_route():
        return "Ok", 200

    @app.route("/signature", methods=["GET"])
    def signature_route():
        return aw.request_signature(request)

    @app.route("/session", methods=["GET"])
    def session_route():
        return jsonify(aw.resolve_session(request).to_dict())

    @app.route("/reported", methods=["GET", "POST"])
    def reported_route():
        response = Response("Accepted", status=202)
        aw.report(request, response)
        return response

    return app


@pytest.fixture
def flask_client(flask_app: Flask):
    """Create a test client for the Flask application."""
    return flask_app.test_client()
