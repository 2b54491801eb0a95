"""Pytest fixtures for FastAPI integration tests."""

import pytest

pytest.importorskip(
    "fastapi",
    reason="FastAPI not installed; skipping FastAPI tests.",
)

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.testclient import TestClient

from access_watch import access_watch
from helpers import API_BASE, RecordingCache


@pytest.fixture
def session_cache() -> RecordingCache:
    return RecordingCache()


@pytest.fixture
def fastapi_app(fake_http, session_cache) -> FastAPI:
    """Create a FastAPI application guarded by an Access Watch client.

    The client talks to the fake pyqwest client, so no real API calls are
    made.
    """
    app = FastAPI()

    aw = access_watch(
        api_key="test-instance-apikey",
        cache=session_cache,
        api_base=API_BASE,
        http_client=fake_http,
    )

    @app.get("/protected")
    async def protected_route(request: Request):
        if await aw.is_blocked(request):
            return PlainTextResponse("Forbidden", status_code=403)
        return PlainTextResponse("Ok", status_code=200)

    @app.get("/signature")
    async def signature_route(request: Request):
        return PlainTextResponse(aw.request_signature(request))

    @app.get("/session")
    async def session_route(request: Request):
        session = await aw.resolve_session(request)
        return JSONResponse(session.to_dict())

    @app.post("/reported")
    async def reported_route(request: Request):
        response = PlainTextResponse("Created", status_code=201)
        await aw.report(request, response)
        return response

    return app


@pytest.fixture
def fastapi_client(fastapi_app: FastAPI) -> TestClient:
    """Create a test client for the FastAPI application."""
    return TestClient(fastapi_app)
