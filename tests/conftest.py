"""Shared pytest fixtures and configuration for all tests.

This conftest provides fixtures that are available to all test modules,
promoting code reuse and consistency across the test suite.
"""

from __future__ import annotations

import pytest

from access_watch import access_watch, access_watch_sync
from helpers import (
    API_BASE,
    FakeHttpClient,
    FakeHttpClientSync,
    RecordingCache,
    RecordingCacheSync,
)


@pytest.fixture
def fake_http() -> FakeHttpClient:
    """Async fake pyqwest client with no routes configured."""
    return FakeHttpClient()


@pytest.fixture
def fake_http_sync() -> FakeHttpClientSync:
    """Sync fake pyqwest client with no routes configured."""
    return FakeHttpClientSync()


@pytest.fixture
def make_client(fake_http):
    """Build an async client wired to ``fake_http``.

    Keyword arguments override the factory options; the cache defaults to an
    empty ``RecordingCache``.
    """

    def _make(**overrides):
        options = {
            "api_key": "test-instance-apikey",
            "cache": RecordingCache(),
            "api_base": API_BASE,
            "http_client": fake_http,
        }
        options.update(overrides)
        return access_watch(**options)

    return _make


@pytest.fixture
def make_client_sync(fake_http_sync):
    """Build a sync client wired to ``fake_http_sync``."""

    def _make(**overrides):
        options = {
            "api_key": "test-instance-apikey",
            "cache": RecordingCacheSync(),
            "api_base": API_BASE,
            "http_client": fake_http_sync,
        }
        options.update(overrides)
        return access_watch_sync(**options)

    return _make
