"""Unit tests for activity record construction."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from access_watch import STANDARD_FORWARDED_HEADERS
from access_watch.context import coerce_request_context
from access_watch.forwarded import ForwardedHeaders, HeaderName
from access_watch.report import (
    DEFAULT_HEADER_BLACKLIST,
    build_log_record,
    iso_timestamp,
    normalize_blacklist,
    split_host,
)

PROXIED_REQUEST = {
    "http_version": "999",
    "method": "GET",
    "headers": {
        "host": "localhost",
        "x-forwarded-for": "1.2.3.4, 2.2.2.2, 3.3.3.3",
        "x-forwarded-proto": "https",
        "x-forwarded-host": "access.watch",
        "cookie": "dont include me plz",
    },
    "address": "127.0.0.1",
    "encrypted": False,
    "url": "/some/url",
}


def test_record_with_forwarded_headers():
    record = build_log_record(
        coerce_request_context(PROXIED_REQUEST),
        123,
        fwd_headers=STANDARD_FORWARDED_HEADERS,
    )
    assert record["address"] == "1.2.3.4"
    assert record["request"]["protocol"] == "HTTP/999"
    assert record["request"]["method"] == "GET"
    assert record["request"]["scheme"] == "https"
    assert record["request"]["host"] == "access.watch"
    assert "port" not in record["request"]
    assert record["request"]["url"] == "/some/url"
    assert "cookie" not in record["request"]["headers"]
    # cookie header was omitted
    assert len(record["request"]["headers"]) == len(PROXIED_REQUEST["headers"]) - 1
    assert record["response"] == {"status": 123}


def test_record_without_forwarded_headers():
    record = build_log_record(coerce_request_context(PROXIED_REQUEST), 123)
    assert record["address"] == "127.0.0.1"
    assert record["request"]["scheme"] == "http"
    assert record["request"]["host"] == "localhost"
    assert "cookie" not in record["request"]["headers"]
    assert record["request"]["headers"]["x-forwarded-host"] == "access.watch"


def test_encrypted_transport_implies_https():
    req = dict(PROXIED_REQUEST, encrypted=True)
    record = build_log_record(coerce_request_context(req), 200)
    assert record["request"]["scheme"] == "https"


def test_configured_blacklist_replaces_default_case_insensitively():
    req = {
        "http_version": "1.1",
        "headers": {"host": "localhost", "one": "1", "two": "1", "three": "1", "cookie": "i can be included"},
        "address": "127.0.0.1",
        "url": "/some/url",
    }
    record = build_log_record(
        coerce_request_context(req),
        200,
        header_blacklist=normalize_blacklist(["one", "TWO", "tHree"]),
    )
    headers = record["request"]["headers"]
    assert "one" not in headers
    assert "two" not in headers
    assert "three" not in headers
    assert headers["cookie"] == "i can be included"
    assert headers["host"] == "localhost"


def test_default_blacklist():
    assert DEFAULT_HEADER_BLACKLIST == frozenset({"cookie"})


@pytest.mark.parametrize(
    "host_header,encrypted,host,port",
    [
        ("example.com", False, "example.com", None),
        ("example.com:8080", False, "example.com", "8080"),
        ("example.com:80", False, "example.com", None),
        ("example.com:443", True, "example.com", None),
        ("example.com:80", True, "example.com", "80"),
        ("[::1]:8443", True, "[::1]", "8443"),
        ("[::1]", False, "[::1]", None),
    ],
)
def test_host_and_port(host_header, encrypted, host, port):
    req = {"address": "1.1.1.1", "headers": {"host": host_header}, "encrypted": encrypted}
    record = build_log_record(coerce_request_context(req), 200)
    assert record["request"]["host"] == host
    assert record["request"].get("port") == port


def test_forwarded_host_port_is_split():
    fwd = ForwardedHeaders(host=HeaderName("x-forwarded-host"))
    req = {
        "address": "1.1.1.1",
        "headers": {"host": "internal", "x-forwarded-host": "access.watch:9000"},
    }
    record = build_log_record(coerce_request_context(req), 200, fwd_headers=fwd)
    assert record["request"]["host"] == "access.watch"
    assert record["request"]["port"] == "9000"


def test_server_host_fallback_when_no_host_header():
    req = {"address": "1.1.1.1", "headers": {}, "host": "10.0.0.5:8000"}
    record = build_log_record(coerce_request_context(req), 200)
    assert record["request"]["host"] == "10.0.0.5"
    assert record["request"]["port"] == "8000"


def test_split_host_unbracketed_ipv6():
    assert split_host("fe80::1") == ("fe80::1", None)


def test_iso_timestamp_format():
    now = datetime(2016, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)
    assert iso_timestamp(now) == "2016-01-02T03:04:05.678Z"
    shifted = now.astimezone(timezone(timedelta(hours=2)))
    assert iso_timestamp(shifted) == "2016-01-02T03:04:05.678Z"


def test_record_uses_given_time():
    now = datetime(2020, 5, 6, 7, 8, 9, tzinfo=timezone.utc)
    record = build_log_record(coerce_request_context(PROXIED_REQUEST), 200, now=now)
    assert record["time"] == "2020-05-06T07:08:09.000Z"
