"""Unit tests for client key extraction."""

from __future__ import annotations

import pytest
from fastapi import Request

from luminal.core.client_key import (
    INVALID_IP,
    UNKNOWN_CLIENT,
    build_client_key,
    extract_client_ip,
    sanitize_ip,
)


def _request(headers: dict[str, str] | None = None, client: tuple[str, int] | None = ("10.0.0.2", 5000)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "query_string": b"",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("203.0.113.7", "203.0.113.7"),
        ("  203.0.113.7\t", "203.0.113.7"),
        ("2001:DB8:0:0:0:0:0:1", "2001:db8::1"),
        ("::1", "::1"),
        ("localhost", "localhost"),
        ("999.1.1.1", INVALID_IP),
        ("not-an-ip", INVALID_IP),
        ("", INVALID_IP),
    ],
)
def test_sanitize_ip(raw: str, expected: str) -> None:
    assert sanitize_ip(raw) == expected


def test_forwarded_for_first_hop_wins() -> None:
    request = _request({"X-Forwarded-For": "203.0.113.7, 10.0.0.1", "X-Real-IP": "198.51.100.3"})

    assert extract_client_ip(request) == "203.0.113.7"


def test_real_ip_used_without_forwarded_for() -> None:
    assert extract_client_ip(_request({"X-Real-IP": "198.51.100.3"})) == "198.51.100.3"


def test_socket_peer_used_without_proxy_headers() -> None:
    assert extract_client_ip(_request()) == "10.0.0.2"


def test_proxy_headers_ignored_when_untrusted() -> None:
    request = _request({"X-Forwarded-For": "203.0.113.7"})

    assert extract_client_ip(request, trust_proxy_headers=False) == "10.0.0.2"


def test_unknown_client_without_peer() -> None:
    assert extract_client_ip(_request(client=None)) == UNKNOWN_CLIENT


def test_build_client_key_is_namespaced() -> None:
    request = _request({"X-Forwarded-For": "spoofed<script>"})

    assert build_client_key(request) == f"ip:{INVALID_IP}"
