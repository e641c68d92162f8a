"""Caller identity extraction for rate limiting.

The key is derived from the client IP address. When proxy headers are
trusted, the first hop of ``X-Forwarded-For`` wins, then ``X-Real-IP``, then
the socket peer address.
"""

from __future__ import annotations

import ipaddress
import re

from fastapi import Request

INVALID_IP = "invalid_ip"
UNKNOWN_CLIENT = "unknown"

_NON_IP_CHARS = re.compile(r"[^0-9a-fA-F:.]")


def sanitize_ip(raw: str) -> str:
    """Normalize an address taken from a request header.

    Args:
        raw: Header value (already split to a single hop).

    Returns:
        The compressed textual form of a valid IPv4/IPv6 address,
        ``"localhost"``, or ``"invalid_ip"`` for anything else.

    Examples:
        >>> sanitize_ip(" 203.0.113.7 ")
        '203.0.113.7'
        >>> sanitize_ip("2001:DB8:0:0:0:0:0:1")
        '2001:db8::1'
        >>> sanitize_ip("<script>")
        'invalid_ip'
    """
    value = raw.strip()
    if value.lower() == "localhost":
        return "localhost"

    cleaned = _NON_IP_CHARS.sub("", value)
    if not cleaned:
        return INVALID_IP
    try:
        return str(ipaddress.ip_address(cleaned))
    except ValueError:
        return INVALID_IP


def extract_client_ip(request: Request, *, trust_proxy_headers: bool = True) -> str:
    """Resolve the client address of ``request``.

    Args:
        request: Incoming request.
        trust_proxy_headers: Whether forwarding headers may override the
            socket peer address.

    Returns:
        Client address string (never empty).
    """
    if trust_proxy_headers:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return sanitize_ip(forwarded_for.split(",")[0])

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return sanitize_ip(real_ip)

    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


def build_client_key(request: Request, *, trust_proxy_headers: bool = True) -> str:
    """Build the namespaced limiter key for the current request."""
    return f"ip:{extract_client_ip(request, trust_proxy_headers=trust_proxy_headers)}"
