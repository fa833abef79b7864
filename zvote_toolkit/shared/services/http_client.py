"""
Shared HTTP client utilities.

Centralizes httpx client creation with sensible defaults, connection pooling,
timeouts, and a consistent User-Agent. Clients are owned by whoever creates
them (a VoteSession, an AuditService) and closed when that owner closes;
there is no process-wide client.
"""

from __future__ import annotations

import os
from typing import Optional

import httpx

DEFAULT_TIMEOUT = float(os.getenv("ZV_HTTP_TIMEOUT", "15"))
DEFAULT_CONNECT_TIMEOUT = float(os.getenv("ZV_HTTP_CONNECT_TIMEOUT", "5"))
USER_AGENT = os.getenv("ZV_HTTP_UA", "zvote-toolkit/0.x")


def _build_limits() -> httpx.Limits:
    return httpx.Limits(max_keepalive_connections=20, max_connections=100)


def _build_timeout(timeout: Optional[float] = None) -> httpx.Timeout:
    return httpx.Timeout(
        timeout if timeout is not None else DEFAULT_TIMEOUT,
        connect=DEFAULT_CONNECT_TIMEOUT,
    )


def _default_headers() -> dict:
    return {"User-Agent": USER_AGENT}


def create_async_client(
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create an asynchronous httpx client with the toolkit defaults.

    A custom transport can be passed in, which is how tests plug in
    httpx.MockTransport.
    """
    return httpx.AsyncClient(
        timeout=_build_timeout(timeout),
        limits=_build_limits(),
        headers=_default_headers(),
        transport=transport,
    )
