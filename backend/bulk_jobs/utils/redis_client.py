"""Redis URL normalization and client construction (TLS-aware for Upstash)."""

from __future__ import annotations

import ssl
from typing import Any

from redis import Redis


def normalize_redis_url(url: str) -> tuple[str, bool]:
    """Return ``(url, uses_tls)``, upgrading Upstash ``redis://`` URLs to TLS."""
    if ".upstash.io" in url and url.startswith("redis://"):
        url = url.replace("redis://", "rediss://", 1)
    return url, url.startswith("rediss://")


def create_redis_client(url: str, **kwargs: Any) -> Redis:
    """Create a Redis client; TLS connections skip certificate verification.

    Args:
        url: Redis connection URL (redis:// or rediss://)
        **kwargs: Additional arguments (decode_responses, socket_connect_timeout, etc.)
    """
    url, uses_tls = normalize_redis_url(url)
    client = Redis.from_url(url, **kwargs)
    if uses_tls and hasattr(client, "connection_pool"):
        client.connection_pool.connection_kwargs["ssl_cert_reqs"] = ssl.CERT_NONE
    return client
