"""Network utility functions."""

from starlette.requests import HTTPConnection

import config as cfg


def get_client_ip(connection: HTTPConnection) -> str:
    """Client IP for an HTTP request or WebSocket, used for per-IP limits.

    X-Forwarded-For / X-Real-IP are only honored with TRUST_PROXY_HEADERS set,
    since any client can send them.
    """
    if cfg.TRUST_PROXY_HEADERS:
        forwarded = connection.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
        real_ip = connection.headers.get("x-real-ip", "").strip()
        if real_ip:
            return real_ip
    peer = connection.client
    return peer.host if peer else "unknown"
