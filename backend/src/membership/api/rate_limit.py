"""Rate limiting and client identification for the membership API."""

from fastapi import Request
from slowapi import Limiter

from membership.settings import settings

REGISTER_LIMIT = "5/minute"
LOGIN_LIMIT = "10/minute"

# Session audit rows store at most this many characters (IPv6 text form)
MAX_IP_LENGTH = 45


def client_ip(request: Request) -> str:
    """Address of the calling client.

    Behind a reverse proxy (`TRUST_PROXY=true`) the first hop of
    X-Forwarded-For is the client; otherwise the socket peer is.
    """
    if settings.trust_proxy:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop[:MAX_IP_LENGTH]
    if request.client and request.client.host:
        return request.client.host[:MAX_IP_LENGTH]
    return "unknown"


# Keyed by client IP; only enforced in production
limiter = Limiter(
    key_func=client_ip,
    default_limits=["200/minute"],
    storage_uri="memory://",
    enabled=settings.env == "production",
)
