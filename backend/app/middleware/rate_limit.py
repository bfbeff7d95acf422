from slowapi import Limiter
from starlette.requests import Request

from app.config import settings


def get_real_client_ip(request: Request) -> str:
    """Extract the client IP used for rate limiting.

    X-Real-IP is only honoured when the direct peer is one of our trusted
    proxies; it is set by the proxy to the address it saw, unlike the
    leftmost X-Forwarded-For entry which the client controls.
    Falls back to request.client.host for direct connections.
    """
    remote_host = request.client.host if request.client else "unknown"
    if remote_host not in settings.trusted_proxy_ips:
        return remote_host
    real_ip = request.headers.get("X-Real-IP", "").strip()
    return real_ip or remote_host


limiter = Limiter(key_func=get_real_client_ip, enabled=settings.rate_limit_enabled)
