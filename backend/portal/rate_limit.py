"""Rate limiting singleton using slowapi."""

from fastapi import Request
from slowapi import Limiter


def client_ip(request: Request) -> str:
    """Client IP, honouring X-Forwarded-For from the fronting proxy / cloud scheduler."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


limiter = Limiter(key_func=client_ip)
