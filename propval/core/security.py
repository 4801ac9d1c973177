from datetime import datetime, timezone

from fastapi import Header, HTTPException, Request
from starlette.status import HTTP_401_UNAUTHORIZED, HTTP_429_TOO_MANY_REQUESTS


def require_api_key(request: Request, x_api_key: str | None = Header(default=None, alias="x-api-key")):
    """
    Header-based API key check for callers of this service. Unrelated to the
    listing-platform token callers forward in the request body.
    """
    expected = request.app.state.settings.API_KEY
    if not expected:
        # If unset, we allow requests (dev convenience).
        return
    if x_api_key != expected:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Invalid API key")


async def rate_limit(request: Request):
    """
    Per-minute request limiter keyed by API key (if present) and client IP.
    Uses Redis if configured, else the in-process cache.
    """
    settings = request.app.state.settings
    cache = request.app.state.cache
    rpm = max(1, settings.RATE_LIMIT_RPM)
    client_ip = request.client.host if request.client else "unknown"
    api_key = request.headers.get("x-api-key") or "anon"
    minute_bucket = datetime.now(timezone.utc).strftime("%Y%m%d%H%M")
    key = f"rate:{api_key}:{client_ip}:{minute_bucket}"

    if await cache.incr(key, ttl_seconds=60) > rpm:
        raise HTTPException(status_code=HTTP_429_TOO_MANY_REQUESTS, detail="Rate limit exceeded")
