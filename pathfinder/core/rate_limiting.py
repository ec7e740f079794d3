"""Rate limiting configuration using slowapi.

Security: Limits how often a caller may trigger AI completion calls
(experience mapping, PERT generation). Keys on the JWT subject when auth is
enabled so users behind a shared IP don't throttle each other.

Usage in routers:
    from pathfinder.core.rate_limiting import limiter

    @router.post("/responses")
    @limiter.limit(settings.rate_limit_llm)
    async def generate_response(request: Request, ...):
        ...
"""

import jwt
from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from pathfinder.core.config import settings
from pathfinder.core.responses import ErrorDetail, ErrorResponse

# Longest string form of a UUID
_MAX_SUBJECT_LENGTH = 36


def _rate_limit_key_func(request: Request) -> str:
    """Get rate limit key from request.

    Key format:
    - Auth disabled: "{ip}" (local-first mode)
    - Auth enabled + valid JWT: "user:{sub}"
    - Auth enabled + no/invalid JWT: "unauth:{ip}"

    Args:
        request: The incoming request.

    Returns:
        Rate limit key string.
    """
    if not settings.auth_enabled:
        return get_remote_address(request)

    # Only the sub claim is needed for keying; full validation is in deps.py
    token = request.cookies.get(settings.auth_cookie_name)
    if token:
        try:
            payload = jwt.decode(
                token,
                settings.auth_secret.get_secret_value(),
                algorithms=["HS256"],
                audience=settings.auth_audience,
                issuer=settings.auth_issuer,
            )
            sub = payload["sub"]
            if len(sub) <= _MAX_SUBJECT_LENGTH:
                return f"user:{sub}"
        except (jwt.InvalidTokenError, KeyError, TypeError):
            pass

    return f"unauth:{get_remote_address(request)}"


# In-memory storage (single instance). For multiple instances configure
# shared storage via RATELIMIT_STORAGE_URL.
limiter = Limiter(
    key_func=_rate_limit_key_func,
    enabled=settings.rate_limit_enabled,
)


_PERIOD_SECONDS = {"second": 1, "minute": 60, "hour": 3600, "day": 86400}


def _retry_after_seconds(detail: str) -> str:
    """Window length in seconds for a limit string like "10 per 1 minute"."""
    words = detail.split()
    unit = words[-1].rstrip("s") if words else ""
    count = words[-2] if len(words) >= 2 and words[-2].isdigit() else "1"
    return str(int(count) * _PERIOD_SECONDS.get(unit, 60))


def rate_limit_exceeded_handler(
    _request: Request,
    exc: RateLimitExceeded,
) -> Response:
    """Return 429 RATE_LIMITED in the standard error envelope.

    Retry-After is the length of the exceeded window.
    """
    return JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="RATE_LIMITED",
                message=f"Rate limit exceeded: {exc.detail}",
            )
        ).model_dump(),
        headers={"Retry-After": _retry_after_seconds(str(exc.detail))},
    )
