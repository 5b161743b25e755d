"""
Rate limiting middleware using slowapi.
Admin API: 100 req/min per admin token or client address. Tracking routes are exempt.
"""

from fastapi import HTTPException, Request
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address


def _get_user_key(request: Request) -> str:
    """Extract the admin email from the JWT for per-user rate limiting."""
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        from affitrack.core.security import decode_token
        try:
            token_data = decode_token(auth[7:])
            return f"user:{token_data.email}"
        except HTTPException:
            pass
    return get_remote_address(request)


# Create limiter with user-based key
limiter = Limiter(
    key_func=_get_user_key,
    default_limits=["100/minute"],
    storage_uri="memory://",  # Use Redis in production
)


def setup_rate_limiting(app):
    """Configure rate limiting for the FastAPI app."""
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)
