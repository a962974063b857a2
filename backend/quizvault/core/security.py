"""
Security headers added to every response.

The default Content-Security-Policy allows same-origin resources plus the
CDNs the bundled front end loads scripts from (Lucide icons via unpkg,
jsdelivr, the Tailwind play CDN).
"""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

DEFAULT_CSP = (
    "default-src 'self'; "
    "script-src 'self' 'unsafe-inline' 'unsafe-eval' "
    "https://unpkg.com https://cdn.jsdelivr.net https://cdn.tailwindcss.com; "
    "script-src-attr 'unsafe-inline'; "
    "img-src 'self' data: blob:; "
    "connect-src 'self'"
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Sets CSP, HSTS, nosniff, frame and referrer headers."""

    def __init__(
        self,
        app: ASGIApp,
        *,
        content_security_policy: str = DEFAULT_CSP,
        hsts_max_age: int = 15552000,  # 180 days
        referrer_policy: str = "no-referrer",
    ) -> None:
        super().__init__(app)
        self.content_security_policy = content_security_policy
        self.hsts_max_age = hsts_max_age
        self.referrer_policy = referrer_policy

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)

        response.headers["Content-Security-Policy"] = self.content_security_policy
        response.headers["Strict-Transport-Security"] = (
            f"max-age={self.hsts_max_age}; includeSubDomains"
        )
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["Referrer-Policy"] = self.referrer_policy

        return response
