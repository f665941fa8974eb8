"""CORS (Cross-Origin Resource Sharing) support for switchyard.

Bind ``CorsMiddleware`` in the container to have the router answer
``OPTIONS`` preflight requests with CORS headers::

    container.singleton(CorsMiddleware, lambda c: CorsMiddleware(CORSConfig(
        allowed_origins=["https://app.example.com"],
        credentials=True,
    )))

The same middleware can also be attached to routes or registered as global
middleware to add CORS headers to regular responses.

References:
- WHATWG Fetch Standard: https://fetch.spec.whatwg.org/#http-cors-protocol
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .models import HTTPMethod, Request, Response


@dataclass
class CORSConfig:
    """Configuration for CORS.

    Attributes:
        allowed_origins: Allowed origins; ``"*"`` in the list allows any origin
            unless credentials are enabled.
        allowed_methods: Methods announced in preflight responses.
        allowed_headers: Request headers announced in preflight responses.
        exposed_headers: Response headers JavaScript may read.
        max_age: How long (seconds) a browser may cache a preflight response.
        credentials: Whether cookies and authorization headers are allowed.
            When True only explicitly listed origins are accepted.
    """

    allowed_origins: List[str] = field(default_factory=lambda: ["*"])
    allowed_methods: List[str] = field(default_factory=lambda: [
        "GET",
        "POST",
        "PUT",
        "PATCH",
        "DELETE",
        "OPTIONS",
    ])
    allowed_headers: List[str] = field(default_factory=lambda: [
        "Content-Type",
        "Authorization",
        "X-Requested-With",
        "X-CSRF-Token",
    ])
    exposed_headers: List[str] = field(default_factory=list)
    max_age: int = 86400
    credentials: bool = False

    def matches_origin(self, origin: Optional[str]) -> bool:
        """Check if the given origin is allowed.

        Args:
            origin: Origin header from the request, if any.
        """
        if self.credentials:
            return bool(origin) and origin in self.allowed_origins
        if "*" in self.allowed_origins:
            return True
        return bool(origin) and origin in self.allowed_origins


class CorsMiddleware:
    """Answers preflight requests and adds CORS headers to responses."""

    def __init__(self, config: Optional[CORSConfig] = None):
        self.config = config or CORSConfig()

    def process(self, request: Request, next) -> Response:
        origin = request.header("origin")

        if request.method == HTTPMethod.OPTIONS:
            return self._preflight(origin)

        return self._add_cors_headers(next(request), origin)

    def _preflight(self, origin: Optional[str]) -> Response:
        response = Response(200, "")

        if self.config.matches_origin(origin):
            response = response.with_header("Access-Control-Allow-Origin", origin or "*")

        response = (
            response
            .with_header("Access-Control-Allow-Methods", ", ".join(self.config.allowed_methods))
            .with_header("Access-Control-Allow-Headers", ", ".join(self.config.allowed_headers))
            .with_header("Access-Control-Max-Age", str(self.config.max_age))
        )

        if self.config.credentials:
            response = response.with_header("Access-Control-Allow-Credentials", "true")

        return response

    def _add_cors_headers(self, response: Response, origin: Optional[str]) -> Response:
        if self.config.matches_origin(origin):
            response = response.with_header("Access-Control-Allow-Origin", origin or "*")

        if self.config.exposed_headers:
            response = response.with_header("Access-Control-Expose-Headers", ", ".join(self.config.exposed_headers))

        if self.config.credentials:
            response = response.with_header("Access-Control-Allow-Credentials", "true")

        return response
