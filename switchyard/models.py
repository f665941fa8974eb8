"""
Core data models for the switchyard framework.
"""

import ipaddress
import json
from dataclasses import dataclass, field, replace
from email.utils import formatdate
from enum import Enum
from http import HTTPStatus
from typing import Any, Dict, Mapping, Optional
from urllib.parse import parse_qsl, urlencode


class HTTPMethod(Enum):
    """Enumeration of supported HTTP methods."""

    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    OPTIONS = "OPTIONS"

    @classmethod
    def parse(cls, value: Any) -> "HTTPMethod":
        """Convert a method name (any case) or an HTTPMethod into an HTTPMethod.

        Raises:
            ValueError: If the name is not a supported method.
        """
        if isinstance(value, cls):
            return value
        return cls(str(value).upper())


def _lower_keys(headers: Optional[Mapping[str, str]]) -> Dict[str, str]:
    return {str(name).lower(): value for name, value in (headers or {}).items()}


@dataclass(frozen=True)
class Request:
    """Represents an HTTP request.

    Header names are stored lower-cased so lookups are case-insensitive. A
    query string embedded in ``path`` is split off into ``query_params`` when
    those are not given explicitly.
    """

    method: HTTPMethod
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    query_params: Optional[Dict[str, Any]] = None
    cookies: Dict[str, str] = field(default_factory=dict)
    files: Dict[str, Any] = field(default_factory=dict)
    server: Dict[str, Any] = field(default_factory=dict)
    path_params: Dict[str, Optional[str]] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "method", HTTPMethod.parse(self.method))
        object.__setattr__(self, "headers", _lower_keys(self.headers))

        # A leading "//" is part of the path, not a network location
        path, _, query = self.path.partition("?")
        object.__setattr__(self, "path", path or "/")
        if self.query_params is None:
            object.__setattr__(self, "query_params", dict(parse_qsl(query, keep_blank_values=True)))

    def with_path_params(self, path_params: Mapping[str, Optional[str]]) -> "Request":
        """Return a copy of this request carrying the matched route parameters."""
        return replace(self, path_params=dict(path_params))

    @property
    def uri(self) -> str:
        """Path plus query string."""
        if not self.query_params:
            return self.path
        return f"{self.path}?{urlencode(self.query_params)}"

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get a header value by case-insensitive name."""
        return self.headers.get(name.lower(), default)

    def get_content_type(self) -> Optional[str]:
        """Get the Content-Type header."""
        return self.header("content-type")

    def get_query(self, key: Optional[str] = None, default: Any = None) -> Any:
        """Get one query parameter, or all of them when ``key`` is None."""
        if key is None:
            return self.query_params
        return self.query_params.get(key, default)

    def get_body(self, key: Optional[str] = None, default: Any = None) -> Any:
        """Get one field of a mapping body, or the whole body when ``key`` is None."""
        if key is None:
            return self.body
        if isinstance(self.body, Mapping):
            return self.body.get(key, default)
        return default

    def cookie(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.cookies.get(name, default)

    def file(self, key: str) -> Optional[Any]:
        return self.files.get(key)

    def is_json(self) -> bool:
        return "application/json" in (self.get_content_type() or "")

    def is_ajax(self) -> bool:
        return (self.header("x-requested-with") or "").lower() == "xmlhttprequest"

    def is_secure(self) -> bool:
        """Check whether the request arrived over HTTPS, directly or via a proxy."""
        if str(self.server.get("HTTPS", "off")).lower() not in ("off", ""):
            return True
        if str(self.server.get("SERVER_PORT", 80)) == "443":
            return True
        return (self.header("x-forwarded-proto") or "").lower() == "https"

    def client_ip(self) -> str:
        """Get the client address, preferring the first public address from proxy headers."""
        for key in ("HTTP_X_FORWARDED_FOR", "HTTP_X_REAL_IP", "HTTP_CLIENT_IP", "REMOTE_ADDR"):
            raw = self.server.get(key)
            if not raw:
                continue
            candidate = str(raw).split(",")[0].strip()
            try:
                if ipaddress.ip_address(candidate).is_global:
                    return candidate
            except ValueError:
                continue
        return self.server.get("REMOTE_ADDR", "127.0.0.1")


@dataclass(frozen=True)
class Cookie:
    """A cookie to be sent with a response."""

    value: str
    expires: int = 0
    path: str = "/"
    domain: str = ""
    secure: bool = False
    http_only: bool = True
    same_site: str = "Lax"

    def to_header(self, name: str) -> str:
        """Render this cookie as a ``Set-Cookie`` header value."""
        parts = [f"{name}={self.value}"]
        if self.expires:
            parts.append(f"Expires={formatdate(self.expires, usegmt=True)}")
        if self.path:
            parts.append(f"Path={self.path}")
        if self.domain:
            parts.append(f"Domain={self.domain}")
        if self.secure:
            parts.append("Secure")
        if self.http_only:
            parts.append("HttpOnly")
        if self.same_site:
            parts.append(f"SameSite={self.same_site}")
        return "; ".join(parts)


@dataclass(frozen=True)
class Response:
    """Represents an HTTP response.

    Responses are values: the ``with_*`` methods return modified copies and
    leave the original untouched, so middleware can annotate a response on
    the way back up the chain without affecting anyone else holding it.
    """

    status_code: int = 200
    body: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    cookies: Dict[str, Cookie] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "headers", _lower_keys(self.headers))

    @classmethod
    def json(cls, data: Any, status_code: int = 200, headers: Optional[Dict[str, str]] = None) -> "Response":
        """Create a JSON response."""
        headers = dict(headers or {})
        headers["content-type"] = "application/json"
        return cls(status_code, json.dumps(data), headers)

    @classmethod
    def html(cls, html: str, status_code: int = 200, headers: Optional[Dict[str, str]] = None) -> "Response":
        """Create an HTML response."""
        headers = dict(headers or {})
        headers["content-type"] = "text/html; charset=utf-8"
        return cls(status_code, html, headers)

    @classmethod
    def redirect(cls, url: str, status_code: int = 302) -> "Response":
        return cls(status_code, "", {"location": url})

    @classmethod
    def not_found(cls, message: str = "Not Found") -> "Response":
        return cls.html(message, 404)

    @classmethod
    def server_error(cls, message: str = "Internal Server Error") -> "Response":
        return cls.html(message, 500)

    @classmethod
    def unauthorized(cls, message: str = "Unauthorized") -> "Response":
        return cls.html(message, 401)

    @classmethod
    def forbidden(cls, message: str = "Forbidden") -> "Response":
        return cls.html(message, 403)

    @classmethod
    def bad_request(cls, message: str = "Bad Request") -> "Response":
        return cls.html(message, 400)

    @classmethod
    def too_many_requests(cls, message: str = "Too Many Requests") -> "Response":
        return cls.html(message, 429)

    @property
    def status_text(self) -> str:
        try:
            return HTTPStatus(self.status_code).phrase
        except ValueError:
            return "Unknown Status"

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get a header value by case-insensitive name."""
        return self.headers.get(name.lower(), default)

    def with_status(self, status_code: int) -> "Response":
        return replace(self, status_code=status_code)

    def with_header(self, name: str, value: str) -> "Response":
        headers = dict(self.headers)
        headers[name.lower()] = value
        return replace(self, headers=headers)

    def with_body(self, body: str) -> "Response":
        return replace(self, body=body)

    def with_cookie(
        self,
        name: str,
        value: str,
        expires: int = 0,
        path: str = "/",
        domain: str = "",
        secure: bool = False,
        http_only: bool = True,
        same_site: str = "Lax",
    ) -> "Response":
        """Return a copy of this response that also sets the given cookie."""
        cookies = dict(self.cookies)
        cookies[name] = Cookie(value, expires, path, domain, secure, http_only, same_site)
        return replace(self, cookies=cookies)

    def is_successful(self) -> bool:
        return 200 <= self.status_code < 300

    def is_redirect(self) -> bool:
        return 300 <= self.status_code < 400

    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500

    def is_server_error(self) -> bool:
        return self.status_code >= 500
