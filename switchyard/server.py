"""
ASGI adapter for switchyard applications.

The adapter converts between the ASGI protocol and switchyard Request/Response
values while the application itself stays synchronous.
"""

import json
import logging
import urllib.parse
from http.cookies import CookieError, SimpleCookie
from typing import Any, Dict, List, Optional

from .models import HTTPMethod, Request, Response

logger = logging.getLogger(__name__)


class ASGIAdapter:
    """
    ASGI adapter around any object with a ``run(request) -> Response`` method,
    normally an ``Application``.
    """

    def __init__(self, app):
        """Initialize the ASGI adapter with a switchyard application."""
        self.app = app

    async def __call__(self, scope: Dict[str, Any], receive, send):
        """ASGI application entry point."""
        if scope["type"] != "http":
            # Only handle HTTP requests
            await self._send_response(Response(404, "Not Found", {"Content-Type": "text/plain"}), send)
            return

        body = await self._read_body(receive)

        try:
            request = self._asgi_to_request(scope, body)
        except ValueError:
            logger.debug(f"Unsupported method {scope.get('method')} for {scope.get('path')}")
            response = Response(405, "Method Not Allowed", {"Content-Type": "text/plain"})
        else:
            response = self.app.run(request)

        await self._send_response(response, send)

    async def _read_body(self, receive) -> bytes:
        body = b""
        more_body = True
        while more_body:
            message = await receive()
            body += message.get("body", b"")
            more_body = message.get("more_body", False)
        return body

    def _asgi_to_request(self, scope: Dict[str, Any], body: bytes) -> Request:
        """Convert an ASGI scope and body to a Request.

        Raises:
            ValueError: If the HTTP method is not supported.
        """
        method = HTTPMethod.parse(scope["method"])
        query_string = scope.get("query_string", b"").decode("utf-8")

        # Repeated headers are joined with a comma, per RFC 9110
        headers: Dict[str, str] = {}
        for header_name, header_value in scope.get("headers", []):
            name = header_name.decode("latin-1").lower()
            value = header_value.decode("latin-1")
            headers[name] = f"{headers[name]}, {value}" if name in headers else value

        return Request(
            method=method,
            path=scope["path"],
            headers=headers,
            body=parse_body(body, headers.get("content-type", "")),
            query_params=dict(urllib.parse.parse_qsl(query_string, keep_blank_values=True)),
            cookies=parse_cookies(headers.get("cookie")),
            server=self._server_vars(scope),
        )

    def _server_vars(self, scope: Dict[str, Any]) -> Dict[str, Any]:
        server: Dict[str, Any] = {}
        client = scope.get("client")
        if client:
            server["REMOTE_ADDR"] = client[0]
        host = scope.get("server")
        if host:
            server["SERVER_NAME"], server["SERVER_PORT"] = host[0], host[1]
        if scope.get("scheme") == "https":
            server["HTTPS"] = "on"
        return server

    async def _send_response(self, response: Response, send):
        """Convert a Response to ASGI messages."""
        body = response.body.encode("utf-8") if response.body else b""

        headers: List[List[bytes]] = [
            [name.encode("latin-1"), str(value).encode("latin-1")]
            for name, value in response.headers.items()
            if name != "content-length"
        ]
        for name, cookie in response.cookies.items():
            headers.append([b"set-cookie", cookie.to_header(name).encode("latin-1")])

        # Always set Content-Length to match actual body length
        headers.append([b"content-length", str(len(body)).encode("latin-1")])

        await send({
            "type": "http.response.start",
            "status": response.status_code,
            "headers": headers,
        })

        await send({
            "type": "http.response.body",
            "body": body,
        })


def parse_body(body: bytes, content_type: str) -> Any:
    """Decode a request body.

    JSON bodies become the decoded value (an empty dict when invalid), form
    bodies become a dict and anything else is returned as text.
    """
    if not body:
        return None

    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError:
        # If it can't be decoded as UTF-8, use latin-1 as fallback
        text = body.decode("latin-1")

    base_type = content_type.split(";")[0].strip().lower()
    if base_type == "application/json":
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return {}
    if base_type == "application/x-www-form-urlencoded":
        return dict(urllib.parse.parse_qsl(text, keep_blank_values=True))
    return text


def parse_cookies(header: Optional[str]) -> Dict[str, str]:
    """Parse a ``Cookie`` request header into a dict."""
    if not header:
        return {}
    jar = SimpleCookie()
    try:
        jar.load(header)
    except CookieError:
        return {}
    return {name: morsel.value for name, morsel in jar.items()}


def create_asgi_app(app) -> ASGIAdapter:
    """
    Create an ASGI application from a switchyard application.

    Args:
        app: The switchyard application to wrap

    Returns:
        An ASGI-compatible application
    """
    return ASGIAdapter(app)


def serve(app, host: str = "127.0.0.1", port: int = 8000, **kwargs) -> None:
    """Run ``app`` with uvicorn.

    Requires the ``server`` extra (``pip install switchyard[server]``).
    """
    import uvicorn

    logger.info(f"Starting uvicorn on {host}:{port}")
    uvicorn.run(create_asgi_app(app), host=host, port=port, **kwargs)
