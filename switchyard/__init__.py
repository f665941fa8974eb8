"""
A minimal synchronous web micro-framework with a first-match router,
continuation-passing middleware, and a reflective dependency-injection
container.

Requests flow through the application's global middleware, then the router
matches a route, binds its path parameters onto the request, and runs the
route's middleware around the handler. Handlers and middleware given as
identifiers are built by the container, which auto-wires constructor
parameters from their type hints.
"""

from .application import Application
from .cache import Cache, TenantCache
from .config import AppConfig, RedisConfig
from .container import Container
from .cors import CORSConfig, CorsMiddleware
from .error_models import ErrorResponse
from .exceptions import (
    BindingResolutionError,
    ConfigurationError,
    InvalidHandlerError,
    InvalidMethodError,
    InvalidMiddlewareError,
    SwitchyardError,
)
from .middleware import Middleware, MiddlewareChain, Next
from .models import Cookie, HTTPMethod, Request, Response
from .route import Route, RouteMatch
from .router import Router
from .server import create_asgi_app, serve

__version__ = "0.1.0"
__license__ = "MIT"

__all__ = [
    "Application",
    "Router",
    "Route",
    "RouteMatch",
    "Container",
    "Middleware",
    "MiddlewareChain",
    "Next",
    "Request",
    "Response",
    "Cookie",
    "HTTPMethod",
    "CORSConfig",
    "CorsMiddleware",
    "AppConfig",
    "RedisConfig",
    "Cache",
    "TenantCache",
    "ErrorResponse",
    "SwitchyardError",
    "ConfigurationError",
    "InvalidMethodError",
    "InvalidMiddlewareError",
    "InvalidHandlerError",
    "BindingResolutionError",
    "create_asgi_app",
    "serve",
]
