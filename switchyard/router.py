"""Router: route registration, grouping, matching and dispatch."""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .container import Container
from .cors import CorsMiddleware
from .exceptions import InvalidMethodError
from .middleware import MiddlewareChain, MiddlewareRef, normalize_middleware
from .models import HTTPMethod, Request, Response
from .route import Route, RouteMatch

logger = logging.getLogger(__name__)

ANY_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")


@dataclass
class GroupFrame:
    """Shared attributes for the routes registered inside one ``group`` call."""

    prefix: Optional[str] = None
    middleware: List[MiddlewareRef] = field(default_factory=list)

    @classmethod
    def from_attributes(cls, attributes: Mapping[str, Any]) -> "GroupFrame":
        return cls(
            prefix=attributes.get("prefix"),
            middleware=normalize_middleware(attributes.get("middleware")),
        )


def coerce_response(result: Any) -> Response:
    """Turn a handler's return value into a Response.

    Responses pass through, mappings and sequences become JSON, strings become
    HTML and anything else is rendered as HTML text. None renders as an empty
    body.
    """
    if isinstance(result, Response):
        return result
    if isinstance(result, (dict, list, tuple)):
        return Response.json(result)
    if isinstance(result, str):
        return Response.html(result)
    if result is None:
        return Response.html("")
    return Response.html(str(result))


class Router:
    """Registers routes and resolves requests against them.

    Routes are tried in registration order and the first pattern that
    matches wins, regardless of how specific later patterns are. Register
    literal paths such as ``/items/new`` before ``/items/{id}`` if both are
    needed.

    Example::

        router = Router(container)
        router.get("/users/{id}", "app.controllers.UserController@show")

        def admin_routes(r):
            r.get("/stats", stats_handler)

        router.group({"prefix": "admin", "middleware": ["app.middleware.Auth"]}, admin_routes)

        @router.post("/users")
        def create_user(request):
            return {"created": True}
    """

    def __init__(self, container: Optional[Container] = None):
        self.container = container if container is not None else Container()
        self._routes: Dict[HTTPMethod, List[Route]] = {}
        self._middleware: List[MiddlewareRef] = []
        self._group_stack: List[GroupFrame] = []
        self._chain = MiddlewareChain(self.container)

    # Registration

    def get(self, path: str, handler: Any = None):
        """Register a GET route, or return a decorator when no handler is given."""
        return self.match(["GET"], path, handler)

    def post(self, path: str, handler: Any = None):
        """Register a POST route, or return a decorator when no handler is given."""
        return self.match(["POST"], path, handler)

    def put(self, path: str, handler: Any = None):
        """Register a PUT route, or return a decorator when no handler is given."""
        return self.match(["PUT"], path, handler)

    def patch(self, path: str, handler: Any = None):
        """Register a PATCH route, or return a decorator when no handler is given."""
        return self.match(["PATCH"], path, handler)

    def delete(self, path: str, handler: Any = None):
        """Register a DELETE route, or return a decorator when no handler is given."""
        return self.match(["DELETE"], path, handler)

    def options(self, path: str, handler: Any = None):
        """Register an OPTIONS route, or return a decorator when no handler is given."""
        return self.match(["OPTIONS"], path, handler)

    def any(self, path: str, handler: Any = None):
        """Register a route for GET, POST, PUT, PATCH, DELETE and OPTIONS."""
        return self.match(ANY_METHODS, path, handler)

    def match(self, methods: Iterable[Union[str, HTTPMethod]], path: str, handler: Any = None):
        """Register one route per method for ``path``.

        Staged middleware (see ``middleware``) applies to every route created
        by this call. Returns the route for the last method.

        Raises:
            InvalidMethodError: If ``methods`` is empty or names an unknown method.
        """
        parsed = self._parse_methods(methods)

        if handler is None:
            def decorator(func: Callable):
                self._register(parsed, path, func)
                return func

            return decorator

        return self._register(parsed, path, handler)

    def group(self, attributes: Mapping[str, Any], callback: Callable[["Router"], Any]) -> None:
        """Register routes sharing a path prefix and/or middleware.

        Args:
            attributes: Optional ``prefix`` (str) and ``middleware`` (a
                reference or list of references).
            callback: Called with this router; routes it registers inherit the
                group's attributes. Groups nest: prefixes and middleware
                accumulate from the outermost group inwards.
        """
        self._group_stack.append(GroupFrame.from_attributes(attributes))
        try:
            callback(self)
        finally:
            self._group_stack.pop()

    def middleware(self, middleware: Union[MiddlewareRef, List[MiddlewareRef]]) -> "Router":
        """Stage middleware for the next registered route only."""
        self._middleware.extend(normalize_middleware(middleware))
        return self

    @property
    def routes(self) -> Dict[HTTPMethod, Tuple[Route, ...]]:
        """Registered routes per method, in registration order."""
        return {method: tuple(routes) for method, routes in self._routes.items()}

    def _parse_methods(self, methods: Iterable[Union[str, HTTPMethod]]) -> List[HTTPMethod]:
        if isinstance(methods, (str, HTTPMethod)):
            methods = [methods]
        methods = list(methods)
        if not methods:
            raise InvalidMethodError("At least one HTTP method must be specified.")
        parsed = []
        for method in methods:
            try:
                parsed.append(HTTPMethod.parse(method))
            except ValueError:
                raise InvalidMethodError(f"Unsupported HTTP method [{method}].") from None
        return parsed

    def _register(self, methods: List[HTTPMethod], path: str, handler: Any) -> Route:
        full_path = self._group_prefix() + path
        middleware = self._group_middleware() + self._middleware

        route = None
        for method in methods:
            route = Route(method, full_path, handler, middleware)
            self._routes.setdefault(method, []).append(route)
            logger.debug(f"Registered route {method.value} {full_path}")

        self._middleware = []
        return route

    def _group_prefix(self) -> str:
        prefix = ""
        for frame in self._group_stack:
            if frame.prefix is not None:
                prefix += "/" + frame.prefix.strip("/")
        return prefix

    def _group_middleware(self) -> List[MiddlewareRef]:
        middleware: List[MiddlewareRef] = []
        for frame in self._group_stack:
            middleware.extend(frame.middleware)
        return middleware

    # Dispatch

    def find_route(self, method: Union[str, HTTPMethod], path: str) -> Optional[RouteMatch]:
        """Return the first route registered for ``method`` whose pattern matches ``path``."""
        for route in self._routes.get(HTTPMethod.parse(method), []):
            found = route.match(path)
            if found is not None:
                return found
        return None

    def resolve(self, request: Request) -> Response:
        """Dispatch ``request`` and return the Response.

        Unmatched requests get a 404 Response. Misconfigured middleware,
        handlers or container bindings raise.
        """
        if request.method == HTTPMethod.OPTIONS:
            return self._handle_options(request)

        found = self.find_route(request.method, request.path)
        if found is None:
            logger.debug(f"No route for {request.method.value} {request.path}")
            return Response.not_found("Route not found")

        request = request.with_path_params(found.parameters)

        def call_handler(final_request: Request) -> Response:
            return self._call_handler(found, final_request)

        return self._chain.run(found.route.middleware_stack, request, call_handler)

    def _call_handler(self, found: RouteMatch, request: Request) -> Response:
        action = found.route.handler.resolve(self.container)
        result = action(request, *found.parameters.values())
        return coerce_response(result)

    def _handle_options(self, request: Request) -> Response:
        if self.container.bound(CorsMiddleware):
            cors = self._chain.resolve(CorsMiddleware)
            return cors.process(request, lambda _request: Response(200, ""))
        return Response(200, "")
