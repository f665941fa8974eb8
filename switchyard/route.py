"""
Route records, handler variants and path pattern compilation.
"""

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, List, Mapping, Optional, Pattern, Tuple, Union

from .container import Container
from .exceptions import InvalidHandlerError
from .middleware import MiddlewareRef, normalize_middleware
from .models import HTTPMethod

PLACEHOLDER = re.compile(r"\{([^}]+)\}")


def compile_pattern(path: str) -> Pattern:
    """Convert a path with ``{name}`` placeholders into an anchored regex.

    Each placeholder becomes one ``([^/]+)`` group; the text around the
    placeholders is matched literally.
    """
    pieces = []
    last = 0
    for placeholder in PLACEHOLDER.finditer(path):
        pieces.append(re.escape(path[last:placeholder.start()]))
        pieces.append("([^/]+)")
        last = placeholder.end()
    pieces.append(re.escape(path[last:]))
    return re.compile("^" + "".join(pieces) + "$")


def parameter_names(path: str) -> Tuple[str, ...]:
    """Placeholder names of ``path`` in declaration order."""
    return tuple(PLACEHOLDER.findall(path))


class CallableHandler:
    """A handler that is called directly."""

    def __init__(self, func: Callable):
        self.func = func

    def resolve(self, container: Container) -> Callable:
        return self.func

    def __repr__(self):
        return f"CallableHandler({getattr(self.func, '__qualname__', self.func)!r})"


class ControllerHandler:
    """A controller method, built through the container at dispatch time."""

    def __init__(self, controller: Union[str, type], method: str):
        self.controller = controller
        self.method = method

    def resolve(self, container: Container) -> Callable:
        """Build the controller and return the bound method.

        Raises:
            InvalidHandlerError: If the controller has no such callable method.
        """
        instance = container.make(self.controller)
        action = getattr(instance, self.method, None)
        if not callable(action):
            raise InvalidHandlerError(
                f"Controller [{type(instance).__name__}] has no callable method [{self.method}]."
            )
        return action

    def __repr__(self):
        return f"ControllerHandler({self.controller!r}, {self.method!r})"


Handler = Union[CallableHandler, ControllerHandler]


def make_handler(handler: Any) -> Handler:
    """Classify a route target.

    Accepted shapes are ``"module.Class@method"`` strings, ``(controller,
    "method")`` pairs whose controller is a class or dotted path, and any
    other callable.

    Raises:
        InvalidHandlerError: For every other shape.
    """
    if isinstance(handler, (CallableHandler, ControllerHandler)):
        return handler

    if isinstance(handler, str):
        controller, sep, method = handler.partition("@")
        if sep and controller and method:
            return ControllerHandler(controller, method)
        raise InvalidHandlerError(f"Invalid route handler [{handler}]: expected 'Controller@method'.")

    if isinstance(handler, (tuple, list)) and len(handler) == 2:
        controller, method = handler
        if isinstance(controller, (str, type)) and isinstance(method, str):
            return ControllerHandler(controller, method)

    if callable(handler):
        return CallableHandler(handler)

    raise InvalidHandlerError(f"Invalid route handler [{handler!r}].")


@dataclass(frozen=True)
class RouteMatch:
    """The result of matching one request path against a route."""

    route: "Route"
    parameters: Mapping[str, Optional[str]] = field(default_factory=dict)


class Route:
    """A registered method, path pattern, handler and middleware list.

    Routes hold no per-request state; matched parameters are returned in a
    new ``RouteMatch`` for every call to ``match``.
    """

    def __init__(self, method: HTTPMethod, path: str, handler: Any, middleware: Optional[List[MiddlewareRef]] = None):
        self.method = HTTPMethod.parse(method)
        self.path = path
        self.handler = make_handler(handler)
        self.middleware_stack: List[MiddlewareRef] = list(middleware or [])
        self.pattern = compile_pattern(path)
        self.parameter_names = parameter_names(path)

    def middleware(self, middleware: Union[MiddlewareRef, List[MiddlewareRef]]) -> "Route":
        """Append middleware to this route. Returns the route for chaining."""
        self.middleware_stack.extend(normalize_middleware(middleware))
        return self

    def matches(self, path: str) -> bool:
        return self.pattern.match(path) is not None

    def match(self, path: str) -> Optional[RouteMatch]:
        """Match ``path`` and extract its parameters.

        Names and captured values are paired by position. A name with no
        captured value at its position is bound to None.
        """
        found = self.pattern.match(path)
        if found is None:
            return None

        values = found.groups()
        parameters = {
            name: values[index] if index < len(values) else None
            for index, name in enumerate(self.parameter_names)
        }
        return RouteMatch(self, MappingProxyType(parameters))

    def __repr__(self):
        return f"Route({self.method.value} {self.path} -> {self.handler!r})"
