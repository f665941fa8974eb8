"""
Middleware capability and the chain runner shared by Router and Application.

A middleware is any object with a ``process(request, next)`` method::

    class Timing:
        def process(self, request: Request, next: Next) -> Response:
            start = time.monotonic()
            response = next(request)
            return response.with_header("X-Time", f"{time.monotonic() - start:.3f}")

``next`` runs the rest of the chain and returns its Response. A middleware
may skip it (short-circuit), return its result untouched (forward), or
transform it before returning (wrap). Wrapping happens in reverse order on
the way back: the last middleware's changes are applied first.
"""

import logging
from typing import Any, Callable, List, Protocol, Sequence, Union, runtime_checkable

from .container import Container, identifier
from .exceptions import InvalidMiddlewareError
from .models import Request, Response

logger = logging.getLogger(__name__)

# Runs the remainder of a chain
Next = Callable[[Request], Response]


@runtime_checkable
class Middleware(Protocol):
    """Protocol for switchyard middleware."""

    def process(self, request: Request, next: Next) -> Response: ...


# A container identifier (class or dotted path) or a ready instance
MiddlewareRef = Union[str, type, Middleware]


def normalize_middleware(middleware: Union[MiddlewareRef, Sequence[MiddlewareRef], None]) -> List[MiddlewareRef]:
    """Accept a single reference or a list of references and return a list."""
    if middleware is None:
        return []
    if isinstance(middleware, (list, tuple)):
        return list(middleware)
    return [middleware]


class MiddlewareChain:
    """Runs a list of middleware references around a terminal handler."""

    def __init__(self, container: Container):
        self.container = container

    def resolve(self, ref: Any) -> Middleware:
        """Turn a reference into a middleware instance.

        Raises:
            InvalidMiddlewareError: If the result has no ``process`` method.
        """
        if isinstance(ref, str) or isinstance(ref, type):
            instance = self.container.make(ref)
        else:
            instance = ref

        if not isinstance(instance, Middleware):
            name = identifier(ref) if isinstance(ref, (str, type)) else type(ref).__name__
            raise InvalidMiddlewareError(f"Middleware [{name}] must implement process(request, next).")
        return instance

    def run(self, middleware: Sequence[MiddlewareRef], request: Request, final: Next) -> Response:
        """Run ``middleware`` in order, ending with ``final``."""
        if not middleware:
            return final(request)

        head, tail = middleware[0], middleware[1:]
        instance = self.resolve(head)
        logger.debug(f"Entering middleware {type(instance).__name__}")

        def next_(next_request: Request) -> Response:
            return self.run(tail, next_request, final)

        return instance.process(request, next_)
