"""
Main application class for the switchyard framework.
"""

import html
import logging
import traceback
from typing import Any, Callable, List, Optional

from .cache import Cache
from .config import AppConfig
from .container import Container
from .error_models import ErrorResponse
from .middleware import MiddlewareChain, MiddlewareRef
from .models import Request, Response
from .router import Router
from .server import ASGIAdapter

# Set up logger for this module
logger = logging.getLogger(__name__)


class Application:
    """Wires a Container and a Router together and handles requests.

    The application owns the global middleware, which runs around every
    request before the router's route-specific middleware, and is the only
    place where exceptions from routing, middleware or handlers are caught.

    Route registration methods of the router are available directly on the
    application::

        app = Application()

        @app.get("/users/{id}")
        def show_user(request, id):
            return {"id": id}

        response = app.run(Request("GET", "/users/42"))
    """

    def __init__(self, container: Optional[Container] = None, config: Optional[AppConfig] = None):
        self.container = container if container is not None else Container()
        self.config = config if config is not None else AppConfig.from_env()
        self.router = Router(self.container)
        self._global_middleware: List[MiddlewareRef] = []
        self._chain = MiddlewareChain(self.container)
        self._asgi: Optional[ASGIAdapter] = None

        self._register_core_bindings()

    def _register_core_bindings(self):
        self.container.instance(Container, self.container)
        self.container.instance(Application, self)
        self.container.instance(Router, self.router)
        self.container.instance(AppConfig, self.config)
        self.container.singleton(Cache, lambda c: Cache.from_config(self.config.redis, self.config.cache_prefix))

    def add_global_middleware(self, middleware: MiddlewareRef) -> "Application":
        """Add middleware that runs around every request, in registration order."""
        self._global_middleware.append(middleware)
        return self

    def run(self, request: Request) -> Response:
        """Handle ``request`` and return a Response.

        Never raises: any exception is logged and rendered as a 500.
        """
        try:
            return self._chain.run(self._global_middleware, request, self.router.resolve)
        except Exception as e:
            return self.handle_exception(e, request)

    def handle_exception(self, exc: Exception, request: Optional[Request] = None) -> Response:
        """Log ``exc`` and render a 500 Response for it.

        JSON requests get an ``ErrorResponse`` body, everything else gets HTML.
        Exception details are only included when ``config.debug`` is set.
        """
        if request is not None:
            logger.exception(f"Unhandled exception processing {request.method.value} {request.path}: {exc}")
        else:
            logger.exception(f"Unhandled exception: {exc}")

        if request is not None and request.is_json():
            code = getattr(exc, "code", 0)
            error = ErrorResponse(
                error="Internal Server Error",
                message=str(exc) if self.config.debug else "Something went wrong",
                code=code if isinstance(code, int) else 0,
            )
            return Response(500, error.model_dump_json(), {"Content-Type": "application/json"})

        if self.config.debug:
            trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
            body = (
                f"<h1>{type(exc).__name__}</h1>"
                f"<p>{html.escape(str(exc))}</p>"
                f"<pre>{html.escape(trace)}</pre>"
            )
        else:
            body = "<h1>500 - Internal Server Error</h1><p>Something went wrong.</p>"

        return Response.html(body, 500)

    # Container shortcuts

    def bind(self, abstract: Any, concrete: Any = None, singleton: bool = False) -> None:
        self.container.bind(abstract, concrete, singleton)

    def singleton(self, abstract: Any, concrete: Any = None) -> None:
        self.container.singleton(abstract, concrete)

    def instance(self, abstract: Any, value: Any) -> None:
        self.container.instance(abstract, value)

    def make(self, abstract: Any) -> Any:
        return self.container.make(abstract)

    def routes(self, callback: Callable[[Router], Any]) -> None:
        """Call ``callback`` with the router, e.g. to load a routes module."""
        callback(self.router)

    def __getattr__(self, name: str):
        # Only reached when normal lookup fails: forward public router API
        router = self.__dict__.get("router")
        if router is not None and not name.startswith("_") and hasattr(router, name):
            return getattr(router, name)
        raise AttributeError(f"Method {name} does not exist on Application or Router")

    async def __call__(self, scope, receive, send):
        """ASGI entry point."""
        if self._asgi is None:
            self._asgi = ASGIAdapter(self)
        await self._asgi(scope, receive, send)
