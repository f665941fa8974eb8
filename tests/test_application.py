"""
Tests for the Application: global middleware, error handling and wiring.
"""

import json
import logging

import pytest

from switchyard import (
    AppConfig,
    Application,
    Cache,
    Container,
    CorsMiddleware,
    InvalidHandlerError,
    Request,
    Response,
    Router,
)


class Stamp:
    def __init__(self, name="stamp"):
        self.name = name

    def process(self, request, next):
        response = next(request)
        return response.with_body(f"{response.body}|{self.name}")


class CodedError(Exception):
    code = 1042


class Broken:
    def process(self, request, next):
        raise RuntimeError("middleware exploded")


def explode(request):
    raise RuntimeError("handler <exploded>")


class TestRun:
    """Test request handling through Application.run."""

    def test_routes_registered_through_application(self, app):
        app.get("/hello/{name}", lambda request, name: f"Hello {name}")

        response = app.run(Request("GET", "/hello/ada"))

        assert response.status_code == 200
        assert response.body == "Hello ada"

    def test_decorator_through_application(self, app):
        @app.post("/items")
        def create(request):
            return Response.json(request.get_body(), 201)

        response = app.run(Request("POST", "/items", body={"name": "x"}))

        assert response.status_code == 201
        assert json.loads(response.body) == {"name": "x"}

    def test_unmatched_request(self, app):
        assert app.run(Request("GET", "/missing")).status_code == 404

    def test_global_middleware_wraps_route_middleware(self, app):
        app.add_global_middleware(Stamp("global-1")).add_global_middleware(Stamp("global-2"))
        app.middleware(Stamp("route")).get("/", lambda request: "h")

        assert app.run(Request("GET", "/")).body == "h|route|global-2|global-1"

    def test_global_middleware_runs_for_unmatched_routes(self, app):
        app.add_global_middleware(Stamp())

        response = app.run(Request("GET", "/missing"))

        assert response.status_code == 404
        assert response.body == "Route not found|stamp"

    def test_routes_callback(self, app):
        def load(router):
            router.get("/loaded", lambda request: "yes")

        app.routes(load)

        assert app.run(Request("GET", "/loaded")).body == "yes"

    def test_group_through_application(self, app):
        app.group({"prefix": "api"}, lambda r: r.get("/ping", lambda request: "pong"))

        assert app.run(Request("GET", "/api/ping")).body == "pong"

    def test_unknown_attribute(self, app):
        with pytest.raises(AttributeError, match="does not exist on Application or Router"):
            app.frobnicate

    def test_private_router_attributes_not_exposed(self, app):
        with pytest.raises(AttributeError):
            app._routes


class TestErrorHandling:
    """Test that failures become 500 responses."""

    def test_handler_exception_renders_html(self, app):
        app.get("/boom", explode)

        response = app.run(Request("GET", "/boom"))

        assert response.status_code == 500
        assert response.header("content-type") == "text/html; charset=utf-8"
        assert "Something went wrong" in response.body
        assert "exploded" not in response.body

    def test_debug_html_includes_details(self, debug_app):
        debug_app.get("/boom", explode)

        response = debug_app.run(Request("GET", "/boom"))

        assert response.status_code == 500
        assert "<h1>RuntimeError</h1>" in response.body
        assert "handler &lt;exploded&gt;" in response.body
        assert "Traceback" in response.body

    def test_json_request_gets_json_error(self, app):
        app.get("/boom", explode)

        response = app.run(Request("GET", "/boom", {"Content-Type": "application/json"}))

        assert response.status_code == 500
        assert response.header("content-type") == "application/json"
        assert json.loads(response.body) == {
            "error": "Internal Server Error",
            "message": "Something went wrong",
            "code": 0,
        }

    def test_json_error_in_debug_includes_message_and_code(self, debug_app):
        def coded(request):
            raise CodedError("bad thing")

        debug_app.get("/boom", coded)

        response = debug_app.run(Request("GET", "/boom", {"Content-Type": "application/json"}))

        assert json.loads(response.body) == {
            "error": "Internal Server Error",
            "message": "bad thing",
            "code": 1042,
        }

    def test_middleware_exception(self, app):
        app.add_global_middleware(Broken())

        assert app.run(Request("GET", "/")).status_code == 500

    def test_misconfiguration_is_500(self, app):
        app.get("/bad", (Container, "no_such_method"))

        assert app.run(Request("GET", "/bad")).status_code == 500

    def test_router_still_raises_directly(self, app):
        app.get("/bad", (Container, "no_such_method"))

        with pytest.raises(InvalidHandlerError):
            app.router.resolve(Request("GET", "/bad"))

    def test_exception_is_logged(self, app, caplog):
        app.get("/boom", explode)

        with caplog.at_level(logging.ERROR, logger="switchyard.application"):
            app.run(Request("GET", "/boom"))

        assert "Unhandled exception processing GET /boom" in caplog.text

    def test_handle_exception_without_request(self, app):
        response = app.handle_exception(ValueError("lost"))

        assert response.status_code == 500
        assert "Something went wrong" in response.body


class TestWiring:
    """Test container integration."""

    def test_core_instances_registered(self, app):
        assert app.make(Container) is app.container
        assert app.make(Application) is app
        assert app.make(Router) is app.router
        assert app.make(AppConfig) is app.config

    def test_uses_given_container(self):
        container = Container()

        app = Application(container, AppConfig())

        assert app.container is container
        assert container.make(Application) is app

    def test_container_shortcuts(self, app):
        app.singleton("clock", lambda c: object())
        app.bind("fresh", lambda c: object())
        app.instance("answer", 42)

        assert app.make("clock") is app.make("clock")
        assert app.make("fresh") is not app.make("fresh")
        assert app.make("answer") == 42

    def test_controller_receives_application(self, app):
        class StatusController:
            def __init__(self, application: Application):
                self.application = application

            def show(self, request):
                return {"debug": self.application.config.debug}

        app.get("/status", (StatusController, "show"))

        assert json.loads(app.run(Request("GET", "/status")).body) == {"debug": False}

    def test_cache_singleton_uses_config(self):
        app = Application(config=AppConfig(cache_prefix="shop"))

        cache = app.make(Cache)

        assert cache is app.make(Cache)
        assert cache.prefix == "shop"

    def test_cors_binding_enables_preflight(self, app):
        app.singleton(CorsMiddleware)

        response = app.run(Request("OPTIONS", "/anything", {"Origin": "https://app.example"}))

        assert response.header("Access-Control-Allow-Origin") == "https://app.example"

    def test_default_config_read_from_environment(self, monkeypatch):
        monkeypatch.setenv("APP_DEBUG", "1")

        assert Application().config.debug is True
