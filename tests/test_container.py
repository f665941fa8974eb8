"""
Tests for the dependency injection container.
"""

import abc
from typing import Optional, Protocol, Union

import pytest

from switchyard import BindingResolutionError, ConfigurationError, Container, CORSConfig, CorsMiddleware
from switchyard.container import Binding, identifier, import_string


class Engine:
    pass


class TurboEngine(Engine):
    pass


class Car:
    def __init__(self, engine: Engine):
        self.engine = engine


class Garage:
    def __init__(self, car: Car, capacity: int = 2):
        self.car = car
        self.capacity = capacity


class Greeter:
    def __init__(self, name: str):
        self.name = name


class Untyped:
    def __init__(self, thing):
        self.thing = thing


class UntypedWithDefault:
    def __init__(self, thing="fallback"):
        self.thing = thing


class EitherVehicle:
    def __init__(self, vehicle: Union[Car, Engine]):
        self.vehicle = vehicle


class Repository(abc.ABC):
    @abc.abstractmethod
    def find(self, key): ...


class SqlRepository(Repository):
    def find(self, key):
        return f"sql:{key}"


class Service:
    def __init__(self, repository: Repository):
        self.repository = repository


class OptionalService:
    def __init__(self, repository: Optional[Repository]):
        self.repository = repository


FALLBACK_REPOSITORY = SqlRepository()


class DefaultedService:
    def __init__(self, repository: Repository = FALLBACK_REPOSITORY):
        self.repository = repository


class Clock(Protocol):
    def now(self): ...


class Chicken:
    def __init__(self, egg: "Egg"):
        self.egg = egg


class Egg:
    def __init__(self, chicken: Chicken):
        self.chicken = chicken


class Collector:
    def __init__(self, engine: Engine, *args, **kwargs):
        self.engine = engine
        self.args = args
        self.kwargs = kwargs


class TestIdentifiers:
    """Test how classes and strings map to registry keys."""

    def test_class_identifier_is_dotted_path(self):
        assert identifier(Engine) == f"{__name__}.Engine"

    def test_string_identifier_is_unchanged(self):
        assert identifier("mailer") == "mailer"

    def test_other_identifiers_are_rejected(self):
        with pytest.raises(BindingResolutionError):
            identifier(42)

    def test_import_string_dotted(self):
        assert import_string("switchyard.cors.CorsMiddleware") is CorsMiddleware

    def test_import_string_colon(self):
        assert import_string("switchyard.cors:CORSConfig") is CORSConfig

    def test_import_string_missing(self):
        with pytest.raises(BindingResolutionError, match="does not exist"):
            import_string("switchyard.cors.NoSuchThing")


class TestBinding:
    """Test bind, singleton and instance registration."""

    def test_unbound_class_builds_new_instance_each_time(self, container):
        first = container.make(Engine)
        second = container.make(Engine)

        assert isinstance(first, Engine)
        assert first is not second

    def test_bind_to_subclass(self, container):
        container.bind(Engine, TurboEngine)

        assert isinstance(container.make(Engine), TurboEngine)

    def test_singleton_returns_same_instance(self, container):
        container.singleton(Engine)

        assert container.make(Engine) is container.make(Engine)

    def test_rebinding_discards_cached_singleton(self, container):
        container.bind("vehicle", Engine, singleton=True)
        cached = container.make("vehicle")
        assert container.make("vehicle") is cached

        container.bind("vehicle", TurboEngine)
        rebuilt = container.make("vehicle")

        assert isinstance(rebuilt, TurboEngine)
        assert rebuilt is not cached

    def test_instance_wins_over_binding(self, container):
        engine = Engine()
        container.bind(Engine, TurboEngine)
        container.instance(Engine, engine)

        assert container.make(Engine) is engine

    def test_factory_receives_container(self, container):
        container.bind("self", lambda c: c)

        assert container.make("self") is container

    def test_factory_singleton_called_once(self, container):
        calls = []

        def factory(c):
            calls.append(c)
            return Engine()

        container.singleton("engine", factory)
        container.make("engine")
        container.make("engine")

        assert len(calls) == 1

    def test_non_callable_concrete_returned_as_is(self, container):
        settings = {"name": "test"}
        container.bind("settings", settings)

        assert container.make("settings") is settings

    def test_string_concrete_is_imported(self, container):
        container.bind("cors", "switchyard.cors.CorsMiddleware")

        assert isinstance(container.make("cors"), CorsMiddleware)

    def test_class_and_dotted_string_share_binding(self, container):
        container.bind(f"{__name__}.Engine", TurboEngine)

        assert isinstance(container.make(Engine), TurboEngine)

    def test_bindings_property_is_a_copy(self, container):
        container.singleton(Engine)

        bindings = container.bindings
        bindings.clear()

        assert container.bindings[identifier(Engine)] == Binding(Engine, True)


class TestAutoWiring:
    """Test constructor injection from type hints."""

    def test_dependencies_resolved_recursively(self, container):
        garage = container.make(Garage)

        assert isinstance(garage.car, Car)
        assert isinstance(garage.car.engine, Engine)
        assert garage.capacity == 2

    def test_bindings_apply_to_nested_dependencies(self, container):
        container.bind(Engine, TurboEngine)

        assert isinstance(container.make(Garage).car.engine, TurboEngine)

    def test_singleton_dependency_is_shared(self, container):
        container.singleton(Engine)

        assert container.make(Car).engine is container.make(Car).engine

    def test_abstract_dependency_uses_binding(self, container):
        container.bind(Repository, SqlRepository)

        service = container.make(Service)

        assert service.repository.find(1) == "sql:1"

    def test_variadic_parameters_are_skipped(self, container):
        collector = container.make(Collector)

        assert isinstance(collector.engine, Engine)
        assert collector.args == ()
        assert collector.kwargs == {}

    def test_string_class_identifier_is_autowired(self, container):
        car = container.make(f"{__name__}.Car")

        assert isinstance(car.engine, Engine)

    def test_dataclass_defaults_are_used(self, container):
        middleware = container.make(CorsMiddleware)

        assert middleware.config.allowed_origins == ["*"]
        assert middleware.config.max_age == 86400


class TestResolutionFallbacks:
    """Test defaults, nullability and failure cases."""

    def test_builtin_without_default_fails(self, container):
        with pytest.raises(BindingResolutionError, match=r"\[name\]"):
            container.make(Greeter)

    def test_untyped_without_default_fails(self, container):
        with pytest.raises(BindingResolutionError, match="no type hint"):
            container.make(Untyped)

    def test_untyped_with_default_uses_default(self, container):
        assert container.make(UntypedWithDefault).thing == "fallback"

    def test_union_fails(self, container):
        with pytest.raises(BindingResolutionError, match="union"):
            container.make(EitherVehicle)

    def test_abstract_class_not_instantiable(self, container):
        with pytest.raises(BindingResolutionError, match="not instantiable"):
            container.make(Repository)

    def test_protocol_not_instantiable(self, container):
        with pytest.raises(BindingResolutionError, match="not instantiable"):
            container.make(Clock)

    def test_unresolvable_dependency_propagates(self, container):
        with pytest.raises(BindingResolutionError, match="not instantiable"):
            container.make(Service)

    def test_optional_dependency_falls_back_to_none(self, container):
        assert container.make(OptionalService).repository is None

    def test_default_used_when_dependency_fails(self, container):
        assert container.make(DefaultedService).repository is FALLBACK_REPOSITORY

    def test_missing_class(self, container):
        with pytest.raises(BindingResolutionError, match="does not exist"):
            container.make("switchyard.nowhere.Missing")

    def test_circular_dependency(self, container):
        with pytest.raises(BindingResolutionError, match="Circular dependency"):
            container.make(Chicken)

    def test_container_usable_after_failure(self, container):
        with pytest.raises(BindingResolutionError):
            container.make(Chicken)

        assert isinstance(container.make(Car), Car)

    def test_errors_are_configuration_errors(self, container):
        with pytest.raises(ConfigurationError):
            container.make(Greeter)
        with pytest.raises(ValueError):
            container.make(Greeter)


class TestIntrospection:
    """Test has, bound and flush."""

    def test_bound_only_for_registered(self, container):
        assert not container.bound(Engine)

        container.bind(Engine)

        assert container.bound(Engine)

    def test_bound_for_instance(self, container):
        container.instance("answer", 42)

        assert container.bound("answer")
        assert container.make("answer") == 42

    def test_has_for_classes_and_importable_strings(self, container):
        assert container.has(Engine)
        assert container.has("switchyard.cors.CorsMiddleware")
        assert not container.has("switchyard.cors.Nope")
        assert not container.has("mailer")

    def test_has_for_bound_string(self, container):
        container.bind("mailer", lambda c: object())

        assert container.has("mailer")

    def test_has_is_false_for_non_class_target(self, container):
        assert not container.has("switchyard.router.coerce_response")

    def test_invalid_identifiers_are_not_registered(self, container):
        assert not container.has(42)
        assert not container.bound(42)
        assert not container.has(None)
        assert not container.has(".Relative")

    def test_flush(self, container):
        container.singleton(Engine)
        container.instance("answer", 42)

        container.flush()

        assert not container.bound(Engine)
        assert not container.bound("answer")
        assert container.bindings == {}
