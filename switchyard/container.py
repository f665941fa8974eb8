"""
Dependency injection container for the switchyard framework.

Identifiers are either classes or strings. A class is registered under its
dotted path (``module.QualName``), so ``bind(UserRepository, ...)`` and
``bind("app.repos.UserRepository", ...)`` address the same entry. Unbound
identifiers are built directly: strings are imported, classes are
instantiated with their constructor parameters resolved recursively from
their type hints.
"""

import importlib
import inspect
import logging
import types
from dataclasses import dataclass
from typing import Any, Dict, List, Union, get_args, get_origin, get_type_hints

from .exceptions import BindingResolutionError

logger = logging.getLogger(__name__)

_NOTHING = object()


@dataclass(frozen=True)
class Binding:
    """A registered resolution strategy for an identifier."""

    concrete: Any
    singleton: bool = False


def identifier(abstract: Any) -> str:
    """Return the registry key for a class or string identifier."""
    if isinstance(abstract, str):
        return abstract
    if inspect.isclass(abstract):
        return f"{abstract.__module__}.{abstract.__qualname__}"
    raise BindingResolutionError(f"Identifier must be a class or a string, got {type(abstract).__name__}")


def import_string(path: str) -> Any:
    """Import an object from ``module.attr`` or ``module:attr`` notation.

    Raises:
        BindingResolutionError: If no module prefix of ``path`` can be imported
            or the attribute does not exist on it.
    """
    if ":" in path:
        module_name, _, attr_path = path.partition(":")
        candidates = [(module_name, attr_path.split("."))]
    else:
        parts = path.split(".")
        candidates = [(".".join(parts[:i]), parts[i:]) for i in range(len(parts) - 1, 0, -1)]

    for module_name, attrs in candidates:
        try:
            target = importlib.import_module(module_name)
        except (ModuleNotFoundError, ValueError):
            continue
        try:
            for attr in attrs:
                target = getattr(target, attr)
        except AttributeError:
            continue
        return target

    raise BindingResolutionError(f"Target class [{path}] does not exist.")


def _is_builtin(annotation: Any) -> bool:
    """Check whether a type hint names a primitive the container cannot build."""
    if annotation is Any or get_origin(annotation) is not None:
        return True
    if inspect.isclass(annotation):
        return annotation.__module__ == "builtins"
    # TypeVars, NewTypes and other typing constructs
    return not isinstance(annotation, str)


class Container:
    """Registry that resolves identifiers to instances.

    Resolution order for ``make``: a registered instance always wins, then the
    binding's concrete target, then the identifier itself. Singleton bindings
    cache the first instance they build.
    """

    def __init__(self):
        self._bindings: Dict[str, Binding] = {}
        self._instances: Dict[str, Any] = {}
        self._building: List[str] = []

    def bind(self, abstract: Any, concrete: Any = None, singleton: bool = False) -> None:
        """Register how ``abstract`` is built.

        Args:
            abstract: Class or string identifier.
            concrete: Class, dotted class path, or factory called with the
                container. Defaults to ``abstract`` itself.
            singleton: Cache the first built instance.

        Rebinding discards any instance cached for ``abstract``.
        """
        key = identifier(abstract)
        if concrete is None:
            concrete = abstract
        self._bindings[key] = Binding(concrete, singleton)
        self._instances.pop(key, None)

    def singleton(self, abstract: Any, concrete: Any = None) -> None:
        """Register a shared binding. Shorthand for ``bind(..., singleton=True)``."""
        self.bind(abstract, concrete, True)

    def instance(self, abstract: Any, value: Any) -> None:
        """Register an already-built value for ``abstract``."""
        self._instances[identifier(abstract)] = value

    def make(self, abstract: Any) -> Any:
        """Resolve ``abstract`` to an instance.

        Raises:
            BindingResolutionError: If the target does not exist, is not
                instantiable, or has constructor parameters that cannot be
                resolved.
        """
        key = identifier(abstract)
        if key in self._instances:
            return self._instances[key]

        binding = self._bindings.get(key)
        concrete = binding.concrete if binding is not None else abstract

        if key in self._building:
            chain = " -> ".join(self._building + [key])
            raise BindingResolutionError(f"Circular dependency while resolving [{chain}].")

        self._building.append(key)
        try:
            obj = self._build(concrete)
        finally:
            self._building.pop()

        if binding is not None and binding.singleton:
            self._instances[key] = obj

        logger.debug(f"Resolved {key} to {type(obj).__name__}")
        return obj

    def has(self, abstract: Any) -> bool:
        """Check whether ``abstract`` is registered or names an importable class."""
        if self.bound(abstract) or inspect.isclass(abstract):
            return True
        if not isinstance(abstract, str):
            return False
        try:
            return inspect.isclass(import_string(abstract))
        except BindingResolutionError:
            return False

    def bound(self, abstract: Any) -> bool:
        """Check whether ``abstract`` has a binding or a registered instance."""
        try:
            key = identifier(abstract)
        except BindingResolutionError:
            return False
        return key in self._bindings or key in self._instances

    @property
    def bindings(self) -> Dict[str, Binding]:
        return dict(self._bindings)

    def flush(self) -> None:
        """Forget every binding and instance."""
        self._bindings.clear()
        self._instances.clear()

    def _build(self, concrete: Any) -> Any:
        if isinstance(concrete, str):
            concrete = import_string(concrete)

        if inspect.isclass(concrete):
            return self._instantiate(concrete)

        if callable(concrete):
            return concrete(self)

        return concrete

    def _instantiate(self, cls: type) -> Any:
        name = identifier(cls)
        if inspect.isabstract(cls) or getattr(cls, "_is_protocol", False):
            raise BindingResolutionError(f"Target [{name}] is not instantiable.")

        if cls.__init__ is object.__init__:
            return cls()

        try:
            hints = get_type_hints(cls.__init__)
        except (NameError, TypeError):
            hints = {}

        args: List[Any] = []
        kwargs: Dict[str, Any] = {}
        parameters = list(inspect.signature(cls.__init__).parameters.values())[1:]
        for param in parameters:
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            annotation = hints.get(param.name, param.annotation)
            value = self._resolve_parameter(name, param, annotation)
            if param.kind == param.POSITIONAL_ONLY:
                args.append(value)
            else:
                kwargs[param.name] = value

        return cls(*args, **kwargs)

    def _resolve_parameter(self, owner: str, param: inspect.Parameter, annotation: Any) -> Any:
        default = _NOTHING if param.default is param.empty else param.default

        if annotation is param.empty:
            if default is not _NOTHING:
                return default
            raise BindingResolutionError(
                f"Unresolvable dependency [{param.name}] in class {owner}: parameter has no type hint."
            )

        allows_null = default is None
        if get_origin(annotation) in (Union, types.UnionType):
            members = [arg for arg in get_args(annotation) if arg is not type(None)]
            if len(members) > 1:
                raise BindingResolutionError(
                    f"Unresolvable dependency [{param.name}] in class {owner}: union types cannot be resolved."
                )
            annotation = members[0]
            allows_null = True

        if _is_builtin(annotation):
            if default is not _NOTHING:
                return default
            raise BindingResolutionError(
                f"Unresolvable dependency [{param.name}] in class {owner}: "
                f"built-in type {getattr(annotation, '__name__', annotation)!s} has no default."
            )

        try:
            return self.make(annotation)
        except BindingResolutionError:
            if default is not _NOTHING:
                return default
            if allows_null:
                return None
            raise

