"""
Custom exceptions for the switchyard framework.
"""


class SwitchyardError(Exception):
    """Base exception for switchyard errors."""

    pass


class ConfigurationError(SwitchyardError, ValueError):
    """Raised for programmer errors in routes, middleware or bindings.

    These are never turned into 404s. They propagate out of ``Router.resolve``
    and ``Container.make`` and are rendered as a 500 only by the application
    boundary.
    """

    pass


class InvalidMethodError(ConfigurationError):
    """Raised when a route is registered with no or unknown HTTP methods."""

    pass


class InvalidMiddlewareError(ConfigurationError):
    """Raised when a middleware slot holds something without ``process``."""

    pass


class InvalidHandlerError(ConfigurationError):
    """Raised when a route handler has an unsupported shape."""

    pass


class BindingResolutionError(ConfigurationError):
    """Raised when the container cannot build the requested identifier."""

    pass
