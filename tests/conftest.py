"""
Shared pytest fixtures for switchyard tests.
"""

import pytest

from switchyard import AppConfig, Application, Container, Router


@pytest.fixture
def container():
    """A fresh, empty container."""
    return Container()


@pytest.fixture
def router(container):
    """A router backed by the ``container`` fixture."""
    return Router(container)


@pytest.fixture
def app():
    """An application with fixed settings, independent of the environment."""
    return Application(config=AppConfig())


@pytest.fixture
def debug_app():
    """An application that renders exception details."""
    return Application(config=AppConfig(debug=True))
