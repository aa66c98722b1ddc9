"""
Shared fixtures for the host tests.

- ``host_for``: a HostConfiguration over controller classes defined in a test
- ``settings`` / ``resolver`` / ``app`` / ``client``: a full application over
  the ``library_controllers`` fixture package
"""

import types
from typing import List

import pytest
from fastapi.testclient import TestClient

from booklibrary.web.config import Settings
from booklibrary.web.controllers.health import HealthController
from booklibrary.web.hosting import (
    ContainerDependencyResolver,
    HostConfiguration,
    ModulesResolver,
    RouteParameter,
    ServiceRegistry,
)
from booklibrary.web.main import create_app
from library_controllers.authors import AuthorsController
from library_controllers.books import BooksController
from library_controllers.models import BookRepository

CONTROLLER_PACKAGES = ["booklibrary.web.controllers", "library_controllers"]


class StaticModulesResolver(ModulesResolver):
    """Serves a fixed list of modules."""

    def __init__(self, modules: List[types.ModuleType]):
        self.modules = modules

    def get_modules(self) -> List[types.ModuleType]:
        return list(self.modules)


def make_module(name: str, *controller_types: type) -> types.ModuleType:
    module = types.ModuleType(name)
    for controller_type in controller_types:
        controller_type.__module__ = name
        setattr(module, controller_type.__name__, controller_type)
    return module


# ============================================================================
# HOST CONFIGURATION
# ============================================================================


@pytest.fixture
def host_for():
    """Build a HostConfiguration whose only controllers are the given classes."""

    def build(*controller_types: type, default_route: bool = True) -> HostConfiguration:
        config = HostConfiguration(controller_packages=[])
        config.services.replace(
            ModulesResolver,
            StaticModulesResolver([make_module("test_controllers", *controller_types)]),
        )
        config.map_http_attribute_routes()
        if default_route:
            config.routes.map_http_route(
                name="DefaultApi",
                route_template="api/{controller}/{id}",
                defaults={"id": RouteParameter.OPTIONAL},
            )
        return config

    return build


# ============================================================================
# APPLICATION
# ============================================================================


@pytest.fixture
def settings() -> Settings:
    return Settings(
        app_name="Book Library Test",
        environment="development",
        controller_packages=CONTROLLER_PACKAGES,
        log_level="WARNING",
        metrics_enabled=True,
    )


@pytest.fixture
def repository() -> BookRepository:
    return BookRepository()


@pytest.fixture
def resolver(settings: Settings, repository: BookRepository) -> ContainerDependencyResolver:
    registry = ServiceRegistry()
    registry.add_instance(Settings, settings)
    registry.add_instance(BookRepository, repository)
    registry.add_scoped(HealthController, lambda scope: HealthController(scope.get_service(Settings)))
    registry.add_scoped(BooksController, lambda scope: BooksController(scope.get_service(BookRepository)))
    registry.add_scoped(AuthorsController, lambda scope: AuthorsController(scope.get_service(BookRepository)))
    return ContainerDependencyResolver(registry)


@pytest.fixture
def app(settings: Settings, resolver: ContainerDependencyResolver):
    return create_app(settings, resolver)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
