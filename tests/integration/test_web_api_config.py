"""
Integration tests for startup registration.

Tests cover:
- The dependency resolver stored by register
- The replacement modules resolver and its equivalence to the default one
- The JSON contract resolver
- Tracing level
- The DefaultApi route and the route data it produces
- Registration failures aborting startup
"""

import pytest

from booklibrary.web.hosting import (
    ConfigurationFrozenError,
    ContainerDependencyResolver,
    DefaultContractResolver,
    DefaultModulesResolver,
    EmptyResolver,
    HostConfiguration,
    ModulesResolver,
    RouteParameter,
    ServiceRegistry,
    SystemDiagnosticsTraceWriter,
    TraceLevel,
)
from booklibrary.web.web_api_config import LibraryModulesResolver, register
from library_controllers.books import BooksController

PACKAGES = ["booklibrary.web.controllers", "library_controllers"]


@pytest.fixture
def resolver():
    return ContainerDependencyResolver(ServiceRegistry())


@pytest.fixture
def config(resolver):
    config = HostConfiguration(controller_packages=PACKAGES)
    register(config, resolver)
    return config


class TestRegister:
    """Test the configuration produced by register."""

    def test_dependency_resolver_is_the_one_supplied(self, config, resolver):
        assert config.dependency_resolver is resolver

    def test_any_resolver_is_accepted(self):
        config = HostConfiguration(controller_packages=PACKAGES)
        resolver = EmptyResolver()

        register(config, resolver)

        assert config.dependency_resolver is resolver

    def test_modules_resolver_replaced(self, config):
        modules_resolver = config.services.get_modules_resolver()

        assert type(modules_resolver) is LibraryModulesResolver
        assert isinstance(modules_resolver, DefaultModulesResolver)
        assert modules_resolver.packages == PACKAGES

    def test_modules_resolver_matches_default(self, config):
        replaced = config.services.get_service(ModulesResolver).get_modules()

        assert replaced == DefaultModulesResolver(PACKAGES).get_modules()

    def test_contract_resolver_is_default(self, config):
        settings = config.formatters.json_formatter.serializer_settings

        assert type(settings.contract_resolver) is DefaultContractResolver

    def test_tracing_enabled_at_debug(self, config):
        writer = config.services.get_trace_writer()

        assert isinstance(writer, SystemDiagnosticsTraceWriter)
        assert writer.minimum_level is TraceLevel.DEBUG
        assert writer.is_verbose

    def test_default_api_route(self, config):
        route = config.routes["DefaultApi"]

        assert route.route_template == "api/{controller}/{id}"
        assert route.defaults == {"id": RouteParameter.OPTIONAL}
        assert config.routes.names() == ["DefaultApi"]

    def test_attribute_routes_precede_default_api(self, config):
        config.ensure_initialized()

        names = config.routes.names()

        assert names[-1] == "DefaultApi"
        assert {"Health", "Ready", "Authors"} <= set(names)


class TestDefaultApiRouteData:
    """Test route data produced by the DefaultApi route."""

    @pytest.fixture
    def initialized(self, config):
        config.ensure_initialized()
        return config

    def test_id_present(self, initialized):
        route_data = initialized.routes.get_route_data("api/books/5")

        assert route_data.route_name == "DefaultApi"
        assert route_data.values == {"controller": "books", "id": "5"}
        descriptor = initialized.select_controller(route_data)
        assert descriptor.controller_name == "Books"
        assert descriptor.controller_type is BooksController

    def test_id_absent(self, initialized):
        route_data = initialized.routes.get_route_data("api/books")

        assert route_data.route_name == "DefaultApi"
        assert "id" not in route_data.values
        assert initialized.select_controller(route_data).controller_name == "Books"

    def test_unrelated_path(self, initialized):
        assert initialized.routes.get_route_data("books/5") is None


class TestRegistrationFailures:
    """Test that registration errors propagate."""

    def test_registering_twice_fails(self, config, resolver):
        with pytest.raises(ValueError, match="DefaultApi"):
            register(config, resolver)

    def test_registering_after_initialization_fails(self, resolver):
        config = HostConfiguration(controller_packages=PACKAGES)
        config.ensure_initialized()

        with pytest.raises(ConfigurationFrozenError):
            register(config, resolver)

    def test_missing_controller_package_fails_at_initialization(self, resolver):
        config = HostConfiguration(controller_packages=["library_controllers_missing"])
        register(config, resolver)

        with pytest.raises(ModuleNotFoundError):
            config.ensure_initialized()
