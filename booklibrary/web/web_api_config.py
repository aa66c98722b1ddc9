"""
Startup registration for the Book Library web API.

``register`` wires routing, dependency resolution, JSON serialization and
tracing into a ``HostConfiguration``. It runs once, before the application
accepts requests; any error it raises aborts startup.
"""

from types import ModuleType
from typing import List

from booklibrary.web.hosting.configuration import HostConfiguration
from booklibrary.web.hosting.dependency import DependencyResolver
from booklibrary.web.hosting.discovery import DefaultModulesResolver, ModulesResolver
from booklibrary.web.hosting.formatting import DefaultContractResolver
from booklibrary.web.hosting.routing import RouteParameter
from booklibrary.web.hosting.tracing import TraceLevel


def register(config: HostConfiguration, resolver: DependencyResolver) -> None:
    # Web API configuration and services
    config.dependency_resolver = resolver
    config.services.replace(ModulesResolver, LibraryModulesResolver(config.controller_packages))
    config.formatters.json_formatter.serializer_settings.contract_resolver = DefaultContractResolver()
    tracer = config.enable_system_diagnostics_tracing()
    tracer.minimum_level = TraceLevel.DEBUG

    # Web API routes
    config.map_http_attribute_routes()

    config.routes.map_http_route(
        name="DefaultApi",
        route_template="api/{controller}/{id}",
        defaults={"id": RouteParameter.OPTIONAL},
    )


class LibraryModulesResolver(DefaultModulesResolver):
    # Returns exactly what DefaultModulesResolver returns.
    def get_modules(self) -> List[ModuleType]:
        modules = super().get_modules()
        return modules
