"""
Hosting layer for the web API.

Controllers, attribute and conventional routing, dependency resolution, JSON
formatting and request tracing, configured through ``HostConfiguration`` and
compiled into a FastAPI application.
"""

from .configuration import HostConfiguration, ServicesContainer
from .controllers import ApiController
from .dependency import (
    ContainerDependencyResolver,
    DependencyResolver,
    DependencyScope,
    EmptyResolver,
    ServiceLifetime,
    ServiceRegistry,
)
from .discovery import (
    ControllerTypeResolver,
    DefaultControllerTypeResolver,
    DefaultModulesResolver,
    ModulesResolver,
)
from .exceptions import (
    AmbiguousActionError,
    ConfigurationFrozenError,
    ControllerNotFoundError,
    HostConfigurationError,
    RouteTemplateError,
    UnknownServiceError,
)
from .formatting import (
    CamelCasePropertyNamesContractResolver,
    ContractResolver,
    DefaultContractResolver,
    JsonMediaTypeFormatter,
    NullValueHandling,
)
from .routing import (
    RouteParameter,
    accept_verbs,
    http_delete,
    http_get,
    http_patch,
    http_post,
    http_put,
    non_action,
    route,
    route_prefix,
)
from .tracing import SystemDiagnosticsTraceWriter, TraceLevel, TraceWriter

__all__ = [
    "AmbiguousActionError",
    "ApiController",
    "CamelCasePropertyNamesContractResolver",
    "ConfigurationFrozenError",
    "ContainerDependencyResolver",
    "ContractResolver",
    "ControllerNotFoundError",
    "ControllerTypeResolver",
    "DefaultContractResolver",
    "DefaultControllerTypeResolver",
    "DefaultModulesResolver",
    "DependencyResolver",
    "DependencyScope",
    "EmptyResolver",
    "HostConfiguration",
    "HostConfigurationError",
    "JsonMediaTypeFormatter",
    "ModulesResolver",
    "NullValueHandling",
    "RouteParameter",
    "RouteTemplateError",
    "ServiceLifetime",
    "ServiceRegistry",
    "ServicesContainer",
    "SystemDiagnosticsTraceWriter",
    "TraceLevel",
    "TraceWriter",
    "UnknownServiceError",
    "accept_verbs",
    "http_delete",
    "http_get",
    "http_patch",
    "http_post",
    "http_put",
    "non_action",
    "route",
    "route_prefix",
]
