"""
Host configuration.

``HostConfiguration`` is the single object startup code mutates: the route
table, replaceable services, formatters, the dependency resolver and the
trace writer. It is written once before the application starts serving and
treated as read-only afterwards; ``ensure_initialized`` freezes it.
"""

from typing import Any, Dict, Iterable, List, Optional

import structlog

from booklibrary.shared.tracing import trace_function
from booklibrary.web.hosting.controllers import ControllerDescriptor
from booklibrary.web.hosting.dependency import DependencyResolver, EmptyResolver
from booklibrary.web.hosting.discovery import (
    ControllerTypeResolver,
    DefaultControllerTypeResolver,
    DefaultModulesResolver,
    ModulesResolver,
)
from booklibrary.web.hosting.exceptions import (
    ConfigurationFrozenError,
    ControllerNotFoundError,
    HostConfigurationError,
    UnknownServiceError,
)
from booklibrary.web.hosting.formatting import MediaTypeFormatterCollection
from booklibrary.web.hosting.routing import HttpRoute, RouteCollection, RouteData, combine_templates
from booklibrary.web.hosting.tracing import SystemDiagnosticsTraceWriter, TraceWriter

logger = structlog.get_logger(__name__)

DEFAULT_CONTROLLER_PACKAGES = ("booklibrary.web.controllers",)


class ServicesContainer:
    """
    Replaceable single-instance host services, keyed by abstract type.

    Only registered service types can be replaced, and only with an instance
    of that type (``None`` clears an optional service such as the trace
    writer).
    """

    def __init__(self, defaults: Dict[type, Any]):
        self._services: Dict[type, Any] = dict(defaults)
        self._frozen = False

    def get_service(self, service_type: type) -> Any:
        if service_type not in self._services:
            raise UnknownServiceError(service_type)
        return self._services[service_type]

    def replace(self, service_type: type, instance: Any) -> None:
        if self._frozen:
            raise ConfigurationFrozenError("Services cannot be replaced after the host is initialized")
        if service_type not in self._services:
            raise UnknownServiceError(service_type)
        if instance is not None and not isinstance(instance, service_type):
            raise TypeError(
                f"{type(instance).__name__} is not an instance of {service_type.__name__}"
            )
        self._services[service_type] = instance
        logger.debug(
            "service_replaced",
            service=service_type.__name__,
            implementation=type(instance).__name__,
        )

    def freeze(self) -> None:
        self._frozen = True

    def get_modules_resolver(self) -> ModulesResolver:
        return self.get_service(ModulesResolver)

    def get_controller_type_resolver(self) -> ControllerTypeResolver:
        return self.get_service(ControllerTypeResolver)

    def get_trace_writer(self) -> Optional[TraceWriter]:
        return self.get_service(TraceWriter)

    def __contains__(self, service_type: type) -> bool:
        return service_type in self._services


class HostConfiguration:
    """Configuration of the web host."""

    def __init__(self, controller_packages: Iterable[str] = DEFAULT_CONTROLLER_PACKAGES):
        self.controller_packages: List[str] = list(controller_packages)
        self.routes = RouteCollection()
        self.formatters = MediaTypeFormatterCollection()
        self.services = ServicesContainer(
            {
                ModulesResolver: DefaultModulesResolver(self.controller_packages),
                ControllerTypeResolver: DefaultControllerTypeResolver(),
                TraceWriter: None,
            }
        )
        self.dependency_resolver: DependencyResolver = EmptyResolver()
        self.properties: Dict[str, Any] = {}

        self._attribute_routes_index: Optional[int] = None
        self._controllers: Dict[str, ControllerDescriptor] = {}
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def map_http_attribute_routes(self) -> None:
        """
        Enable attribute routing.

        Attribute routes are inserted into the route table at the current
        position when the host initializes, so routes mapped before this call
        take precedence over them and routes mapped after it do not.
        """
        if self._initialized:
            raise ConfigurationFrozenError("Routes cannot be added after the host is initialized")
        self._attribute_routes_index = len(self.routes)

    def enable_system_diagnostics_tracing(self) -> SystemDiagnosticsTraceWriter:
        """Install a structlog-backed trace writer and return it."""
        writer = SystemDiagnosticsTraceWriter()
        self.services.replace(TraceWriter, writer)
        return writer

    @trace_function("host.initialize")
    def ensure_initialized(self) -> None:
        """
        Discover controllers, build attribute routes and freeze the
        configuration. Runs once; later calls do nothing.
        """
        if self._initialized:
            return

        modules_resolver = self.services.get_modules_resolver()
        controller_types = self.services.get_controller_type_resolver().get_controller_types(modules_resolver)

        for controller_type in controller_types:
            descriptor = ControllerDescriptor.from_type(controller_type)
            key = descriptor.controller_name.lower()
            if key in self._controllers:
                existing = self._controllers[key].controller_type
                raise HostConfigurationError(
                    f"Multiple controller types are named '{descriptor.controller_name}': "
                    f"{existing.__module__}.{existing.__qualname__}, "
                    f"{controller_type.__module__}.{controller_type.__qualname__}"
                )
            self._controllers[key] = descriptor

        if self._attribute_routes_index is not None:
            self._insert_attribute_routes(self._attribute_routes_index)

        self.routes.freeze()
        self.services.freeze()
        self._initialized = True

        logger.info(
            "host_initialized",
            controllers=[d.controller_name for d in self.controllers],
            routes=self.routes.names(),
        )

    def _insert_attribute_routes(self, index: int) -> None:
        entries = []
        for descriptor in self.controllers:
            for action in descriptor.actions:
                for attribute in action.route_attributes:
                    entries.append((attribute.order, len(entries), descriptor, action, attribute))
        entries.sort(key=lambda entry: (entry[0], entry[1]))

        generated: Dict[str, int] = {}
        for offset, (_, _, descriptor, action, attribute) in enumerate(entries):
            name = attribute.name
            if name is None:
                base = action.qualified_name
                generated[base] = generated.get(base, 0) + 1
                name = base if generated[base] == 1 else f"{base}#{generated[base]}"

            route = HttpRoute(
                combine_templates(descriptor.route_prefix, attribute.template),
                defaults={"controller": descriptor.controller_name, "action": action.name},
                data_tokens={"action": action, "controller": descriptor},
            )
            self.routes.insert(index + offset, name, route)

    @property
    def controllers(self) -> List[ControllerDescriptor]:
        return list(self._controllers.values())

    def get_controller(self, name: str) -> ControllerDescriptor:
        """Case-insensitive controller lookup (``books`` finds ``BooksController``)."""
        try:
            return self._controllers[name.lower()]
        except KeyError:
            raise ControllerNotFoundError(name) from None

    def select_controller(self, route_data: RouteData) -> ControllerDescriptor:
        """The controller named by the route data's ``controller`` value."""
        name = route_data.values.get("controller")
        if not name:
            raise ControllerNotFoundError("")
        return self.get_controller(str(name))
