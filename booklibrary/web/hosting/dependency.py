"""
Dependency resolution for controllers and the services they use.

The host asks a ``DependencyResolver`` for request-scoped objects. A scope is
opened per request, the controller type is resolved from it, and the scope is
closed once the response has been produced.

``ContainerDependencyResolver`` is the resolver used by the application entry
point; any object implementing the same methods can be passed to
``register`` instead.
"""

import threading
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class DependencyScope:
    """Resolves services for one unit of work (usually one request)."""

    def get_service(self, service_type: type) -> Optional[Any]:
        raise NotImplementedError

    def get_services(self, service_type: type) -> List[Any]:
        raise NotImplementedError

    def close(self) -> None:
        pass

    def __enter__(self) -> "DependencyScope":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class DependencyResolver(DependencyScope):
    """Root resolver; hands out per-request scopes."""

    def begin_scope(self) -> DependencyScope:
        raise NotImplementedError


class EmptyResolver(DependencyResolver):
    """Resolver that knows no services. Controllers are built with no arguments."""

    def get_service(self, service_type: type) -> Optional[Any]:
        return None

    def get_services(self, service_type: type) -> List[Any]:
        return []

    def begin_scope(self) -> DependencyScope:
        return self


class ServiceLifetime(str, Enum):
    """How long a resolved instance lives."""

    SINGLETON = "singleton"
    SCOPED = "scoped"
    TRANSIENT = "transient"


Factory = Callable[[DependencyScope], Any]


class ServiceRegistry:
    """
    Registrations consumed by ``ContainerDependencyResolver``.

    Each service type maps to one or more registrations; ``get_service``
    returns the last one, ``get_services`` returns all of them in
    registration order.

    Example:
        registry = ServiceRegistry()
        registry.add_singleton(BookRepository, lambda scope: InMemoryBookRepository())
        registry.add_scoped(BooksController, lambda scope: BooksController(scope.get_service(BookRepository)))
        resolver = ContainerDependencyResolver(registry)
    """

    def __init__(self) -> None:
        self._registrations: Dict[type, List[tuple[ServiceLifetime, Factory]]] = {}

    def add(self, service_type: Type[T], factory: Factory, lifetime: ServiceLifetime) -> "ServiceRegistry":
        self._registrations.setdefault(service_type, []).append((lifetime, factory))
        return self

    def add_singleton(self, service_type: Type[T], factory: Factory) -> "ServiceRegistry":
        return self.add(service_type, factory, ServiceLifetime.SINGLETON)

    def add_scoped(self, service_type: Type[T], factory: Factory) -> "ServiceRegistry":
        return self.add(service_type, factory, ServiceLifetime.SCOPED)

    def add_transient(self, service_type: Type[T], factory: Factory) -> "ServiceRegistry":
        return self.add(service_type, factory, ServiceLifetime.TRANSIENT)

    def add_instance(self, service_type: Type[T], instance: T) -> "ServiceRegistry":
        return self.add(service_type, lambda scope: instance, ServiceLifetime.SINGLETON)

    def registrations(self, service_type: type) -> List[tuple[ServiceLifetime, Factory]]:
        return list(self._registrations.get(service_type, ()))

    def __contains__(self, service_type: type) -> bool:
        return service_type in self._registrations


def _close(instance: Any) -> None:
    close = getattr(instance, "close", None)
    if callable(close):
        close()


class _ContainerScope(DependencyScope):
    def __init__(self, root: "ContainerDependencyResolver"):
        self._root = root
        self._instances: Dict[tuple[type, int], Any] = {}
        self._closed = False

    def _resolve(self, service_type: type, index: int, lifetime: ServiceLifetime, factory: Factory) -> Any:
        if lifetime is ServiceLifetime.SINGLETON:
            return self._root._singleton(service_type, index, factory)
        if lifetime is ServiceLifetime.TRANSIENT:
            return factory(self)
        key = (service_type, index)
        if key not in self._instances:
            self._instances[key] = factory(self)
        return self._instances[key]

    def get_service(self, service_type: type) -> Optional[Any]:
        registrations = self._root.registry.registrations(service_type)
        if not registrations:
            return None
        index = len(registrations) - 1
        lifetime, factory = registrations[index]
        return self._resolve(service_type, index, lifetime, factory)

    def get_services(self, service_type: type) -> List[Any]:
        return [
            self._resolve(service_type, index, lifetime, factory)
            for index, (lifetime, factory) in enumerate(self._root.registry.registrations(service_type))
        ]

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # Dispose in reverse creation order
        for instance in reversed(list(self._instances.values())):
            _close(instance)
        self._instances.clear()


class ContainerDependencyResolver(_ContainerScope, DependencyResolver):
    """
    Resolver over a ``ServiceRegistry``.

    Resolving directly from the root behaves like a scope that lives as long
    as the resolver; ``begin_scope`` opens a child scope whose scoped
    instances are closed with it. Singletons are shared by every scope and
    closed by ``close()`` on the root.
    """

    def __init__(self, registry: ServiceRegistry):
        super().__init__(self)
        self.registry = registry
        self._singletons: Dict[tuple[type, int], Any] = {}
        self._lock = threading.RLock()

    def _singleton(self, service_type: type, index: int, factory: Factory) -> Any:
        key = (service_type, index)
        with self._lock:
            if key not in self._singletons:
                self._singletons[key] = factory(self)
            return self._singletons[key]

    def begin_scope(self) -> DependencyScope:
        return _ContainerScope(self)

    def close(self) -> None:
        super().close()
        with self._lock:
            singletons = list(self._singletons.values())
            self._singletons.clear()
        for instance in reversed(singletons):
            _close(instance)
        logger.debug("dependency_resolver_closed", singletons=len(singletons))
