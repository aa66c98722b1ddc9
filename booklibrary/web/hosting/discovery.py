"""
Discovery of controller modules and controller types.

``ModulesResolver`` decides which modules are scanned; a
``ControllerTypeResolver`` picks the controller classes out of them. Both are
replaceable services in ``HostConfiguration.services``.
"""

import importlib
import inspect
import pkgutil
from types import ModuleType
from typing import Iterable, List

import structlog

from booklibrary.web.hosting.controllers import ApiController

logger = structlog.get_logger(__name__)


class ModulesResolver:
    """Provides the modules scanned for controllers."""

    def get_modules(self) -> List[ModuleType]:
        raise NotImplementedError


class DefaultModulesResolver(ModulesResolver):
    """
    Imports each configured package and every module below it.

    Modules are returned in package order, then in ``pkgutil`` walk order,
    without duplicates. A plain module (not a package) is returned on its own.
    Import errors propagate to the caller.
    """

    def __init__(self, packages: Iterable[str] = ()):
        self.packages = list(packages)

    def get_modules(self) -> List[ModuleType]:
        modules: List[ModuleType] = []
        seen: set[str] = set()

        def add(module: ModuleType) -> None:
            if module.__name__ not in seen:
                seen.add(module.__name__)
                modules.append(module)

        for package_name in self.packages:
            package = importlib.import_module(package_name)
            add(package)

            path = getattr(package, "__path__", None)
            if path is None:
                continue

            for info in pkgutil.walk_packages(path, prefix=f"{package.__name__}."):
                add(importlib.import_module(info.name))

        logger.debug("modules_resolved", packages=self.packages, count=len(modules))
        return modules


class ControllerTypeResolver:
    """Selects controller classes from the resolved modules."""

    def get_controller_types(self, modules_resolver: ModulesResolver) -> List[type]:
        raise NotImplementedError


class DefaultControllerTypeResolver(ControllerTypeResolver):
    """
    A controller type is a public, concrete ``ApiController`` subclass whose
    name ends with ``Controller`` and which is defined in the scanned module
    (re-exports are skipped so every class is found once).
    """

    suffix = "Controller"

    def is_controller_type(self, cls: type, module: ModuleType) -> bool:
        return (
            isinstance(cls, type)
            and issubclass(cls, ApiController)
            and cls is not ApiController
            and cls.__module__ == module.__name__
            and not cls.__name__.startswith("_")
            and cls.__name__.endswith(self.suffix)
            and len(cls.__name__) > len(self.suffix)
            and not inspect.isabstract(cls)
        )

    def get_controller_types(self, modules_resolver: ModulesResolver) -> List[type]:
        controller_types: List[type] = []
        for module in modules_resolver.get_modules():
            for _, cls in inspect.getmembers(module, inspect.isclass):
                if self.is_controller_type(cls, module):
                    controller_types.append(cls)
        return controller_types
