"""
Controllers and the descriptors the host builds for them.

A controller is a class deriving from ``ApiController``; its public methods
are actions. The HTTP methods an action answers come from the verb
decorators in ``routing`` or, failing that, from the method name
(``get``, ``get_all``, ``post``, ``delete_review``...).
"""

import inspect
import typing
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from starlette.requests import Request

from booklibrary.web.hosting.routing import HTTP_METHODS, RouteAttribute


class ApiController:
    """
    Base class for controllers.

    The host sets ``request`` and ``configuration`` on every instance before
    an action runs.
    """

    request: Optional[Request] = None
    configuration: Any = None


@dataclass
class ActionDescriptor:
    """An action method and everything the dispatcher needs to call it."""

    controller: "ControllerDescriptor"
    name: str
    function: Callable
    http_methods: Tuple[str, ...]
    route_attributes: List[RouteAttribute]
    parameters: List[inspect.Parameter]
    return_annotation: Any
    is_async: bool

    @property
    def qualified_name(self) -> str:
        return f"{self.controller.controller_name}.{self.name}"

    @property
    def parameter_names(self) -> set[str]:
        return {p.name for p in self.parameters}

    @property
    def required_parameter_names(self) -> set[str]:
        return {p.name for p in self.parameters if p.default is inspect.Parameter.empty}

    @property
    def is_attribute_routed(self) -> bool:
        return bool(self.route_attributes)

    @property
    def returns_nothing(self) -> bool:
        return self.return_annotation is None or self.return_annotation is type(None)

    def __repr__(self) -> str:
        return f"ActionDescriptor({self.qualified_name}, {list(self.http_methods)})"


def infer_http_methods(name: str) -> Tuple[str, ...]:
    """HTTP methods implied by an action's name, e.g. ``get_all`` -> GET."""
    lowered = name.lower()
    for method in HTTP_METHODS:
        verb = method.lower()
        if lowered == verb or lowered.startswith(verb + "_"):
            return (method,)
    return ()


def _action_parameters(function: Callable) -> Tuple[List[inspect.Parameter], Any]:
    hints = typing.get_type_hints(function, include_extras=True)
    signature = inspect.signature(function)
    parameters = []
    for index, parameter in enumerate(signature.parameters.values()):
        if index == 0:
            # self
            continue
        if parameter.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            raise TypeError(
                f"Action {function.__qualname__} cannot declare *args or **kwargs"
            )
        parameters.append(
            parameter.replace(
                kind=inspect.Parameter.KEYWORD_ONLY,
                annotation=hints.get(parameter.name, parameter.annotation),
            )
        )
    return parameters, hints.get("return", signature.return_annotation)


@dataclass
class ControllerDescriptor:
    """A discovered controller type."""

    controller_type: type
    controller_name: str
    route_prefix: Optional[str]
    actions: List[ActionDescriptor] = field(default_factory=list)

    @classmethod
    def from_type(cls, controller_type: type, suffix: str = "Controller") -> "ControllerDescriptor":
        name = controller_type.__name__
        if name.endswith(suffix):
            name = name[: -len(suffix)]

        descriptor = cls(
            controller_type=controller_type,
            controller_name=name,
            route_prefix=controller_type.__dict__.get("__route_prefix__"),
        )
        descriptor.actions = list(descriptor._discover_actions())
        return descriptor

    def _discover_actions(self):
        # Declaration order, subclasses overriding their bases
        members: Dict[str, Any] = {}
        for klass in reversed(self.controller_type.__mro__):
            if klass is object or klass is ApiController or not issubclass(klass, ApiController):
                continue
            for member_name, member in klass.__dict__.items():
                members[member_name] = member

        for member_name, member in members.items():
            if member_name.startswith("_"):
                continue
            if isinstance(member, (staticmethod, classmethod, property)):
                continue
            if not inspect.isfunction(member):
                continue
            if getattr(member, "__non_action__", False):
                continue

            explicit = getattr(member, "__http_methods__", None)
            http_methods = tuple(m for m in HTTP_METHODS if m in explicit) if explicit else infer_http_methods(member_name)
            route_attributes = list(getattr(member, "__route_attributes__", ()))
            if route_attributes and not http_methods:
                http_methods = ("POST",)

            parameters, return_annotation = _action_parameters(member)
            yield ActionDescriptor(
                controller=self,
                name=member_name,
                function=member,
                http_methods=http_methods,
                route_attributes=route_attributes,
                parameters=parameters,
                return_annotation=return_annotation,
                is_async=inspect.iscoroutinefunction(member),
            )

    @property
    def conventional_actions(self) -> List[ActionDescriptor]:
        """Actions reachable through conventional routes."""
        return [a for a in self.actions if a.http_methods and not a.is_attribute_routed]

    def get_action(self, name: str) -> ActionDescriptor:
        for action in self.actions:
            if action.name.lower() == name.lower():
                return action
        raise KeyError(f"{self.controller_name} has no action named '{name}'")

    def __repr__(self) -> str:
        return f"ControllerDescriptor({self.controller_name})"
