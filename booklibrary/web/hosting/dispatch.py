"""
Compilation of the route table into FastAPI routes.

Every (path, HTTP method, action) triple the route table can reach becomes
one FastAPI route, in route table order, so Starlette's first-match rule
gives the same precedence as ``RouteCollection.get_route_data``. FastAPI then
binds action parameters the usual way: path parameters from the URL, simple
types from the query string, models from the body.
"""

import inspect
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

import structlog
from fastapi import Depends, FastAPI, Request
from starlette.concurrency import run_in_threadpool
from starlette.responses import Response

from booklibrary.shared.metrics import HttpMetrics
from booklibrary.shared.tracing import get_tracer
from booklibrary.web.hosting.configuration import HostConfiguration
from booklibrary.web.hosting.controllers import ActionDescriptor, ControllerDescriptor
from booklibrary.web.hosting.exceptions import AmbiguousActionError
from booklibrary.web.hosting.routing import HttpRoute, RouteExpansion
from booklibrary.web.hosting.tracing import (
    CATEGORY_ACTIVATION,
    CATEGORY_CONTROLLERS,
    CATEGORY_FORMATTING,
    TraceLevel,
)

logger = structlog.get_logger(__name__)
tracer = get_tracer(__name__)

CONTROLLER_PARAMETER = "__controller__"


@dataclass
class CompiledAction:
    """One FastAPI route produced from the route table."""

    route_name: str
    path: str
    method: str
    action: ActionDescriptor
    # Values for action parameters whose segment is absent from ``path``
    defaults: Dict[str, Any] = field(default_factory=dict)
    kind: str = "conventional"


def _fits(action: ActionDescriptor, expansion: RouteExpansion, template_parameters: set[str]) -> bool:
    present = set(expansion.parameters)
    if not present <= action.parameter_names:
        return False
    for name in action.required_parameter_names & template_parameters:
        if name not in present and name not in expansion.defaults:
            return False
    return True


def _conventional_actions(
    config: HostConfiguration, route_name: str, route: HttpRoute
) -> List[CompiledAction]:
    template_parameters = set(route.template.parameter_names)

    if "controller" in template_parameters:
        controllers = config.controllers
    elif "controller" in route.defaults:
        controllers = [config.get_controller(str(route.defaults["controller"]))]
    else:
        logger.warning("route_without_controller", route=route_name, template=route.route_template)
        return []

    compiled: List[CompiledAction] = []
    for descriptor in controllers:
        per_action: List[Tuple[ActionDescriptor, List[RouteExpansion]]] = []
        bound = {"controller": descriptor.controller_name.lower()}

        if "action" in template_parameters:
            for action in descriptor.conventional_actions:
                template = route.template.bind({**bound, "action": action.name.lower()}, route.defaults)
                per_action.append((action, template.expand()))
        else:
            actions = descriptor.conventional_actions
            if "action" in route.defaults:
                actions = [a for a in actions if a.name.lower() == str(route.defaults["action"]).lower()]
            expansions = route.template.bind(bound, route.defaults).expand()
            per_action.extend((action, expansions) for action in actions)

        remaining = template_parameters - {"controller", "action"}
        claimed: Dict[Tuple[str, str], ActionDescriptor] = {}
        for action, expansions in per_action:
            for expansion in expansions:
                if not _fits(action, expansion, remaining):
                    continue
                for method in action.http_methods:
                    key = (expansion.path, method)
                    if key in claimed:
                        raise AmbiguousActionError(
                            method, expansion.path, [claimed[key].qualified_name, action.qualified_name]
                        )
                    claimed[key] = action
                    compiled.append(
                        CompiledAction(
                            route_name=route_name,
                            path=expansion.path,
                            method=method,
                            action=action,
                            defaults={
                                k: v for k, v in expansion.defaults.items() if k in action.parameter_names
                            },
                        )
                    )
    return compiled


def _attribute_actions(route_name: str, route: HttpRoute) -> List[CompiledAction]:
    action: ActionDescriptor = route.data_tokens["action"]
    template_parameters = set(route.template.parameter_names)
    compiled = []
    for expansion in route.template.expand():
        if not _fits(action, expansion, template_parameters):
            continue
        for method in action.http_methods:
            compiled.append(
                CompiledAction(
                    route_name=route_name,
                    path=expansion.path,
                    method=method,
                    action=action,
                    defaults={k: v for k, v in expansion.defaults.items() if k in action.parameter_names},
                    kind="attribute",
                )
            )
    if not compiled:
        logger.warning("attribute_route_unreachable", route=route_name, template=route.route_template)
    return compiled


def compile_routes(config: HostConfiguration) -> List[CompiledAction]:
    """Every action route reachable from the route table, in table order."""
    config.ensure_initialized()
    compiled: List[CompiledAction] = []
    for route_name, route in config.routes.items():
        if route.is_attribute_route:
            compiled.extend(_attribute_actions(route_name, route))
        else:
            compiled.extend(_conventional_actions(config, route_name, route))
    return compiled


def controller_activator(config: HostConfiguration, descriptor: ControllerDescriptor):
    """
    FastAPI dependency yielding a controller for the current request.

    A dependency scope is opened per request; the controller comes from the
    scope, or is constructed with no arguments when the resolver does not
    know its type. The scope is closed when the request completes.
    """

    async def activate(request: Request):
        writer = config.services.get_trace_writer()
        resolver = config.dependency_resolver
        scope = resolver.begin_scope()
        try:
            controller = scope.get_service(descriptor.controller_type)
            source = "resolver"
            if controller is None:
                controller = descriptor.controller_type()
                source = "default"
            controller.request = request
            controller.configuration = config
            if writer is not None:
                writer.trace(
                    CATEGORY_ACTIVATION,
                    TraceLevel.DEBUG,
                    operator=descriptor.controller_type.__name__,
                    operation="create",
                    message=f"controller activated ({source})",
                )
            yield controller
        finally:
            if scope is not resolver:
                scope.close()

    return activate


def _build_endpoint(config: HostConfiguration, compiled: CompiledAction):
    action = compiled.action
    descriptor = action.controller
    formatter = config.formatters.json_formatter
    defaults: Mapping[str, Any] = dict(compiled.defaults)
    span_name = action.qualified_name

    parameters = [p for p in action.parameters if p.name not in defaults]
    parameters.append(
        inspect.Parameter(
            CONTROLLER_PARAMETER,
            inspect.Parameter.KEYWORD_ONLY,
            default=Depends(controller_activator(config, descriptor)),
        )
    )

    async def endpoint(**kwargs: Any) -> Response:
        writer = config.services.get_trace_writer()
        controller = kwargs.pop(CONTROLLER_PARAMETER)
        kwargs.update(defaults)

        if writer is not None:
            writer.trace(
                CATEGORY_CONTROLLERS,
                TraceLevel.DEBUG,
                operator=descriptor.controller_type.__name__,
                operation=action.name,
                message=f"action selected by route '{compiled.route_name}'",
            )

        start = time.perf_counter()
        with tracer.start_as_current_span(span_name) as span:
            span.set_attribute("http.route_name", compiled.route_name)
            span.set_attribute("controller", descriptor.controller_name)
            span.set_attribute("action", action.name)

            bound = getattr(controller, action.name)
            if action.is_async:
                result = await bound(**kwargs)
            else:
                result = await run_in_threadpool(bound, **kwargs)

        if writer is not None:
            writer.trace(
                CATEGORY_CONTROLLERS,
                TraceLevel.DEBUG,
                operator=descriptor.controller_type.__name__,
                operation=action.name,
                message="action executed",
                elapsed=time.perf_counter() - start,
            )

        if result is None and action.returns_nothing:
            return Response(status_code=204)

        response = formatter.create_response(result)
        if writer is not None:
            writer.trace(
                CATEGORY_FORMATTING,
                TraceLevel.DEBUG,
                operator=type(formatter).__name__,
                operation="write",
                status_code=response.status_code,
            )
        return response

    endpoint.__signature__ = inspect.Signature(parameters)
    endpoint.__name__ = f"{descriptor.controller_name}_{action.name}"
    endpoint.__qualname__ = action.qualified_name
    endpoint.__doc__ = inspect.getdoc(action.function)
    endpoint.__route_path__ = compiled.path
    return endpoint


def _ignore_case(route: Any) -> None:
    # Controller routes match case-insensitively, like RouteTemplate.match
    route.path_regex = re.compile(route.path_regex.pattern, re.IGNORECASE)


def map_controller_routes(
    app: FastAPI,
    config: HostConfiguration,
    metrics: Optional[HttpMetrics] = None,
) -> List[CompiledAction]:
    """Add one FastAPI route per compiled action to ``app``."""
    compiled_actions = compile_routes(config)

    for compiled in compiled_actions:
        action = compiled.action
        app.add_api_route(
            compiled.path,
            _build_endpoint(config, compiled),
            methods=[compiled.method],
            name=f"{compiled.route_name}:{action.qualified_name}",
            tags=[action.controller.controller_name],
            summary=action.qualified_name,
            response_model=None,
        )
        _ignore_case(app.router.routes[-1])
        logger.debug(
            "action_route_mapped",
            route=compiled.route_name,
            method=compiled.method,
            path=compiled.path,
            action=action.qualified_name,
        )

    if metrics is not None:
        for kind in ("attribute", "conventional"):
            metrics.routes_registered.labels(kind=kind).set(
                sum(1 for c in compiled_actions if c.kind == kind)
            )

    logger.info("controller_routes_mapped", count=len(compiled_actions))
    return compiled_actions
