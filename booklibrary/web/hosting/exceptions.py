"""Errors raised while configuring the web host.

All of them surface at startup; none are caught by the host itself.
"""


class HostConfigurationError(Exception):
    """Base class for host configuration failures."""


class RouteTemplateError(HostConfigurationError):
    """A route template could not be parsed."""

    def __init__(self, template: str, reason: str):
        self.template = template
        self.reason = reason
        super().__init__(f"Invalid route template '{template}': {reason}")


class UnknownServiceError(HostConfigurationError, KeyError):
    """A service type is not registered in the services container."""

    def __init__(self, service_type: type):
        self.service_type = service_type
        super().__init__(f"Service type {service_type.__name__} is not registered")

    def __str__(self) -> str:
        return self.args[0]


class ConfigurationFrozenError(HostConfigurationError):
    """Configuration was modified after the host was initialized."""


class AmbiguousActionError(HostConfigurationError):
    """More than one action answers the same path and HTTP method."""

    def __init__(self, method: str, path: str, actions: list[str]):
        self.method = method
        self.path = path
        self.actions = actions
        super().__init__(
            f"Multiple actions match {method} {path}: {', '.join(actions)}"
        )


class ControllerNotFoundError(HostConfigurationError, LookupError):
    """Route data names a controller that was not discovered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"No controller named '{name}' was found")
