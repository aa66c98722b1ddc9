"""
Route templates, the route table and attribute routing decorators.

A route template is a ``/`` separated list of segments. Each segment is a
literal or a single parameter:

    {name}            any non-empty segment
    {name:int}        constrained (int, float, decimal, double, guid, alpha, bool)
    {name?}           optional
    {name=value}      default value when omitted
    {*name}           catch-all, last segment only

Trailing parameters that are optional or have a default may be left out of
the URL. Matching ignores case, for literals and constraints alike.
Constraints use Starlette's URL convertors so that a template matches
exactly the paths its compiled Starlette routes accept.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from starlette.convertors import CONVERTOR_TYPES, Convertor, register_url_convertor

from booklibrary.web.hosting.exceptions import ConfigurationFrozenError, RouteTemplateError


class _OptionalParameter:
    def __repr__(self) -> str:
        return "RouteParameter.OPTIONAL"


class RouteParameter:
    """Marker values for route defaults."""

    OPTIONAL = _OptionalParameter()


OPTIONAL = RouteParameter.OPTIONAL

# ============================================================================
# URL convertors
# ============================================================================


class AlphaConvertor(Convertor):
    regex = "[A-Za-z]+"

    def convert(self, value: str) -> str:
        return value

    def to_string(self, value: str) -> str:
        return value


class BoolConvertor(Convertor):
    regex = "(?:[Tt][Rr][Uu][Ee]|[Ff][Aa][Ll][Ss][Ee])"

    def convert(self, value: str) -> bool:
        return value.lower() == "true"

    def to_string(self, value: bool) -> str:
        return "true" if value else "false"


if "alpha" not in CONVERTOR_TYPES:
    register_url_convertor("alpha", AlphaConvertor())
if "bool" not in CONVERTOR_TYPES:
    register_url_convertor("bool", BoolConvertor())

# Inline constraint name -> Starlette convertor name
CONSTRAINTS: Dict[str, str] = {
    "int": "int",
    "float": "float",
    "decimal": "float",
    "double": "float",
    "guid": "uuid",
    "alpha": "alpha",
    "bool": "bool",
}

_PARAMETER = re.compile(
    r"^\{(?P<catch_all>\*)?(?P<name>[A-Za-z_][A-Za-z0-9_]*)"
    r"(?P<constraints>(?::[A-Za-z]+)*)"
    r"(?:(?P<optional>\?)|=(?P<default>[^{}/?]*))?\}$"
)

_MISSING = object()

# ============================================================================
# Templates
# ============================================================================


@dataclass(frozen=True)
class Segment:
    """One parsed template segment."""

    literal: Optional[str] = None
    name: Optional[str] = None
    convertor: str = "str"
    optional: bool = False
    default: Any = _MISSING
    catch_all: bool = False
    # A literal produced by binding a parameter whose default it equals
    omittable_literal: bool = False

    @property
    def is_parameter(self) -> bool:
        return self.name is not None

    @property
    def omittable(self) -> bool:
        if not self.is_parameter:
            return self.omittable_literal
        return self.optional or self.catch_all or self.default is not _MISSING

    def render(self) -> str:
        if not self.is_parameter:
            return self.literal or ""
        convertor = "path" if self.catch_all else self.convertor
        if convertor == "str":
            return "{%s}" % self.name
        return "{%s:%s}" % (self.name, convertor)

    def match(self, text: str) -> Tuple[bool, Any]:
        if not self.is_parameter:
            return text.lower() == (self.literal or "").lower(), None
        convertor = CONVERTOR_TYPES["path" if self.catch_all else self.convertor]
        if not self.catch_all and not text:
            return False, None
        if not re.fullmatch(convertor.regex, text, re.IGNORECASE):
            return False, None
        return True, convertor.convert(text)


@dataclass(frozen=True)
class RouteExpansion:
    """A concrete Starlette path covering part of a template."""

    path: str
    parameters: Tuple[str, ...]
    defaults: Mapping[str, Any] = field(default_factory=dict)


class RouteTemplate:
    """A parsed route template."""

    def __init__(self, template: str, segments: List[Segment]):
        self.template = template
        self.segments = segments

    @classmethod
    def parse(
        cls,
        template: str,
        defaults: Optional[Mapping[str, Any]] = None,
        constraints: Optional[Mapping[str, str]] = None,
    ) -> "RouteTemplate":
        defaults = dict(defaults or {})
        constraints = dict(constraints or {})

        if template.startswith(("/", "~")):
            raise RouteTemplateError(template, "must not start with '/' or '~'")
        if "?" in template.replace("?}", ""):
            raise RouteTemplateError(template, "must not contain '?' outside a parameter")

        segments: List[Segment] = []
        names: set[str] = set()
        raw_segments = template.split("/") if template else []

        for position, raw in enumerate(raw_segments):
            if not raw:
                raise RouteTemplateError(template, "contains an empty segment")

            if "{" not in raw and "}" not in raw:
                segments.append(Segment(literal=raw))
                continue

            match = _PARAMETER.match(raw)
            if match is None:
                raise RouteTemplateError(
                    template, f"segment '{raw}' must be a literal or a single parameter"
                )

            name = match.group("name")
            if name.lower() in names:
                raise RouteTemplateError(template, f"parameter '{name}' appears more than once")
            names.add(name.lower())

            catch_all = bool(match.group("catch_all"))
            if catch_all and position != len(raw_segments) - 1:
                raise RouteTemplateError(template, "a catch-all parameter must be the last segment")

            inline = [c for c in match.group("constraints").split(":") if c]
            if name in constraints:
                inline.append(constraints[name])
            if len(inline) > 1:
                raise RouteTemplateError(template, f"parameter '{name}' has more than one constraint")
            convertor = "str"
            if inline:
                if catch_all:
                    raise RouteTemplateError(template, "a catch-all parameter cannot be constrained")
                constraint = inline[0].lower()
                if constraint not in CONSTRAINTS:
                    raise RouteTemplateError(template, f"unknown constraint '{inline[0]}'")
                convertor = CONSTRAINTS[constraint]

            optional = bool(match.group("optional"))
            default: Any = _MISSING
            if match.group("default") is not None:
                default = match.group("default")
            if name in defaults:
                if defaults[name] is OPTIONAL:
                    optional = True
                else:
                    default = defaults[name]

            segments.append(
                Segment(
                    name=name,
                    convertor=convertor,
                    optional=optional,
                    default=default,
                    catch_all=catch_all,
                )
            )

        return cls(template, segments)

    @property
    def parameter_names(self) -> List[str]:
        return [s.name for s in self.segments if s.is_parameter]

    def bind(self, values: Mapping[str, str], defaults: Optional[Mapping[str, Any]] = None) -> "RouteTemplate":
        """
        Replace parameters with literal values.

        A bound segment stays omittable when its value equals the parameter's
        default (case-insensitive), so ``{controller=Home}`` bound to ``home``
        still matches an empty path.
        """
        defaults = defaults or {}
        segments: List[Segment] = []
        for segment in self.segments:
            if segment.is_parameter and segment.name in values:
                value = values[segment.name]
                default = segment.default
                if default is _MISSING:
                    default = defaults.get(segment.name, _MISSING)
                omittable = default is not _MISSING and default is not OPTIONAL and (
                    str(default).lower() == str(value).lower()
                )
                segments.append(Segment(literal=value, omittable_literal=omittable))
            else:
                segments.append(segment)
        return RouteTemplate(self.template, segments)

    def _first_omittable(self) -> int:
        index = len(self.segments)
        while index > 0 and self.segments[index - 1].omittable:
            index -= 1
        return index

    def expand(self) -> List[RouteExpansion]:
        """
        Starlette paths covering this template, longest first.

        Each omitted trailing parameter contributes its default (if it has
        one) to the expansion's defaults.
        """
        expansions: List[RouteExpansion] = []
        first = self._first_omittable()
        for length in range(len(self.segments), first - 1, -1):
            kept = self.segments[:length]
            omitted = self.segments[length:]
            path = "/" + "/".join(segment.render() for segment in kept)
            parameters = tuple(s.name for s in kept if s.is_parameter)
            defaults = {
                s.name: s.default
                for s in omitted
                if s.is_parameter and s.default is not _MISSING
            }
            expansions.append(RouteExpansion(path=path, parameters=parameters, defaults=defaults))
        return expansions

    def match(self, path: str) -> Optional[Dict[str, Any]]:
        """Match a request path; return the parameter values or None."""
        stripped = path.strip("/")
        parts = stripped.split("/") if stripped else []
        values: Dict[str, Any] = {}

        for index, segment in enumerate(self.segments):
            if segment.catch_all:
                remainder = "/".join(parts[index:])
                ok, value = segment.match(remainder)
                if not ok:
                    return None
                if remainder:
                    values[segment.name] = value
                return values

            if index >= len(parts):
                if not all(s.omittable for s in self.segments[index:]):
                    return None
                for omitted in self.segments[index:]:
                    if omitted.is_parameter and omitted.default is not _MISSING:
                        values[omitted.name] = omitted.default
                return values

            ok, value = segment.match(parts[index])
            if not ok:
                return None
            if segment.is_parameter:
                values[segment.name] = value

        if len(parts) > len(self.segments):
            return None
        return values

    def __repr__(self) -> str:
        return f"RouteTemplate({self.template!r})"


# ============================================================================
# Routes
# ============================================================================


class HttpRoute:
    """A named entry of the route table."""

    def __init__(
        self,
        route_template: str,
        defaults: Optional[Mapping[str, Any]] = None,
        constraints: Optional[Mapping[str, str]] = None,
        data_tokens: Optional[Mapping[str, Any]] = None,
    ):
        self.route_template = route_template
        self.defaults = dict(defaults or {})
        self.constraints = dict(constraints or {})
        self.data_tokens = dict(data_tokens or {})
        self.template = RouteTemplate.parse(route_template, self.defaults, self.constraints)

    @property
    def is_attribute_route(self) -> bool:
        return "action" in self.data_tokens

    def match(self, path: str) -> Optional[Dict[str, Any]]:
        """
        Route values for ``path``, or None when it does not match.

        Defaults for keys that are not template parameters are included;
        optional parameters missing from the path are left out.
        """
        matched = self.template.match(path)
        if matched is None:
            return None
        values = {
            key: value
            for key, value in self.defaults.items()
            if value is not OPTIONAL and key not in self.template.parameter_names
        }
        values.update(matched)
        return values

    def __repr__(self) -> str:
        return f"HttpRoute({self.route_template!r})"


@dataclass
class RouteData:
    """Result of matching a path against the route table."""

    route_name: str
    route: HttpRoute
    values: Dict[str, Any]


class RouteCollection:
    """Ordered, named route table."""

    def __init__(self) -> None:
        self._routes: List[Tuple[str, HttpRoute]] = []
        self._frozen = False

    def map_http_route(
        self,
        name: str,
        route_template: str,
        defaults: Optional[Mapping[str, Any]] = None,
        constraints: Optional[Mapping[str, str]] = None,
        data_tokens: Optional[Mapping[str, Any]] = None,
    ) -> HttpRoute:
        """Parse ``route_template`` and append it under ``name``."""
        route = HttpRoute(route_template, defaults, constraints, data_tokens)
        self.add(name, route)
        return route

    def add(self, name: str, route: HttpRoute) -> None:
        self.insert(len(self._routes), name, route)

    def insert(self, index: int, name: str, route: HttpRoute) -> None:
        if self._frozen:
            raise ConfigurationFrozenError("Routes cannot be added after the host is initialized")
        if name in self:
            raise ValueError(f"A route named '{name}' is already in the route collection")
        self._routes.insert(index, (name, route))

    def freeze(self) -> None:
        self._frozen = True

    def get_route_data(self, path: str) -> Optional[RouteData]:
        """Match ``path`` against each route in order; first match wins."""
        for name, route in self._routes:
            values = route.match(path)
            if values is not None:
                return RouteData(route_name=name, route=route, values=values)
        return None

    def names(self) -> List[str]:
        return [name for name, _ in self._routes]

    def items(self) -> List[Tuple[str, HttpRoute]]:
        return list(self._routes)

    def __getitem__(self, name: str) -> HttpRoute:
        for route_name, route in self._routes:
            if route_name == name:
                return route
        raise KeyError(name)

    def __contains__(self, name: object) -> bool:
        return any(route_name == name for route_name, _ in self._routes)

    def __iter__(self) -> Iterator[HttpRoute]:
        return (route for _, route in self._routes)

    def __len__(self) -> int:
        return len(self._routes)


# ============================================================================
# Attribute routing
# ============================================================================


@dataclass(frozen=True)
class RouteAttribute:
    """Metadata attached by ``@route``."""

    template: str
    name: Optional[str] = None
    order: int = 0


HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS")


def route(template: str, name: Optional[str] = None, order: int = 0) -> Callable:
    """
    Declare an attribute route on a controller action.

    The controller's ``route_prefix`` is prepended unless the template starts
    with ``~/``. An action may carry several routes.
    """

    def decorator(func: Callable) -> Callable:
        routes = list(getattr(func, "__route_attributes__", ()))
        routes.append(RouteAttribute(template=template, name=name, order=order))
        func.__route_attributes__ = routes
        return func

    return decorator


def route_prefix(prefix: str) -> Callable[[type], type]:
    """Declare the prefix shared by a controller's attribute routes."""

    def decorator(cls: type) -> type:
        cls.__route_prefix__ = prefix.strip("/")
        return cls

    return decorator


def accept_verbs(*methods: str) -> Callable:
    """Restrict an action to the given HTTP methods."""
    normalized = {m.upper() for m in methods}
    unknown = normalized - set(HTTP_METHODS)
    if unknown:
        raise ValueError(f"Unsupported HTTP methods: {sorted(unknown)}")

    def decorator(func: Callable) -> Callable:
        func.__http_methods__ = set(getattr(func, "__http_methods__", set())) | normalized
        return func

    return decorator


http_get = accept_verbs("GET")
http_post = accept_verbs("POST")
http_put = accept_verbs("PUT")
http_patch = accept_verbs("PATCH")
http_delete = accept_verbs("DELETE")


def non_action(func: Callable) -> Callable:
    """Exclude a public controller method from action selection."""
    func.__non_action__ = True
    return func


def combine_templates(prefix: Optional[str], template: str) -> str:
    if template.startswith("~/"):
        return template[2:].strip("/")
    template = template.strip("/")
    if not prefix:
        return template
    if not template:
        return prefix
    return f"{prefix}/{template}"
