"""
JSON formatting of action results.

``JsonMediaTypeFormatter`` turns action results into JSON bytes. Values go
through FastAPI's ``jsonable_encoder`` first (pydantic models by field name,
never by alias; dataclasses, datetimes, enums...), then the contract resolver
decides the name of every object member.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Mapping, Optional

from fastapi.encoders import jsonable_encoder
from pydantic.alias_generators import to_camel
from starlette.background import BackgroundTask
from starlette.responses import JSONResponse, Response


class ContractResolver:
    """Decides how member names are written to JSON."""

    def resolve_property_name(self, name: str) -> str:
        raise NotImplementedError


class DefaultContractResolver(ContractResolver):
    """Writes member names exactly as declared."""

    def resolve_property_name(self, name: str) -> str:
        return name


class CamelCasePropertyNamesContractResolver(ContractResolver):
    """Writes member names in lower camel case (``published_year`` -> ``publishedYear``)."""

    def resolve_property_name(self, name: str) -> str:
        return to_camel(name)


class NullValueHandling(str, Enum):
    INCLUDE = "include"
    IGNORE = "ignore"


@dataclass
class SerializerSettings:
    contract_resolver: ContractResolver = field(default_factory=DefaultContractResolver)
    indent: Optional[int] = None
    null_value_handling: NullValueHandling = NullValueHandling.INCLUDE


class JsonMediaTypeFormatter:
    """Serializes action results to ``application/json``."""

    media_type = "application/json"

    def __init__(self, serializer_settings: Optional[SerializerSettings] = None):
        self.serializer_settings = serializer_settings or SerializerSettings()

    def to_json_data(self, value: Any) -> Any:
        """Encode ``value`` to JSON-compatible data with resolved member names."""
        return self._apply_contract(jsonable_encoder(value, by_alias=False))

    def _apply_contract(self, data: Any) -> Any:
        settings = self.serializer_settings
        if isinstance(data, Mapping):
            members = {}
            for key, value in data.items():
                if value is None and settings.null_value_handling is NullValueHandling.IGNORE:
                    continue
                name = settings.contract_resolver.resolve_property_name(key) if isinstance(key, str) else key
                members[name] = self._apply_contract(value)
            return members
        if isinstance(data, list):
            return [self._apply_contract(item) for item in data]
        return data

    def serialize(self, value: Any) -> bytes:
        indent = self.serializer_settings.indent
        return json.dumps(
            self.to_json_data(value),
            ensure_ascii=False,
            allow_nan=False,
            indent=indent,
            separators=(",", ":") if indent is None else None,
        ).encode("utf-8")

    def create_response(
        self,
        value: Any,
        status_code: int = 200,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Response:
        """Wrap ``value`` in a response; responses are passed through untouched."""
        if isinstance(value, Response):
            return value
        return FormattedJSONResponse(value, status_code=status_code, headers=headers, formatter=self)


class FormattedJSONResponse(JSONResponse):
    """JSON response rendered by a ``JsonMediaTypeFormatter``."""

    def __init__(
        self,
        content: Any,
        status_code: int = 200,
        headers: Optional[Mapping[str, str]] = None,
        media_type: Optional[str] = None,
        background: Optional[BackgroundTask] = None,
        formatter: Optional[JsonMediaTypeFormatter] = None,
    ) -> None:
        self.formatter = formatter or JsonMediaTypeFormatter()
        super().__init__(content, status_code, headers, media_type, background)

    def render(self, content: Any) -> bytes:
        return self.formatter.serialize(content)


class MediaTypeFormatterCollection:
    """The formatters available to the host."""

    def __init__(self) -> None:
        self.json_formatter = JsonMediaTypeFormatter()

    def __iter__(self) -> Iterator[JsonMediaTypeFormatter]:
        yield self.json_formatter
