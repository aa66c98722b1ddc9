"""
Unit tests for controller and action descriptors.

Tests cover:
- HTTP method inference from action names
- Action discovery (public methods, non_action, inheritance)
- Explicit verbs and attribute routes
- Parameter and return annotation handling
"""

import inspect
from typing import List, Optional

import pytest

from booklibrary.web.hosting import ApiController, http_get, http_put, non_action, route, route_prefix
from booklibrary.web.hosting.controllers import ControllerDescriptor, infer_http_methods


class TestInferHttpMethods:
    """Test verb inference from action names."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("get", ("GET",)),
            ("get_all", ("GET",)),
            ("Post", ("POST",)),
            ("delete_review", ("DELETE",)),
            ("options", ("OPTIONS",)),
            ("getaway", ()),
            ("checkout", ()),
        ],
    )
    def test_infer(self, name, expected):
        assert infer_http_methods(name) == expected


class ShelvesController(ApiController):
    """Fixture controller."""

    def get_all(self) -> List[str]:
        return []

    def get(self, id: int, include_archived: bool = False) -> Optional[str]:
        return None

    def delete(self, id: int) -> None:
        pass

    @http_put
    def rename(self, id: int, name: str) -> str:
        return name

    @route("shelves/{id}/restock")
    async def restock(self, id: int) -> None:
        pass

    def checkout(self) -> None:
        pass

    @non_action
    def get_helper(self) -> None:
        pass

    def _private(self) -> None:
        pass

    @staticmethod
    def get_static() -> None:
        pass


class TestControllerDescriptor:
    """Test ControllerDescriptor.from_type."""

    @pytest.fixture
    def descriptor(self):
        return ControllerDescriptor.from_type(ShelvesController)

    def test_name_strips_suffix(self, descriptor):
        assert descriptor.controller_name == "Shelves"
        assert descriptor.route_prefix is None

    def test_discovers_public_actions_in_declaration_order(self, descriptor):
        assert [a.name for a in descriptor.actions] == [
            "get_all",
            "get",
            "delete",
            "rename",
            "restock",
            "checkout",
        ]

    def test_http_methods(self, descriptor):
        methods = {a.name: a.http_methods for a in descriptor.actions}

        assert methods["get_all"] == ("GET",)
        assert methods["rename"] == ("PUT",)
        # attribute routed without a verb
        assert methods["restock"] == ("POST",)
        assert methods["checkout"] == ()

    def test_conventional_actions_exclude_attribute_routed_and_verbless(self, descriptor):
        assert [a.name for a in descriptor.conventional_actions] == ["get_all", "get", "delete", "rename"]

    def test_parameters_are_keyword_only_with_resolved_hints(self, descriptor):
        action = descriptor.get_action("get")

        assert [p.name for p in action.parameters] == ["id", "include_archived"]
        assert all(p.kind is inspect.Parameter.KEYWORD_ONLY for p in action.parameters)
        assert action.parameters[0].annotation is int
        assert action.required_parameter_names == {"id"}
        assert action.parameter_names == {"id", "include_archived"}

    def test_returns_nothing(self, descriptor):
        assert descriptor.get_action("delete").returns_nothing
        assert not descriptor.get_action("get").returns_nothing

    def test_async_detection(self, descriptor):
        assert descriptor.get_action("restock").is_async
        assert not descriptor.get_action("get").is_async

    def test_get_action_is_case_insensitive(self, descriptor):
        assert descriptor.get_action("GET_ALL").qualified_name == "Shelves.get_all"
        with pytest.raises(KeyError):
            descriptor.get_action("missing")

    def test_route_prefix_not_inherited(self):
        @route_prefix("api/shelves")
        class BaseShelvesController(ApiController):
            pass

        class BranchShelvesController(BaseShelvesController):
            pass

        assert ControllerDescriptor.from_type(BaseShelvesController).route_prefix == "api/shelves"
        assert ControllerDescriptor.from_type(BranchShelvesController).route_prefix is None

    def test_subclass_overrides_base_action(self):
        class BaseCatalogController(ApiController):
            def get(self) -> str:
                return "base"

            def get_count(self) -> int:
                return 0

        class CatalogController(BaseCatalogController):
            @http_get
            def get(self, id: int) -> str:
                return "derived"

        descriptor = ControllerDescriptor.from_type(CatalogController)

        assert [a.name for a in descriptor.actions] == ["get", "get_count"]
        assert descriptor.get_action("get").function is CatalogController.__dict__["get"]

    def test_var_args_rejected(self):
        class SearchController(ApiController):
            def get(self, *terms):
                return terms

        with pytest.raises(TypeError, match="args"):
            ControllerDescriptor.from_type(SearchController)
