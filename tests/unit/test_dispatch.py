"""
Unit tests for compiling the route table into action routes.

Tests cover:
- Conventional action selection over the DefaultApi route
- Routes with an {action} parameter
- Attribute routes and their precedence
- Ambiguous actions detected at startup
"""

from typing import List

import pytest

from booklibrary.web.hosting import (
    AmbiguousActionError,
    ApiController,
    ControllerNotFoundError,
    http_get,
    route,
    route_prefix,
)
from booklibrary.web.hosting.dispatch import compile_routes


class MembersController(ApiController):
    def get_all(self) -> List[str]:
        return []

    def get(self, id: int) -> str:
        return str(id)

    def post(self, name: str) -> str:
        return name

    def put(self, id: int, name: str) -> str:
        return name

    def delete(self, id: int) -> None:
        pass


def summary(compiled):
    return {(c.method, c.path, c.action.qualified_name) for c in compiled}


class TestConventionalRoutes:
    """Test action selection for conventional routes."""

    def test_default_api_route(self, host_for):
        config = host_for(MembersController)

        compiled = compile_routes(config)

        assert summary(compiled) == {
            ("GET", "/api/members", "Members.get_all"),
            ("GET", "/api/members/{id}", "Members.get"),
            ("POST", "/api/members", "Members.post"),
            ("PUT", "/api/members/{id}", "Members.put"),
            ("DELETE", "/api/members/{id}", "Members.delete"),
        }
        assert {c.route_name for c in compiled} == {"DefaultApi"}
        assert {c.kind for c in compiled} == {"conventional"}

    def test_action_parameter_in_template(self, host_for):
        config = host_for(MembersController, default_route=False)
        config.routes.map_http_route("Rpc", "rpc/{controller}/{action}")

        compiled = compile_routes(config)

        assert ("GET", "/rpc/members/get_all", "Members.get_all") in summary(compiled)
        assert ("POST", "/rpc/members/post", "Members.post") in summary(compiled)
        # id is not a route parameter here, so it binds from the query string
        assert ("GET", "/rpc/members/get", "Members.get") in summary(compiled)

    def test_defaults_fill_missing_action_parameters(self, host_for):
        class PagesController(ApiController):
            def get(self, page: int) -> int:
                return page

        config = host_for(PagesController, default_route=False)
        config.routes.map_http_route("Pages", "pages/{controller}/{page}", defaults={"page": 1})

        compiled = {c.path: c for c in compile_routes(config)}

        assert compiled["/pages/pages"].defaults == {"page": 1}
        assert compiled["/pages/pages/{page}"].defaults == {}

    def test_route_with_fixed_controller(self, host_for):
        config = host_for(MembersController, default_route=False)
        config.routes.map_http_route("Roster", "roster", defaults={"controller": "Members", "action": "get_all"})

        assert summary(compile_routes(config)) == {("GET", "/roster", "Members.get_all")}

    def test_route_with_unknown_controller(self, host_for):
        config = host_for(MembersController, default_route=False)
        config.routes.map_http_route("Loans", "loans", defaults={"controller": "Loans"})

        with pytest.raises(ControllerNotFoundError):
            compile_routes(config)

    def test_ambiguous_actions_rejected(self, host_for):
        class ReviewsController(ApiController):
            def get_all(self) -> List[str]:
                return []

            def get_recent(self) -> List[str]:
                return []

        config = host_for(ReviewsController)

        with pytest.raises(AmbiguousActionError) as exc_info:
            compile_routes(config)

        assert exc_info.value.method == "GET"
        assert exc_info.value.path == "/api/reviews"
        assert exc_info.value.actions == ["Reviews.get_all", "Reviews.get_recent"]


class TestAttributeRoutes:
    """Test compilation of attribute routes."""

    def test_attribute_routes_precede_conventional(self, host_for):
        @route_prefix("api/members")
        class BadgesController(ApiController):
            @http_get
            @route("{member_id:int}/badges")
            def list_badges(self, member_id: int) -> List[str]:
                return []

        config = host_for(MembersController, BadgesController)

        compiled = compile_routes(config)

        assert compiled[0].path == "/api/members/{member_id:int}/badges"
        assert compiled[0].kind == "attribute"
        assert compiled[0].route_name == "Badges.list_badges"
        assert config.routes.names() == ["Badges.list_badges", "DefaultApi"]

    def test_unreachable_attribute_route_is_skipped(self, host_for):
        class NotesController(ApiController):
            @http_get
            @route("notes/{note_id}")
            def get_note(self) -> str:
                return ""

        config = host_for(NotesController, default_route=False)

        assert compile_routes(config) == []
