"""
Contract tests for the JSON the host writes.

Tests cover:
- Member names written exactly as declared (DefaultContractResolver)
- Null members kept
- Media type of action and error responses
- Health and readiness response shapes
- Operations published in the OpenAPI document
"""

import pytest


@pytest.fixture
def openapi(client):
    return client.get("/openapi.json").json()


class TestResponseContract:
    """Test the shape of JSON responses."""

    def test_member_names_as_declared(self, client):
        book = client.get("/api/books/5").json()

        assert set(book) == {"id", "title", "author_id", "published_year"}

    def test_null_members_written(self, client):
        book = client.get("/api/books/1").json()

        assert "published_year" in book
        assert book["published_year"] is None

    def test_compact_utf8_body(self, client):
        response = client.get("/api/authors")

        assert response.content == '["Ursula K. Le Guin","Octavia E. Butler"]'.encode("utf-8")

    @pytest.mark.parametrize("path", ["/api/books/5", "/api/books/99", "/api/books/abc", "/health"])
    def test_json_media_type(self, client, path):
        response = client.get(path)

        assert response.headers["content-type"] == "application/json"

    def test_error_shape(self, client):
        assert set(client.get("/api/books/99").json()) == {"detail"}

    def test_health_shape(self, client):
        assert set(client.get("/health").json()) == {"status", "service", "version", "environment"}

    def test_readiness_shape(self, client):
        body = client.get("/ready").json()

        assert set(body) == {"status", "service", "version", "checks"}
        assert set(body["checks"]) == {"controllers", "tracing"}


class TestOpenApiContract:
    """Test the operations published for controller actions."""

    def test_conventional_operations(self, openapi):
        paths = openapi["paths"]

        assert set(paths["/api/books"]) == {"get", "post"}
        assert set(paths["/api/books/{id}"]) == {"get", "delete"}
        assert "/api/maintenance" in paths

    def test_attribute_operations(self, openapi):
        paths = openapi["paths"]

        assert set(paths["/health"]) == {"get"}
        assert set(paths["/ready"]) == {"get"}
        assert set(paths["/api/authors/{author_id}/books"]) == {"get"}

    def test_path_and_query_parameters(self, openapi):
        operation = openapi["paths"]["/api/authors/{author_id}/books"]["get"]

        locations = {p["name"]: p["in"] for p in operation["parameters"]}
        assert locations == {"author_id": "path", "since": "query"}

    def test_body_parameter(self, openapi):
        operation = openapi["paths"]["/api/books"]["post"]

        schema = operation["requestBody"]["content"]["application/json"]["schema"]
        assert schema == {"$ref": "#/components/schemas/Book"}

    def test_operations_tagged_by_controller(self, openapi):
        assert openapi["paths"]["/api/books/{id}"]["get"]["tags"] == ["Books"]
        assert openapi["paths"]["/health"]["get"]["tags"] == ["Health"]

    def test_metrics_not_published(self, openapi):
        assert "/metrics" not in openapi["paths"]
