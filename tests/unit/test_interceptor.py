"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of specwatch, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Test suite for the observation pipeline, driven without a server.
"""

import json
from unittest.mock import patch

import pytest

from specwatch.interceptor import Interceptor, RequestRecord, ResponseRecord
from specwatch.store import SpecStore


@pytest.fixture()
def store():
    return SpecStore()


@pytest.fixture()
def interceptor(store):
    return Interceptor(store, header_parameters=["x-tenant", "accept-language"], ignore_paths=["/api-spec"])


def _json_response(payload, status=200):
    return ResponseRecord(
        status=status,
        headers={"content-type": "application/json"},
        body=json.dumps(payload).encode(),
    )


@pytest.mark.unit()
class TestInterceptor:
    def test_path_parameters(self, interceptor, store):
        request = RequestRecord(
            method="GET",
            path="/api/v1/success/1/router",
            route_pattern="/success/{param}/router",
            mount_path="/api/v1",
            path_params={"param": "1"},
            host="testserver",
            scheme="http",
        )
        template = interceptor.observe(request, _json_response({"result": "OK"}))

        assert template == "/api/v1/success/{param}/router"
        document = store.snapshot()
        operation = document["paths"][template]["get"]
        assert operation["parameters"] == [
            {"name": "param", "in": "path", "type": "integer", "required": True, "example": 1}
        ]
        assert operation["responses"]["200"]["schema"] == {
            "type": "object",
            "properties": {"result": {"type": "string", "example": "OK"}},
        }
        assert document["host"] == "testserver"
        assert document["schemes"] == ["http"]

    def test_query_parameters(self, interceptor, store):
        request = RequestRecord(
            method="GET",
            path="/search",
            route_pattern="/search",
            query=[("q", "widgets"), ("page", "2"), ("tag", "a"), ("tag", "b")],
        )
        interceptor.observe(request, _json_response([]))
        parameters = {p["name"]: p for p in store.snapshot()["paths"]["/search"]["get"]["parameters"]}

        assert parameters["q"] == {"name": "q", "in": "query", "type": "string", "required": False, "example": "widgets"}
        assert parameters["page"]["type"] == "integer"
        assert parameters["tag"]["type"] == "array"
        assert parameters["tag"]["items"] == {"type": "string"}
        assert parameters["tag"]["collectionFormat"] == "multi"

    def test_configured_header_parameters(self, interceptor, store):
        request = RequestRecord(
            method="GET",
            path="/x",
            route_pattern="/x",
            headers={"x-tenant": "acme", "accept-language": "en", "user-agent": "pytest"},
        )
        interceptor.observe(request, ResponseRecord(status=204))
        parameters = store.snapshot()["paths"]["/x"]["get"]["parameters"]
        # x-tenant is a security header and is documented as a scheme instead
        assert [(p["name"], p["in"]) for p in parameters] == [("accept-language", "header")]
        assert store.snapshot()["paths"]["/x"]["get"]["security"] == [{"x-tenant": []}]

    def test_json_body_parameter(self, interceptor, store):
        request = RequestRecord(
            method="POST",
            path="/hello2",
            route_pattern="/hello2",
            headers={"content-type": "application/json"},
            body=b'{"foo": "bar"}',
        )
        interceptor.observe(request, _json_response({"key": "secret"}))
        operation = store.snapshot()["paths"]["/hello2"]["post"]

        assert operation["consumes"] == ["application/json"]
        assert operation["produces"] == ["application/json"]
        assert operation["parameters"] == [
            {
                "name": "body",
                "in": "body",
                "schema": {"type": "object", "properties": {"foo": {"type": "string", "example": "bar"}}},
                "required": True,
            }
        ]

    def test_malformed_json_body_is_not_documented(self, interceptor, store):
        request = RequestRecord(
            method="POST",
            path="/x",
            route_pattern="/x",
            headers={"content-type": "application/json"},
            body=b"{broken",
        )
        interceptor.observe(request, ResponseRecord(status=400, headers={"content-type": "application/json"}, body=b"{"))
        operation = store.snapshot()["paths"]["/x"]["post"]
        assert operation["parameters"] == []
        assert "consumes" not in operation
        assert operation["responses"]["400"] == {"description": "Bad Request"}

    def test_text_response(self, interceptor, store):
        request = RequestRecord(method="GET", path="/hello", route_pattern="/hello")
        response = ResponseRecord(status=200, headers={"content-type": "text/plain; charset=utf-8"}, body=b"whatever")
        interceptor.observe(request, response)
        operation = store.snapshot()["paths"]["/hello"]["get"]
        assert operation["produces"] == ["text/plain"]
        assert operation["responses"]["200"]["schema"] == {"type": "string", "example": "whatever"}

    def test_unmatched_request_is_skipped(self, interceptor, store):
        assert interceptor.observe(RequestRecord(method="GET", path="/nowhere"), ResponseRecord(status=404)) is None
        assert store.snapshot()["paths"] == {}

    def test_ignored_path_is_skipped(self, interceptor, store):
        request = RequestRecord(method="GET", path="/api-spec", route_pattern="/api-spec")
        assert interceptor.observe(request, _json_response({})) is None
        assert store.snapshot()["paths"] == {}

    def test_hooks_assign_correlation_id(self, interceptor):
        request = RequestRecord(method="GET", path="/x", route_pattern="/x")
        interceptor.on_request_start(request)
        assert request.correlation_id.startswith("specwatch-")

    def test_failures_are_tracked_not_raised(self, interceptor):
        request = RequestRecord(method="GET", path="/x", route_pattern="/x")
        interceptor.on_request_start(request)
        with patch.object(interceptor.store, "record", side_effect=RuntimeError("boom")):
            interceptor.on_request_end(request, ResponseRecord(status=200))

        assert interceptor.errors.has_errors()
        error = interceptor.errors.errors[0]
        assert error["error_type"] == "RuntimeError"
        assert error["correlation_id"] == request.correlation_id
        assert error["context"]["path"] == "/x"
        assert interceptor.observed_count == 0

    def test_observed_count(self, interceptor):
        request = RequestRecord(method="GET", path="/x", route_pattern="/x")
        interceptor.on_request_end(request, ResponseRecord(status=200))
        interceptor.on_request_end(request, ResponseRecord(status=200))
        assert interceptor.observed_count == 2
