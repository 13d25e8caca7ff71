"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of specwatch, licensed under the MIT License.
See LICENSE file for details.
"""

import json
from decimal import Decimal

import pytest

from specwatch.inference import JsonKind, classify, coerce_scalar, infer, parse_body


@pytest.mark.unit()
class TestClassify:
    def test_booleans_are_not_integers(self):
        """bool must be tagged before int since it subclasses it."""
        assert classify(True) is JsonKind.BOOL
        assert classify(0) is JsonKind.INT

    def test_integral_float_is_integer(self):
        assert classify(2.0) is JsonKind.INT
        assert classify(2.5) is JsonKind.FLOAT

    def test_containers(self):
        assert classify({"a": 1}) is JsonKind.OBJECT
        assert classify([1]) is JsonKind.ARRAY
        assert classify((1, 2)) is JsonKind.ARRAY
        assert classify(None) is JsonKind.NULL

    def test_exotic_values(self):
        assert classify(Decimal("1.5")) is JsonKind.OTHER
        assert classify(float("nan")) is JsonKind.FLOAT


@pytest.mark.unit()
class TestInfer:
    def test_primitives(self):
        assert infer("whatever") == {"type": "string", "example": "whatever"}
        assert infer(1) == {"type": "integer", "example": 1}
        assert infer(1.5) == {"type": "number", "example": 1.5}
        assert infer(False) == {"type": "boolean", "example": False}

    def test_null_is_omitted(self):
        assert infer(None) is None

    def test_object_drops_null_properties(self):
        """Null values are left out of the properties entirely."""
        schema = infer({"result": "OK", "missing": None, "count": 3})
        assert schema == {
            "type": "object",
            "properties": {
                "result": {"type": "string", "example": "OK"},
                "count": {"type": "integer", "example": 3},
            },
        }

    def test_nested_structures(self):
        schema = infer({"user": {"tags": ["a", "b"]}})
        tags = schema["properties"]["user"]["properties"]["tags"]
        assert tags["type"] == "array"
        assert tags["items"] == {"type": "string", "example": "a"}

    def test_empty_array_has_empty_items(self):
        assert infer([]) == {"type": "array", "items": {}}

    def test_array_items_from_first_element(self):
        schema = infer([{"id": 1}, {"id": 2, "name": "second"}])
        assert schema["items"] == {"type": "object", "properties": {"id": {"type": "integer", "example": 1}}}

    def test_array_skips_leading_nulls(self):
        schema = infer([None, 3])
        assert schema["items"] == {"type": "integer", "example": 3}

    def test_exotic_value_degrades_to_string(self):
        schema = infer(Decimal("1.25"))
        assert schema == {"type": "string", "example": "1.25"}

    def test_non_string_keys_are_stringified(self):
        schema = infer({1: "one"})
        assert list(schema["properties"]) == ["1"]

    def test_non_finite_numbers_have_no_example(self):
        schema = infer({"price": float("nan"), "limit": float("inf"), "floor": float("-inf")})
        assert schema["properties"] == {
            "price": {"type": "number"},
            "limit": {"type": "number"},
            "floor": {"type": "number"},
        }
        json.dumps(schema, allow_nan=False)


@pytest.mark.unit()
class TestCoerceScalar:
    @pytest.mark.parametrize(
        "text, expected",
        [("1", 1), ("-42", -42), ("1.5", 1.5), ("true", True), ("false", False), ("abc", "abc"), ("1a", "1a")],
    )
    def test_coerce(self, text, expected):
        value = coerce_scalar(text)
        assert value == expected
        assert type(value) is type(expected)

    def test_non_text_passes_through(self):
        assert coerce_scalar(7) == 7


@pytest.mark.unit()
class TestParseBody:
    def test_absent_body(self):
        assert parse_body(None, "application/json") == (False, None)
        assert parse_body(b"", "text/plain") == (False, None)

    def test_json_body(self):
        assert parse_body(b'{"foo": "bar"}', "application/json") == (True, {"foo": "bar"})

    def test_vendor_json_body(self):
        assert parse_body(b"[1]", "application/problem+json") == (True, [1])

    def test_malformed_json_is_skipped(self):
        assert parse_body(b"{not json", "application/json") == (False, None)

    def test_text_body_is_opaque_string(self):
        assert parse_body(b'{"foo": "bar"}', "text/plain") == (True, '{"foo": "bar"}')

    def test_body_without_content_type_is_text(self):
        assert parse_body(b"hello", None) == (True, "hello")

    def test_json_constants_decode_to_numbers(self):
        present, value = parse_body(b'{"price": NaN, "limit": Infinity}', "application/json")
        assert present
        assert infer(value) == {
            "type": "object",
            "properties": {"price": {"type": "number"}, "limit": {"type": "number"}},
        }

    def test_form_body(self):
        present, value = parse_body(b"name=widget&count=2", "application/x-www-form-urlencoded")
        assert present
        assert value == {"name": "widget", "count": 2}
