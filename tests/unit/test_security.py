"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of specwatch, licensed under the MIT License.
See LICENSE file for details.
"""

import pytest

from specwatch.security import detect, is_security_header


@pytest.mark.unit()
class TestSecurityDetection:
    def test_authorization_and_x_headers(self):
        detection = detect({"Authorization": "Bearer 123", "X-Header": "123", "Accept": "*/*"})
        assert detection.schemes == ["authorization", "x-header"]
        assert detection.new_schemes == ["authorization", "x-header"]

    def test_known_schemes_are_not_new(self):
        detection = detect({"authorization": "Bearer 1", "x-api-key": "k"}, known=["authorization"])
        assert detection.schemes == ["authorization", "x-api-key"]
        assert detection.new_schemes == ["x-api-key"]

    def test_header_pairs_with_duplicates(self):
        detection = detect([("X-Trace", "1"), ("x-trace", "2"), ("content-type", "text/plain")])
        assert detection.schemes == ["x-trace"]

    def test_no_headers(self):
        detection = detect(None)
        assert detection.schemes == []
        assert detection.definitions() == {}

    def test_definitions_are_api_keys_in_header(self):
        definition = detect({"X-Header": "1"}).definitions()["x-header"]
        assert definition.to_dict() == {"type": "apiKey", "name": "x-header", "in": "header"}

    def test_prefix_is_case_insensitive(self):
        assert is_security_header("AUTHORIZATION")
        assert is_security_header("x-Request-Id")
        assert not is_security_header("Accept")
