"""
Unit tests for shared structured logging helpers.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared import logging as catalog_logging
from shared.logging import (
    add_correlation_context,
    add_service_context,
    clear_context,
    configure_logging,
    request_id_var,
    set_request_id,
)


class TestLoggingContext:
    """Test cases for the log event processors."""

    @pytest.fixture(autouse=True)
    def reset_context(self):
        yield
        clear_context()

    def test_component_taken_from_logger_name(self):
        configure_logging("catalog", "debug")

        event = add_service_context(None, "info", {"logger": "catalog.cache.products"})

        assert event["service"] == "catalog"
        assert event["component"] == "cache.products"

    def test_service_logger_has_no_component(self):
        configure_logging("catalog")

        event = add_service_context(None, "info", {"logger": "catalog"})

        assert event["service"] == "catalog"
        assert "component" not in event

    def test_service_falls_back_to_logger_prefix(self, monkeypatch):
        monkeypatch.setattr(catalog_logging, "_service_name", None)

        event = add_service_context(None, "info", {"logger": "catalog.loader"})

        assert event["service"] == "catalog"

    def test_request_id_added_inside_request(self):
        set_request_id("req-42")

        event = add_correlation_context(None, "info", {})

        assert event["request_id"] == "req-42"

    def test_request_id_generated_when_missing(self):
        request_id = set_request_id(None)

        assert request_id
        assert request_id_var.get() == request_id

    def test_no_request_id_outside_request(self):
        clear_context()

        assert "request_id" not in add_correlation_context(None, "info", {})
