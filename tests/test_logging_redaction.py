"""Tests for contact-data redaction in structured logs."""

import io
import json
import logging

import structlog

from chatctx.logging import _redact_event, _redact_value, get_logger, mask_secret, setup_logging


# ---------------------------------------------------------------------------
# mask_secret tests
# ---------------------------------------------------------------------------

class TestMaskSecret:
    def test_normal_value(self):
        assert mask_secret("jane@example.com") == "ja****om"

    def test_short_value(self):
        assert mask_secret("short") == "****"

    def test_exactly_6_chars(self):
        assert mask_secret("123456") == "****"

    def test_7_chars(self):
        assert mask_secret("1234567") == "12****67"

    def test_empty_string(self):
        assert mask_secret("") == "****"


# ---------------------------------------------------------------------------
# _redact_value tests
# ---------------------------------------------------------------------------

class TestRedactValue:
    def test_email(self):
        result = _redact_value("reach me at jane.doe@acme.io please")
        assert "jane.doe@acme.io" not in result
        assert "****" in result
        assert result.startswith("reach me at ")

    def test_international_phone(self):
        result = _redact_value("call +1 (555) 123-4567")
        assert "123-4567" not in result
        assert "****" in result

    def test_plain_phone(self):
        result = _redact_value("5551234567")
        assert result == "55****67"

    def test_iso_timestamp_untouched(self):
        stamp = "2026-03-01T12:00:00.000Z"
        assert _redact_value(stamp) == stamp

    def test_budget_untouched(self):
        assert _redact_value("$50K per year") == "$50K per year"


# ---------------------------------------------------------------------------
# _redact_event tests
# ---------------------------------------------------------------------------

class TestRedactEvent:
    def test_redacts_string_values(self):
        event = {
            "event": "Entity merged",
            "value": "bob@example.org",
            "count": 42,
        }
        result = _redact_event(None, "info", event)
        assert "bob@example.org" not in result["value"]
        assert "****" in result["value"]
        assert result["count"] == 42  # non-string untouched

    def test_leaves_safe_strings(self):
        event = {"event": "hello", "slot": "decision_makers"}
        result = _redact_event(None, "info", event)
        assert result["slot"] == "decision_makers"

    def test_redacts_inside_lists_and_dicts(self):
        event = {
            "event": "Entity record degraded",
            "samples": ["visitorName: call 5551234567", "budget: ok"],
            "extra": {"contact": "ann@corp.com"},
        }
        result = _redact_event(None, "warning", event)
        assert result["samples"] == ["visitorName: call 55****67", "budget: ok"]
        assert result["extra"]["contact"] == "an****om"


def test_setup_logging_sets_level_and_single_handler():
    root = logging.getLogger("chatctx")
    try:
        setup_logging(json_output=False, level="debug")
        setup_logging(json_output=True, level="warning")
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
    finally:
        root.handlers.clear()
        root.setLevel(logging.NOTSET)
        root.propagate = True
        structlog.reset_defaults()


def test_json_output_is_redacted():
    stream = io.StringIO()
    root = logging.getLogger("chatctx")
    try:
        setup_logging(json_output=True, level="info", stream=stream)
        get_logger("chatctx.tests").info("Visitor shared contact", value="bob@example.org", slot="contact_method")
        line = json.loads(stream.getvalue().strip().splitlines()[-1])
    finally:
        root.handlers.clear()
        root.setLevel(logging.NOTSET)
        root.propagate = True
        structlog.reset_defaults()

    assert line["event"] == "Visitor shared contact"
    assert line["value"] == "bo****rg"
    assert line["slot"] == "contact_method"
    assert line["level"] == "info"
    assert line["logger"] == "chatctx.tests"
