"""
Tests for the JSON log formatter.
"""
import json
import logging
import sys

from stablemap.core.logging import JsonFormatter


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("stablemap.test", logging.WARNING, __file__, 1, "Rotated to %s", ("GPT-4o",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    def test_structured_fields_are_copied(self):
        line = JsonFormatter().format(_record(provider="openai", model="gpt-4o", unrelated="x"))
        payload = json.loads(line)
        assert payload["message"] == "Rotated to GPT-4o"
        assert payload["level"] == "WARNING"
        assert payload["provider"] == "openai"
        assert payload["model"] == "gpt-4o"
        assert "unrelated" not in payload
        assert payload["service"] == "stablemap_backend"
        assert payload["timestamp"].endswith("Z")

    def test_exception_included(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = _record()
            record.exc_info = sys.exc_info()
        payload = json.loads(JsonFormatter().format(record))
        assert "ValueError: boom" in payload["exc_info"]
