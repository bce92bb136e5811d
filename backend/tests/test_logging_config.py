"""
test_logging_config.py — JSON / text formatters and request-id handling.
"""

import io
import json
import logging

from app.services.logging_config import JSONFormatter, TextFormatter, setup_logging
from app.services.middleware import resolve_request_id


def _record(**extra):
    record = logging.LogRecord("rab-db", logging.INFO, __file__, 10, "calculation saved", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:

    def test_extras_lifted(self):
        payload = json.loads(JSONFormatter().format(_record(calculation_id=42, duration_ms=1.5)))
        assert payload["logger"] == "rab-db"
        assert payload["message"] == "calculation saved"
        assert payload["calculation_id"] == 42
        assert payload["duration_ms"] == 1.5

    def test_unknown_extras_ignored(self):
        payload = json.loads(JSONFormatter().format(_record(password="x")))
        assert "password" not in payload

    def test_non_json_values_stringified(self):
        from decimal import Decimal
        payload = json.loads(JSONFormatter().format(_record(rab=Decimal("1202985.00"))))
        assert payload["rab"] == "1202985.00"


class TestTextFormatter:

    def test_extras_appended(self):
        line = TextFormatter().format(_record(calculation_id=7))
        assert line.endswith("| calculation_id=7")
        assert "[rab-db] INFO: calculation saved" in line

    def test_no_extras(self):
        assert "|" not in TextFormatter().format(_record())


class TestSetupLogging:

    def test_single_handler(self):
        stream = io.StringIO()
        root = logging.getLogger()
        previous_handlers, previous_level = root.handlers[:], root.level
        try:
            setup_logging("debug", json_output=True, stream=stream)
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            logging.getLogger("rab-engine").info("cost composed", extra={"duration_ms": 3.2})
            assert json.loads(stream.getvalue().splitlines()[-1])["duration_ms"] == 3.2
            assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        finally:
            root.handlers = previous_handlers
            root.setLevel(previous_level)


class TestRequestId:

    def test_reuses_token(self):
        assert resolve_request_id("req-2026.10_19") == "req-2026.10_19"

    def test_rejects_long_or_unsafe(self):
        assert resolve_request_id("x" * 65) != "x" * 65
        assert resolve_request_id("<script>") != "<script>"

    def test_mints_when_missing(self):
        assert len(resolve_request_id(None)) == 36
