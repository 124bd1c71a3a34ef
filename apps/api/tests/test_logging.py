"""
Structured logging tests.
"""
import json
import logging
from uuid import uuid4

from core.logging import JSONFormatter, TextFormatter, scoring_fields


def _record(**extra):
    record = logging.LogRecord("services.llm_scoring", logging.INFO, __file__, 1, "Scored slot", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestScoringFields:

    def test_ids_are_stringified_and_none_dropped(self):
        spot_id = uuid4()
        extra = scoring_fields(spot_id, "wingfoil", None, None, attempt=2)
        assert extra == {"extra_fields": {"spot_id": str(spot_id), "sport": "wingfoil", "attempt": 2}}


class TestFormatters:

    def test_json_formatter_merges_fields(self):
        line = JSONFormatter().format(_record(**scoring_fields(sport="surfing", duration_ms=812)))
        data = json.loads(line)
        assert data["message"] == "Scored slot"
        assert data["sport"] == "surfing"
        assert data["duration_ms"] == 812

    def test_text_formatter_appends_fields(self):
        line = TextFormatter().format(_record(**scoring_fields(sport="surfing")))
        assert line.endswith("Scored slot [sport=surfing]")

    def test_text_formatter_without_fields(self):
        assert TextFormatter().format(_record()).endswith("Scored slot")
