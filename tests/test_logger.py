from __future__ import annotations

import json
import logging

from forecast_graph.shared.kernel.tools.logger import (
    _JsonLogFormatter,
    _LogContextFilter,
    _TextLogFormatter,
    bind_log_context,
    clear_log_context,
    get_log_context,
    log_context,
    sanitize_for_logging,
)


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="forecast_graph.test",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="metric series evaluated",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_sanitize_for_logging_redacts_nested_secrets() -> None:
    payload = {
        "node_id": "op",
        "headers": {"Authorization": "Bearer abc", "X-Api-Key": "k"},
        "items": [{"password": "p"}, 3],
    }

    assert sanitize_for_logging(payload) == {
        "node_id": "op",
        "headers": {"Authorization": "[REDACTED]", "X-Api-Key": "[REDACTED]"},
        "items": [{"password": "[REDACTED]"}, 3],
    }


def test_log_context_binds_and_restores_request_keys() -> None:
    clear_log_context()
    with log_context(forecast_id="fc-1", unknown_key="ignored"):
        with log_context(metric_id=" revenue ", node_id=None):
            assert get_log_context() == {"forecast_id": "fc-1", "metric_id": "revenue"}
        assert get_log_context() == {"forecast_id": "fc-1"}
    assert get_log_context() == {}


def test_json_formatter_emits_context_event_and_fields() -> None:
    clear_log_context()
    bind_log_context(forecast_id="fc-9")
    try:
        record = _record(
            event="forecast_metric_evaluated",
            error_code="FORECAST_SEED_HISTORICAL_DATA_MISSING",
            fields={"month_count": 3, "token": "secret-value"},
        )
        _LogContextFilter().filter(record)
        payload = json.loads(_JsonLogFormatter().format(record))
    finally:
        clear_log_context()

    assert payload["level"] == "WARNING"
    assert payload["message"] == "metric series evaluated"
    assert payload["event"] == "forecast_metric_evaluated"
    assert payload["error_code"] == "FORECAST_SEED_HISTORICAL_DATA_MISSING"
    assert payload["forecast_id"] == "fc-9"
    assert "metric_id" not in payload
    assert payload["fields"] == {"month_count": 3, "token": "[REDACTED]"}


def test_text_formatter_renders_key_values() -> None:
    record = _record(event="forecast_trees_built", fields={"tree_count": 2})

    line = _TextLogFormatter().format(record)

    assert "WARNING forecast_graph.test metric series evaluated" in line
    assert "event=forecast_trees_built" in line
    assert 'fields={"tree_count": 2}' in line
