"""
Unit tests for logging, alert forwarding and metrics.
"""

import json
import logging

import httpx
import pytest

from sale_actions.observability.alerts import WatchtowerHandler, severity_for
from sale_actions.observability.logger import build_formatter, log_operation, setup_logger
from sale_actions.observability.metrics import (
    REGISTRY,
    MetricsCollector,
    generate_metrics,
)

pytestmark = pytest.mark.unit

WATCHTOWER_TYPES = {"info": "t-info", "warning": "t-warn", "severe": "t-severe"}


def make_record(level: int, message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("sale_actions.test", level, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def watchtower(handler_fn) -> WatchtowerHandler:
    client = httpx.Client(transport=httpx.MockTransport(handler_fn))
    return WatchtowerHandler(
        endpoint="https://watchtower.test/add_message",
        app_id="sale-actions",
        token="wt-token",
        types=WATCHTOWER_TYPES,
        client=client,
    )


class TestWatchtowerHandler:
    """Tests for WatchtowerHandler"""

    @pytest.mark.parametrize(
        "level,expected",
        [
            (logging.DEBUG, "info"),
            (logging.INFO, "info"),
            (logging.WARNING, "warning"),
            (logging.ERROR, "severe"),
            (logging.CRITICAL, "severe"),
        ],
    )
    def test_severity_mapping(self, level, expected):
        """Test logging level to watchtower type mapping"""
        assert severity_for(level) == expected

    def test_payload(self):
        """Test that records are posted with token, app id and type id"""
        posted = []
        handler = watchtower(lambda request: posted.append(json.loads(request.content)) or httpx.Response(200))

        handler.emit(make_record(logging.ERROR, "dispatch failed"))

        assert posted == [{
            "token": "wt-token",
            "log": {"app_id": "sale-actions", "type": "t-severe", "message": "dispatch failed"},
        }]

    def test_local_only_records_not_forwarded(self):
        """Test that local_only records stay local"""
        posted = []
        handler = watchtower(lambda request: posted.append(request) or httpx.Response(200))

        handler.emit(make_record(logging.INFO, "invalid address", local_only=True))

        assert posted == []

    def test_forwarding_failure_not_raised(self, monkeypatch):
        """Test that a failing sink is reported through handleError only"""
        failures = []
        handler = watchtower(lambda request: httpx.Response(500))
        monkeypatch.setattr(handler, "handleError", failures.append)

        handler.emit(make_record(logging.WARNING, "empty groups"))

        assert len(failures) == 1

    def test_attached_to_logger(self):
        """Test forwarding through a configured logger honours the handler level"""
        posted = []
        handler = watchtower(lambda request: posted.append(json.loads(request.content)) or httpx.Response(200))
        handler.setLevel(logging.WARNING)
        logger = setup_logger("sale_actions_test_alerts", level="DEBUG", extra_handlers=[handler])

        logger.info("routine")
        logger.warning("empty groups")
        logger.error("invalid address", extra={"local_only": True})

        assert [item["log"]["message"] for item in posted] == ["empty groups"]


class TestLogger:
    """Tests for logger setup"""

    def test_json_formatter_fields(self):
        """Test that JSON output carries level, logger and message"""
        formatter = build_formatter("json")
        output = json.loads(formatter.format(make_record(logging.WARNING, "hello", pipeline="purchases")))

        assert output["level"] == "WARNING"
        assert output["logger"] == "sale_actions.test"
        assert output["message"] == "hello"
        assert output["pipeline"] == "purchases"

    def test_text_formatter(self):
        """Test the local development format"""
        line = build_formatter("text").format(make_record(logging.INFO, "hello"))
        assert "sale_actions.test - INFO" in line

    def test_setup_logger_replaces_handlers(self):
        """Test that repeated setup does not duplicate handlers"""
        setup_logger("sale_actions_test_setup", level="INFO")
        logger = setup_logger("sale_actions_test_setup", level="WARNING")

        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING

    def test_log_operation_records_duration(self, caplog):
        """Test that log_operation logs start and completion with a duration"""
        caplog.set_level(logging.INFO)
        logger = logging.getLogger("sale_actions.test_operation")

        with log_operation("purchases pass", logger=logger, pipeline="purchases") as operation:
            pass

        assert operation.duration is not None
        messages = [r.getMessage() for r in caplog.records]
        assert "Starting: purchases pass" in messages
        assert "Completed: purchases pass" in messages

    def test_log_operation_reraises(self, caplog):
        """Test that failures are logged and propagated"""
        logger = logging.getLogger("sale_actions.test_operation")

        with pytest.raises(RuntimeError):
            with log_operation("renewals pass", logger=logger):
                raise RuntimeError("boom")

        assert any(r.getMessage() == "Failed: renewals pass" for r in caplog.records)


class TestMetrics:
    """Tests for the metrics collector"""

    def test_collector_updates_registry(self):
        """Test that collector calls show up in the registry"""
        collector = MetricsCollector("metrics_test")
        before = REGISTRY.get_sample_value(
            "sale_actions_notifications_total", {"pipeline": "metrics_test", "outcome": "sent"}
        ) or 0.0

        collector.record_outcome("sent")
        collector.record_markers(3)
        collector.record_markers(0)
        collector.record_pass(0.25, aborted=False)

        assert REGISTRY.get_sample_value(
            "sale_actions_notifications_total", {"pipeline": "metrics_test", "outcome": "sent"}
        ) == before + 1
        assert REGISTRY.get_sample_value(
            "sale_actions_markers_written_total", {"pipeline": "metrics_test"}
        ) >= 3
        assert REGISTRY.get_sample_value(
            "sale_actions_passes_total", {"pipeline": "metrics_test", "status": "complete"}
        ) >= 1

    def test_exposition(self):
        """Test the text exposition format"""
        MetricsCollector("metrics_test").record_enriched()

        assert b"sale_actions_records_enriched_total" in generate_metrics()
