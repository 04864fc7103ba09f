"""Tests for the observability module.

Tests for metrics collection, timing, tracing and logging configuration.
"""
import json
import logging
import time
from logging.handlers import RotatingFileHandler

import pytest

from anchored_notes.observability import (
    PACKAGE_LOGGER,
    MetricsCollector,
    configure_logging,
    is_logging_configured,
    timed_operation,
    traced,
)


class TestMetricsCollector:
    """Tests for MetricsCollector class."""

    @pytest.fixture
    def metrics_collector(self, tmp_path):
        """Create a MetricsCollector with a temp file."""
        return MetricsCollector(metrics_file=tmp_path / "metrics.json")

    def test_record_successful_operation(self, metrics_collector):
        """Test recording a successful operation."""
        metrics_collector.record_operation("test_op", 100.0, True)

        metrics = metrics_collector.get_metrics()
        assert "test_op" in metrics
        assert metrics["test_op"]["count"] == 1
        assert metrics["test_op"]["success_count"] == 1
        assert metrics["test_op"]["error_count"] == 0
        assert metrics["test_op"]["avg_duration_ms"] == 100.0

    def test_record_failed_operation(self, metrics_collector):
        """Test recording a failed operation with error."""
        metrics_collector.record_operation("test_op", 50.0, False, "Test error")

        metrics = metrics_collector.get_metrics()
        assert metrics["test_op"]["count"] == 1
        assert metrics["test_op"]["success_count"] == 0
        assert metrics["test_op"]["error_count"] == 1
        assert metrics["test_op"]["last_error"] == "Test error"
        assert metrics["test_op"]["last_error_time"] is not None

    def test_multiple_operations_aggregated(self, metrics_collector):
        """Test that multiple operations are aggregated correctly."""
        metrics_collector.record_operation("test_op", 100.0, True)
        metrics_collector.record_operation("test_op", 200.0, True)
        metrics_collector.record_operation("test_op", 300.0, False, "Error")

        metrics = metrics_collector.get_metrics()
        assert metrics["test_op"]["count"] == 3
        assert metrics["test_op"]["success_count"] == 2
        assert metrics["test_op"]["error_count"] == 1
        assert metrics["test_op"]["avg_duration_ms"] == 200.0  # (100+200+300)/3
        assert metrics["test_op"]["min_duration_ms"] == 100.0
        assert metrics["test_op"]["max_duration_ms"] == 300.0

    def test_save_metrics(self, metrics_collector, tmp_path):
        """Test saving a metrics snapshot."""
        metrics_collector.record_operation("op1", 100.0, True)
        metrics_collector.record_operation("op2", 200.0, False, "Error")
        assert metrics_collector.save_metrics() is True

        with open(tmp_path / "metrics.json") as f:
            data = json.load(f)
        assert set(data["operations"]) == {"op1", "op2"}
        assert data["operations"]["op2"]["error_count"] == 1

    def test_save_without_file(self):
        """Without a metrics file nothing is written."""
        assert MetricsCollector().save_metrics() is False

    def test_get_summary(self, metrics_collector):
        """Test getting metrics summary."""
        metrics_collector.record_operation("op1", 100.0, True)
        metrics_collector.record_operation("op2", 200.0, False, "Error")

        summary = metrics_collector.get_summary()
        assert summary["total_operations"] == 2
        assert summary["total_success"] == 1
        assert summary["total_errors"] == 1
        assert "op1" in summary["operations_tracked"]
        assert "op2" in summary["operations_tracked"]

    def test_reset_metrics(self, metrics_collector):
        """Test resetting all metrics."""
        metrics_collector.record_operation("test_op", 100.0, True)
        assert len(metrics_collector.get_metrics()) == 1

        metrics_collector.reset()
        assert len(metrics_collector.get_metrics()) == 0


class TestTimedOperation:
    """Tests for timed_operation and traced."""

    def test_timed_operation_records_success(self, fresh_metrics):
        """Test that successful operations are timed and recorded."""
        with timed_operation("test_op", path="src") as op:
            time.sleep(0.01)  # 10ms
            op["custom_data"] = "value"

        metrics = fresh_metrics.get_metrics()
        assert metrics["test_op"]["success_count"] == 1
        assert metrics["test_op"]["avg_duration_ms"] >= 10  # At least 10ms
        assert len(op["correlation_id"]) == 8

    def test_timed_operation_records_failure(self, fresh_metrics):
        """Test that failed operations are recorded with error."""
        with pytest.raises(ValueError):
            with timed_operation("test_op"):
                raise ValueError("Test error")

        metrics = fresh_metrics.get_metrics()
        assert metrics["test_op"]["error_count"] == 1
        assert "Test error" in metrics["test_op"]["last_error"]

    def test_traced_uses_function_name(self, fresh_metrics):
        """Without a name the function name is the operation."""
        @traced()
        def list_things():
            return [1, 2, 3]

        assert list_things() == [1, 2, 3]
        assert fresh_metrics.get_metrics()["list_things"]["count"] == 1

    def test_traced_custom_name(self, fresh_metrics, caplog):
        """A custom name and result size are logged."""
        @traced("custom")
        def work(path=None):
            return {"a": 1}

        with caplog.at_level(logging.DEBUG, logger="anchored_notes.observability"):
            work(path="src")
        assert "custom" in fresh_metrics.get_metrics()
        assert any("result_count=1" in r.getMessage() for r in caplog.records)
        assert any("path=src" in r.getMessage() for r in caplog.records)


class TestConfigureLogging:
    """Tests for configure_logging function."""

    @pytest.fixture(autouse=True)
    def restore_package_logger(self):
        """Detach handlers added during the test."""
        package_logger = logging.getLogger(PACKAGE_LOGGER)
        handlers = list(package_logger.handlers)
        level = package_logger.level
        yield
        for handler in package_logger.handlers[:]:
            if handler not in handlers:
                package_logger.removeHandler(handler)
                handler.close()
        package_logger.setLevel(level)

    def test_configure_logging_creates_directory(self, tmp_path):
        """Test that configure_logging creates log directory."""
        log_dir = tmp_path / "logs"
        result = configure_logging(log_dir=log_dir)
        assert result == log_dir
        assert log_dir.is_dir()
        assert is_logging_configured()

    def test_configure_logging_sets_level(self, tmp_path):
        """Test that configure_logging sets the correct log level."""
        configure_logging(log_dir=tmp_path / "logs", level=logging.DEBUG)
        assert logging.getLogger(PACKAGE_LOGGER).level == logging.DEBUG

    def test_configure_logging_is_idempotent(self, tmp_path):
        """Configuring twice attaches one file handler."""
        configure_logging(log_dir=tmp_path / "logs")
        configure_logging(log_dir=tmp_path / "logs")
        handlers = [
            h for h in logging.getLogger(PACKAGE_LOGGER).handlers
            if isinstance(h, RotatingFileHandler)
        ]
        assert len(handlers) == 1

    def test_package_messages_reach_file(self, tmp_path):
        """Module loggers under the package write to the log file."""
        log_dir = tmp_path / "logs"
        configure_logging(log_dir=log_dir)
        logging.getLogger("anchored_notes.storage.note_repository").info("hello from store")
        for handler in logging.getLogger(PACKAGE_LOGGER).handlers:
            handler.flush()
        assert "hello from store" in (log_dir / "anchored-notes.log").read_text()
