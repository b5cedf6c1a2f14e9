"""Tests for oddsvault.core.logging module."""

from __future__ import annotations

import json
import logging
from unittest.mock import MagicMock

import pytest


# ============================================================================
# Correlation ID Tests
# ============================================================================


class TestCorrelationId:
    """Tests for correlation ID functionality."""

    def test_get_correlation_id_default_none(self):
        """Should return None when no correlation ID is set."""
        from oddsvault.core.logging import get_correlation_id, set_correlation_id

        set_correlation_id(None)
        assert get_correlation_id() is None

    def test_generate_correlation_id(self):
        """Should generate unique UUID correlation IDs."""
        from oddsvault.core.logging import generate_correlation_id

        id1 = generate_correlation_id()
        id2 = generate_correlation_id()

        assert id1 != id2
        assert len(id1) == 36

    def test_correlation_context_restores_previous(self):
        """Context manager should restore the outer ID on exit."""
        from oddsvault.core.logging import (
            correlation_context,
            get_correlation_id,
            set_correlation_id,
        )

        set_correlation_id("outer")
        with correlation_context("inner") as cid:
            assert cid == "inner"
            assert get_correlation_id() == "inner"
        assert get_correlation_id() == "outer"

        set_correlation_id(None)

    def test_correlation_context_generates_id(self):
        """Context manager should generate an ID if not provided."""
        from oddsvault.core.logging import correlation_context, set_correlation_id

        set_correlation_id(None)
        with correlation_context() as cid:
            assert cid is not None
            assert len(cid) == 36


# ============================================================================
# Formatter Tests
# ============================================================================


def _record(level=logging.INFO, msg="Event 1 closed"):
    return logging.LogRecord(
        name="oddsvault.market.ledger",
        level=level,
        pathname="ledger.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_basic_fields(self):
        """Output is JSON with level, logger and message."""
        from oddsvault.core.logging import JSONFormatter, set_correlation_id

        set_correlation_id(None)
        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "oddsvault.market.ledger"
        assert data["message"] == "Event 1 closed"
        assert "correlation_id" not in data
        assert "source" not in data

    def test_includes_correlation_id(self):
        """Correlation ID from context is included."""
        from oddsvault.core.logging import JSONFormatter, correlation_context

        with correlation_context("tx-123"):
            data = json.loads(JSONFormatter().format(_record()))
        assert data["correlation_id"] == "tx-123"

    def test_warning_includes_source(self):
        """Warnings and above carry source location."""
        from oddsvault.core.logging import JSONFormatter

        data = json.loads(JSONFormatter().format(_record(level=logging.WARNING)))
        assert data["source"]["line"] == 10

    def test_extra_data(self):
        """extra_data attached by OperationLogger is serialized."""
        from oddsvault.core.logging import JSONFormatter

        record = _record()
        record.extra_data = {"operation": "EventLedger.place_bet"}
        data = json.loads(JSONFormatter().format(record))
        assert data["extra"] == {"operation": "EventLedger.place_bet"}


class TestStandardFormatter:
    """Tests for StandardFormatter."""

    def test_prefixes_short_correlation_id(self):
        """Correlation ID is shortened to eight characters."""
        from oddsvault.core.logging import StandardFormatter, correlation_context

        formatter = StandardFormatter(use_colors=False)
        with correlation_context("abcdef1234567890"):
            output = formatter.format(_record())
        assert "[abcdef12] Event 1 closed" in output

    def test_does_not_mutate_record(self):
        """Formatting must leave the original record untouched."""
        from oddsvault.core.logging import StandardFormatter, correlation_context

        record = _record()
        with correlation_context("abcdef1234567890"):
            StandardFormatter(use_colors=False).format(record)
        assert record.msg == "Event 1 closed"


# ============================================================================
# configure_logging Tests
# ============================================================================


class TestConfigureLogging:
    """Tests for configure_logging function."""

    @pytest.fixture(autouse=True)
    def _restore_root(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_json_format_explicit(self, clean_env):
        from oddsvault.core.logging import JSONFormatter, configure_logging

        configure_logging(json_format=True)
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_env_log_format_text(self, monkeypatch, clean_env):
        from oddsvault.core.logging import StandardFormatter, configure_logging

        monkeypatch.setenv("ODDSVAULT_LOG_FORMAT", "text")
        configure_logging()
        assert isinstance(logging.getLogger().handlers[0].formatter, StandardFormatter)

    def test_env_log_level(self, monkeypatch, clean_env):
        from oddsvault.core.logging import configure_logging

        monkeypatch.setenv("ODDSVAULT_LOG_LEVEL", "WARNING")
        configure_logging(json_format=True)
        assert logging.getLogger().level == logging.WARNING

    def test_log_file_uses_json(self, tmp_path, clean_env):
        from oddsvault.core.logging import JSONFormatter, configure_logging

        log_file = tmp_path / "engine.log"
        configure_logging(json_format=False, log_file=str(log_file))
        root = logging.getLogger()
        file_handlers = [h for h in root.handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1
        assert isinstance(file_handlers[0].formatter, JSONFormatter)
        file_handlers[0].close()


# ============================================================================
# OperationLogger Tests
# ============================================================================


class TestOperationLogger:
    """Tests for OperationLogger."""

    def test_log_call_sanitizes_secrets(self):
        """Salts and similar secrets are redacted."""
        from oddsvault.core.logging import OperationLogger

        mock_logger = MagicMock()
        op_logger = OperationLogger(mock_logger)
        op_logger.log_call("CommitRevealSource.reveal", {"event_id": 1, "salt": "s3cret"})

        extra = mock_logger.log.call_args.kwargs["extra"]["extra_data"]
        assert extra["arguments"] == {"event_id": 1, "salt": "[REDACTED]"}

    def test_log_result_rolled_back(self):
        """Failed operations log the exception class."""
        from oddsvault.core.logging import OperationLogger

        mock_logger = MagicMock()
        OperationLogger(mock_logger).log_result("EventLedger.claim_payout", success=False, error="InvalidStateError")

        message = mock_logger.log.call_args.args[1]
        assert message == "Operation result: EventLedger.claim_payout -> rolled back (InvalidStateError)"

    def test_long_strings_truncated(self):
        from oddsvault.core.logging import OperationLogger

        sanitized = OperationLogger(MagicMock())._sanitize({"reason": "x" * 600})
        assert len(sanitized["reason"]) == 503

    def test_module_level_instance(self):
        from oddsvault.core.logging import OperationLogger, operation_logger

        assert isinstance(operation_logger, OperationLogger)
        assert operation_logger.logger.name == "oddsvault.operations"
