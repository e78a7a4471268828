"""
Observability Validation Test

This test validates the logging stack:
1. Correlation context (run, stage, document) set and restored per block
2. JSON formatter includes correlation IDs and extra fields
3. Human-readable formatter shows run/stage/document
4. Stage helpers log through correlated loggers

Pass criteria: every log line of a chain run can be traced to its run and stage.
"""

import json
import logging

import pytest


def test_observability_imports():
    """Verify all observability modules import correctly."""
    from core.observability import (
        get_logger, configure_logging, CorrelationContext,
        with_correlation, get_correlation_context,
        StructuredFormatter, HumanReadableFormatter,
        log_stage_start, log_stage_committed, log_stage_failed,
    )
    assert CorrelationContext is not None
    assert get_logger("test") is get_logger("test")


def make_record(msg="Test message", level=logging.INFO):
    return logging.LogRecord(
        name="core.pipeline.stages",
        level=level,
        pathname="stages.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )


class TestCorrelationContext:
    """Test correlation IDs."""

    def test_correlation_context_creation(self):
        """Create correlation context with all fields."""
        from core.observability.logging import CorrelationContext

        ctx = CorrelationContext(
            run_id="run-1a2b",
            workflow_id="doc-chain-1",
            workflow_run_id="wfr-123",
            activity_id="1",
            company_db="SBODEMOUS",
            card_code="C20000",
            stage="SALES_ORDER",
            doc_entry=125,
        )

        assert ctx.run_id == "run-1a2b"
        assert ctx.stage == "SALES_ORDER"
        assert ctx.to_dict()["doc_entry"] == 125

    def test_to_dict_skips_unset(self):
        from core.observability.logging import CorrelationContext

        assert CorrelationContext(run_id="run-1").to_dict() == {"run_id": "run-1"}

    def test_nested_blocks_merge_and_restore(self):
        """Inner blocks add fields; leaving a block restores the outer context."""
        from core.observability.logging import get_correlation_context, with_correlation

        assert get_correlation_context().run_id is None

        with with_correlation(run_id="run-1"):
            with with_correlation(stage="DOWN_PAYMENT_INVOICE", doc_entry=7):
                inner = get_correlation_context()
                assert inner.run_id == "run-1"
                assert inner.stage == "DOWN_PAYMENT_INVOICE"
                assert inner.doc_entry == 7

            outer = get_correlation_context()
            assert outer.run_id == "run-1"
            assert outer.stage is None

        assert get_correlation_context().run_id is None

    def test_none_values_do_not_clear(self):
        from core.observability.logging import get_correlation_context, with_correlation

        with with_correlation(run_id="run-1"):
            with with_correlation(run_id=None, stage="SALES_ORDER"):
                assert get_correlation_context().run_id == "run-1"


class TestFormatters:

    def test_structured_formatter_json_output(self):
        """StructuredFormatter outputs valid JSON with correlation IDs."""
        from core.observability.logging import StructuredFormatter, with_correlation

        formatter = StructuredFormatter()

        with with_correlation(run_id="run-1a2b", stage="SALES_ORDER"):
            record = make_record()
            record.extra_fields = {"doc_entry": 125, "duration_ms": 12.5}
            data = json.loads(formatter.format(record))

        assert data["message"] == "Test message"
        assert data["level"] == "INFO"
        assert data["run_id"] == "run-1a2b"
        assert data["stage"] == "SALES_ORDER"
        assert data["doc_entry"] == 125
        assert data["duration_ms"] == 12.5

    def test_human_readable_formatter(self):
        from core.observability.logging import HumanReadableFormatter, with_correlation

        formatter = HumanReadableFormatter()

        with with_correlation(run_id="run-1a2b", stage="INCOMING_PAYMENT", doc_entry=3):
            record = make_record("Stage committed")
            record.extra_fields = {"amount": "34"}
            line = formatter.format(record)

        assert "[run-1a2b/INCOMING_PAYMENT/#3]" in line
        assert line.endswith("Stage committed amount=34")

    def test_human_readable_without_context(self):
        from core.observability.logging import HumanReadableFormatter

        line = HumanReadableFormatter().format(make_record())
        assert "[-]" in line


class TestCorrelatedLogger:

    def test_extra_fields_reach_handler(self):
        from core.observability.logging import get_logger

        records = []

        class Capture(logging.Handler):
            def emit(self, record):
                records.append(record)

        handler = Capture()
        underlying = logging.getLogger("test.correlated")
        underlying.addHandler(handler)
        underlying.setLevel(logging.DEBUG)
        try:
            get_logger("test.correlated").info("hello", extra_fields={"doc_entry": 9})
        finally:
            underlying.removeHandler(handler)

        assert len(records) == 1
        assert records[0].getMessage() == "hello"
        assert records[0].extra_fields == {"doc_entry": 9}

    def test_exception_info_is_captured(self):
        from core.observability.logging import get_logger

        records = []

        class Capture(logging.Handler):
            def emit(self, record):
                records.append(record)

        handler = Capture()
        underlying = logging.getLogger("test.exceptions")
        underlying.addHandler(handler)
        try:
            try:
                raise ValueError("bad total")
            except ValueError:
                get_logger("test.exceptions").exception("failed")
        finally:
            underlying.removeHandler(handler)

        assert records[0].exc_info[0] is ValueError

    def test_stage_helpers(self, caplog):
        from core.observability.logging import log_stage_committed, log_stage_failed

        with caplog.at_level(logging.INFO, logger="core.pipeline"):
            log_stage_committed("SALES_ORDER", 125, duration_ms=12.345)
            log_stage_failed("DOWN_PAYMENT_INVOICE", "Item is inactive", error_code=-5002)

        committed, failed = caplog.records[-2:]
        assert committed.getMessage() == "Stage committed: SALES_ORDER"
        assert committed.extra_fields == {"doc_entry": 125, "duration_ms": 12.3}
        assert failed.levelno == logging.ERROR
        assert "Item is inactive" in failed.getMessage()
        assert failed.extra_fields == {"error_code": -5002}


if __name__ == "__main__":
    pytest.main([__file__, "-v", "-s"])
