"""
Observability & Configuration Tests

Validates the ambient stack:
1. Correlation context binds tenant/form/document IDs to log records
2. Structured (JSON) and human-readable formatters include the context
3. Settings load from the environment with validated values
"""

import json
import logging
from decimal import Decimal
from pathlib import Path

import pytest


def test_observability_imports():
    """Verify all observability modules import correctly."""
    from core.observability import (
        get_logger, configure_logging, CorrelationContext,
        get_correlation_context, with_correlation,
    )
    assert get_logger is not None
    assert configure_logging is not None
    assert CorrelationContext is not None
    assert get_correlation_context is not None
    assert with_correlation is not None


def _record(msg="Test message", level=logging.INFO, name="editor.document_editor"):
    return logging.LogRecord(
        name=name,
        level=level,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )


class TestCorrelatedLogging:
    """Test structured logging with correlation IDs."""

    def test_correlation_context_creation(self):
        """Create correlation context with all fields."""
        from core.observability.logging import CorrelationContext

        ctx = CorrelationContext(
            tenant_id="T-001",
            document_id="DOC-42",
            form="purchase_invoice",
            catalog="flow_sub_category",
            scope_key="CONTRACT-1",
        )

        assert ctx.tenant_id == "T-001"
        assert ctx.document_id == "DOC-42"
        assert ctx.to_dict()["catalog"] == "flow_sub_category"

    def test_merge_ignores_none(self):
        """Merging keeps existing values for None arguments."""
        from core.observability.logging import CorrelationContext

        ctx = CorrelationContext(tenant_id="T-001").merge(form="purchase_invoice", document_id=None)

        assert ctx.to_dict() == {"tenant_id": "T-001", "form": "purchase_invoice"}

    def test_context_restored_after_block(self):
        """with_correlation sets the context only inside the block."""
        from core.observability.logging import get_correlation_context, with_correlation

        assert get_correlation_context().tenant_id is None

        with with_correlation(tenant_id="T-TEST"):
            assert get_correlation_context().tenant_id == "T-TEST"
            with with_correlation(document_id="DOC-1"):
                inner = get_correlation_context()
                assert inner.tenant_id == "T-TEST"
                assert inner.document_id == "DOC-1"

        assert get_correlation_context().tenant_id is None

    def test_structured_formatter_json_output(self):
        """StructuredFormatter outputs valid JSON with context and extra fields."""
        from core.observability.logging import StructuredFormatter, with_correlation

        formatter = StructuredFormatter()
        record = _record()
        record.extra_fields = {"lines": 3}

        with with_correlation(tenant_id="T-001", document_id="DOC-42"):
            data = json.loads(formatter.format(record))

        assert data["message"] == "Test message"
        assert data["tenant_id"] == "T-001"
        assert data["document_id"] == "DOC-42"
        assert data["lines"] == 3
        assert data["level"] == "INFO"

    def test_human_readable_formatter(self):
        """HumanReadableFormatter prefixes the correlation IDs."""
        from core.observability.logging import HumanReadableFormatter, with_correlation

        formatter = HumanReadableFormatter()

        with with_correlation(tenant_id="T-001", form="purchase_invoice", document_id="DOC-42"):
            output = formatter.format(_record("Document saved"))

        assert "[T-001/purchase_invoice/doc:DOC-42]" in output
        assert output.endswith("Document saved")

    def test_human_readable_formatter_without_context(self):
        from core.observability.logging import HumanReadableFormatter

        output = HumanReadableFormatter().format(_record("Hello"))
        assert "[-]: Hello" in output

    def test_get_logger_is_cached(self):
        """get_logger returns one CorrelatedLogger per name."""
        from core.observability.logging import get_logger

        first = get_logger("cascade.selector")
        second = get_logger("cascade.selector")

        assert first is second
        assert first.name == "cascade.selector"

    def test_extra_fields_reach_handlers(self, caplog):
        """Records emitted by CorrelatedLogger carry extra_fields."""
        from core.observability.logging import get_logger

        logger = get_logger("store.test")
        logger.setLevel(logging.DEBUG)
        with caplog.at_level(logging.DEBUG, logger="store.test"):
            logger.info("Stored document", extra_fields={"lines": 2})

        record = caplog.records[-1]
        assert record.getMessage() == "Stored document"
        assert record.extra_fields == {"lines": 2}


class TestSettings:
    """Test environment-driven settings."""

    @pytest.fixture(autouse=True)
    def fresh_settings(self, monkeypatch):
        from core import config
        for name in ("RECON_TOLERANCE", "LOG_LEVEL", "LOG_JSON", "DB_PATH", "ALLOCATOR_DEFAULT_WIDTH"):
            monkeypatch.delenv(name, raising=False)
        # Keep a developer's .env out of the test run
        monkeypatch.setattr(config, "ENV_PATH", Path("/nonexistent/.env"))
        config.reset_settings()
        yield
        config.reset_settings()

    def test_defaults(self):
        from core.config import DEFAULT_DB_PATH, get_settings

        settings = get_settings()

        assert settings.recon_tolerance == Decimal("0.01")
        assert settings.log_level == "INFO"
        assert settings.log_json is False
        assert settings.db_path == DEFAULT_DB_PATH
        assert settings.allocator_default_width == 3

    def test_environment_overrides(self, monkeypatch, tmp_path):
        from core.config import get_settings

        monkeypatch.setenv("RECON_TOLERANCE", "0.05")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("LOG_JSON", "true")
        monkeypatch.setenv("DB_PATH", str(tmp_path / "x.db"))
        monkeypatch.setenv("ALLOCATOR_DEFAULT_WIDTH", "5")

        settings = get_settings()

        assert settings.recon_tolerance == Decimal("0.05")
        assert settings.log_level == "DEBUG"
        assert settings.log_json is True
        assert settings.db_path == tmp_path / "x.db"
        assert settings.allocator_default_width == 5

    def test_settings_are_cached(self, monkeypatch):
        from core.config import get_settings, reset_settings

        first = get_settings()
        monkeypatch.setenv("RECON_TOLERANCE", "0.02")
        assert get_settings() is first

        reset_settings()
        assert get_settings().recon_tolerance == Decimal("0.02")

    @pytest.mark.parametrize("value", ["0", "-0.01", "abc"])
    def test_invalid_tolerance_rejected(self, monkeypatch, value):
        from core.config import get_settings

        monkeypatch.setenv("RECON_TOLERANCE", value)
        with pytest.raises(ValueError):
            get_settings()

    @pytest.mark.parametrize("value", ["0", "three"])
    def test_invalid_width_rejected(self, monkeypatch, value):
        from core.config import get_settings

        monkeypatch.setenv("ALLOCATOR_DEFAULT_WIDTH", value)
        with pytest.raises(ValueError):
            get_settings()
