"""Tests for correlation-aware logging."""

import logging

from xml_scaffold import parse_string
from xml_scaffold.shared.logging import CorrelationLogger, get_logger


class TestCorrelationLogger:
    """Test context injection into log records."""

    def test_component_defaults_to_module_name(self):
        logger = get_logger("xml_scaffold.tree.builder")
        assert logger.component == "builder"
        assert logger.correlation_id is None

    def test_records_carry_context(self, caplog):
        logger = get_logger("xml_scaffold.test", "req-1", "unit")
        with caplog.at_level(logging.INFO, logger="xml_scaffold.test"):
            logger.info("hello", extra={"count": 3})

        record = caplog.records[-1]
        assert record.getMessage() == "hello"
        assert record.component == "unit"
        assert record.correlation_id == "req-1"
        assert record.count == 3

    def test_bind(self):
        logger = CorrelationLogger("xml_scaffold.test", "a", "unit")
        bound = logger.bind("b")
        assert bound.correlation_id == "b"
        assert bound.component == "unit"
        assert logger.correlation_id == "a"

    def test_builder_logs_anomalies(self, caplog):
        with caplog.at_level(logging.WARNING, logger="xml_scaffold"):
            parse_string("<a></b>", correlation_id="doc-9")

        records = [r for r in caplog.records if r.getMessage() == "Recovered from structural anomalies"]
        assert records
        assert records[0].component == "xml_tree_builder"
        assert records[0].correlation_id == "doc-9"
        assert records[0].malformed_count == 2
