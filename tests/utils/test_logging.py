import logging

from ledgerorm.utils import redact_params
from ledgerorm.utils.logging import CorrelationIdFilter, get_correlation_id, get_logger, set_correlation_id, time_call


def test_correlation_id_round_trip():
    token = set_correlation_id("test-token")
    assert token == "test-token"
    assert get_correlation_id() == "test-token"


def test_filter_stamps_correlation_id():
    set_correlation_id("flush-42")
    record = logging.LogRecord("ledgerorm.test", logging.INFO, __file__, 1, "msg", None, None)
    assert CorrelationIdFilter().filter(record)
    assert record.correlation_id == "flush-42"


def test_loggers_share_namespace():
    assert get_logger("persistence.session").name == "ledgerorm.persistence.session"


def test_time_call_logs_duration(caplog):
    logger = get_logger("tests.logging")
    caplog.set_level(logging.DEBUG, logger=logger.name)
    with time_call("unit-test", logger, threshold_ms=0):
        pass
    records = [record for record in caplog.records if record.name == logger.name]
    assert any("unit-test took" in record.message for record in records)
    assert records[-1].levelno == logging.WARNING


def test_slow_statement_log_carries_redacted_params(tmp_path, caplog):
    from ledgerorm.adapters import ConnectionConfig, SQLiteAdapter

    adapter = SQLiteAdapter(slow_query_ms=0)
    adapter.connect(ConnectionConfig(url=f"sqlite:///{tmp_path / 'log.db'}"))
    caplog.set_level(logging.WARNING, logger="ledgerorm.adapters.sqlite")
    adapter.execute("SELECT ?, ?", ("visible", "my secret token"))
    adapter.close()

    record = [record for record in caplog.records if record.name == "ledgerorm.adapters.sqlite"][-1]
    assert record.sql == "SELECT ?, ?"
    assert record.params == ["visible", "***"]


def test_redact_params_masks_sensitive_mapping_keys():
    assert redact_params([{"password": "hunter2", "name": "alice"}, 3]) == [{"password": "***", "name": "alice"}, 3]
