import sqlite3

import pytest

from ledgerorm.adapters import AdapterExecutionError, ConnectionConfig, SQLiteAdapter
from ledgerorm.errors import AdapterConnectionError, SavepointError, TransactionStateError


@pytest.fixture
def adapter(tmp_path):
    adapter = SQLiteAdapter()
    config = ConnectionConfig(url=f"sqlite:///{tmp_path / 'test.db'}")
    adapter.connect(config)
    adapter.execute("CREATE TABLE item (id INTEGER PRIMARY KEY, value INTEGER)")
    yield adapter
    adapter.close()


def count(adapter):
    return adapter.execute("SELECT COUNT(*) FROM item").fetchone()[0]


def test_connect_creates_database(tmp_path):
    adapter = SQLiteAdapter()
    config = ConnectionConfig(url=f"sqlite:///{tmp_path / 'connect.db'}")
    connection = adapter.connect(config)
    assert isinstance(connection, sqlite3.Connection)
    assert (tmp_path / "connect.db").exists()
    adapter.close()


def test_execute_and_last_insert_id(adapter):
    cursor = adapter.execute("INSERT INTO item (value) VALUES (?)", (10,))
    inserted_id = adapter.last_insert_id(cursor, "item", "id")
    assert inserted_id == 1
    assert adapter.fetch_one("SELECT value FROM item WHERE id = ?", (inserted_id,)) == {"value": 10}
    assert adapter.fetch_all("SELECT id FROM item") == [{"id": 1}]


def test_transaction_commit_and_rollback(adapter):
    adapter.begin()
    adapter.execute("INSERT INTO item (value) VALUES (?)", (10,))
    adapter.commit()
    assert count(adapter) == 1

    adapter.begin()
    adapter.execute("INSERT INTO item (value) VALUES (?)", (20,))
    adapter.rollback()
    assert count(adapter) == 1
    assert not adapter.in_transaction


def test_nested_begin_rejected(adapter):
    adapter.begin()
    with pytest.raises(TransactionStateError):
        adapter.begin()
    adapter.rollback()


def test_commit_without_transaction_rejected(adapter):
    with pytest.raises(TransactionStateError):
        adapter.commit()
    with pytest.raises(TransactionStateError):
        adapter.create_savepoint("sp")


def test_rollback_to_savepoint_keeps_earlier_writes(adapter):
    adapter.begin()
    adapter.execute("INSERT INTO item (value) VALUES (?)", (1,))
    adapter.create_savepoint("first")
    adapter.execute("INSERT INTO item (value) VALUES (?)", (2,))
    adapter.create_savepoint("second")
    adapter.execute("INSERT INTO item (value) VALUES (?)", (3,))

    adapter.rollback_to_savepoint("first")

    assert adapter.savepoints == ()
    assert count(adapter) == 1
    adapter.commit()
    assert count(adapter) == 1


def test_release_savepoint_drops_later_names(adapter):
    adapter.begin()
    adapter.create_savepoint("first")
    adapter.create_savepoint("second")
    adapter.release_savepoint("first")
    assert adapter.savepoints == ()
    adapter.commit()


def test_unknown_or_duplicate_savepoint_rejected(adapter):
    adapter.begin()
    with pytest.raises(SavepointError) as excinfo:
        adapter.release_savepoint("missing")
    assert excinfo.value.name == "missing"

    adapter.create_savepoint("once")
    with pytest.raises(SavepointError):
        adapter.create_savepoint("once")
    adapter.rollback()


def test_execution_error_carries_statement(adapter):
    with pytest.raises(AdapterExecutionError) as excinfo:
        adapter.execute("INSERT INTO missing (value) VALUES (?)", (1,))
    assert excinfo.value.sql == "INSERT INTO missing (value) VALUES (?)"
    assert excinfo.value.params == [1]
    assert isinstance(excinfo.value.__cause__, sqlite3.Error)


def test_execute_requires_connection():
    with pytest.raises(AdapterConnectionError):
        SQLiteAdapter().execute("SELECT 1")


def test_in_memory_database():
    adapter = SQLiteAdapter()
    adapter.connect(ConnectionConfig(url="sqlite:///:memory:"))
    adapter.execute("CREATE TABLE sample (value TEXT)")
    adapter.execute("INSERT INTO sample (value) VALUES (?)", ("hello",))
    row = adapter.execute("SELECT value FROM sample").fetchone()
    assert row[0] == "hello"
    adapter.close()
