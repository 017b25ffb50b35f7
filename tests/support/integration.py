"""
Savepoint scenario shared by the server-backed integration tests.
"""

from __future__ import annotations

import uuid

from ledgerorm import MetadataRegistry, Session


class Ledger:
    def __init__(self, name):
        self.id = None
        self.name = name


class Entry:
    def __init__(self, memo, ledger=None):
        self.id = None
        self.memo = memo
        self.ledger = ledger


def build_registry(suffix: str) -> MetadataRegistry:
    registry = MetadataRegistry()
    registry.entity(Ledger, table=f"ledgers_{suffix}").identifier("id").field("name", "string")
    registry.entity(Entry, table=f"entries_{suffix}").identifier("id").field("memo", "string").many_to_one(
        "ledger", Ledger, nullable=False
    )
    return registry


def run_savepoint_scenario(make_session, id_column: str) -> None:
    """
    Commit one unit, roll back a second, and check only the first unit's rows survive.
    """
    suffix = uuid.uuid4().hex[:8]
    registry = build_registry(suffix)
    session: Session = make_session(registry)
    ledgers, entries = f"ledgers_{suffix}", f"entries_{suffix}"
    try:
        with session.transaction():
            session.execute(f"CREATE TABLE {ledgers} ({id_column}, name VARCHAR(255) NOT NULL)")
            session.execute(
                f"CREATE TABLE {entries} ({id_column}, memo VARCHAR(255) NOT NULL, "
                f"ledger_id INTEGER NOT NULL REFERENCES {ledgers} (id))"
            )

        session.begin()
        first = session.create_unit_of_work(activate=True)
        kept = Entry("kept", Ledger("Operating"))
        session.persist(kept)
        first.flush()
        session.commit_unit_of_work(first)

        second = session.create_unit_of_work(activate=True)
        dropped = Entry("dropped", kept.ledger)
        session.persist(dropped)
        second.flush()
        session.rollback_unit_of_work(second)
        session.commit()

        rows = session.adapter.fetch_all(f"SELECT memo, ledger_id FROM {entries}")
        assert rows == [{"memo": "kept", "ledger_id": kept.ledger.id}]
        assert dropped.id is None
    finally:
        if session.transaction_manager.active:
            session.rollback()
        with session.transaction():
            session.execute(f"DROP TABLE IF EXISTS {entries}")
            session.execute(f"DROP TABLE IF EXISTS {ledgers}")
        session.close()
