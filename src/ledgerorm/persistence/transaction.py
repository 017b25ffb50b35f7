"""
Physical transaction management on a single adapter connection.
"""

from __future__ import annotations

from ..adapters.base import DatabaseAdapter
from ..errors import TransactionStateError
from ..utils import get_logger


class TransactionManager:
    """
    Coordinates begin/commit/rollback of the outer database transaction.

    Nesting is expressed with units of work and their savepoints, not here.
    """

    def __init__(self, adapter: DatabaseAdapter) -> None:
        self.adapter = adapter
        self.logger = get_logger("persistence.transaction")

    @property
    def active(self) -> bool:
        return self.adapter.in_transaction

    def begin(self) -> None:
        if self.active:
            raise TransactionStateError("A transaction is already active.")
        self.adapter.begin()
        self.logger.debug("Transaction started")

    def commit(self) -> None:
        if not self.active:
            raise TransactionStateError("No active transaction to commit.")
        self.adapter.commit()
        self.logger.debug("Transaction committed")

    def rollback(self) -> None:
        if not self.active:
            raise TransactionStateError("No active transaction to roll back.")
        self.adapter.rollback()
        self.logger.debug("Transaction rolled back")
