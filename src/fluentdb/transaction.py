"""
Transaction scopes.
"""
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from fluentdb.exceptions import InvariantViolation

if TYPE_CHECKING:
    from fluentdb.connection import ConnectionWrapper
    from fluentdb.statement import Result

logger = logging.getLogger(__name__)


class Transaction:
    """Context manager for running multiple commands in one transaction level.

    Entering the scope begins a transaction (a savepoint when one is already
    open). The scope must be committed explicitly: leaving it without
    `commit()`, including by an exception, rolls it back.

    Examples
        with cn.new_transaction() as tx:
            tx.execute('DELETE FROM tags')
            tx.execute('INSERT INTO tags (name) VALUES (:name)', {'name': 'sql'})
            tx.commit()
    """

    def __init__(self, cn: 'ConnectionWrapper') -> None:
        self.connection = cn
        self.active = False

    def __enter__(self) -> 'Transaction':
        self.connection.begin()
        self.active = True
        logger.debug(f'Started transaction level {self.connection.transaction_depth}')
        return self

    def __exit__(self, exc_type: type | None, value: Exception | None, traceback: Any | None) -> None:
        if not self.active:
            return
        if exc_type is None:
            logger.warning('Transaction scope left without commit, rolling back')
        else:
            logger.warning(f'Rolling back the current transaction: {value}')
        self.rollback()

    def commit(self) -> None:
        if not self.active:
            raise InvariantViolation('Transaction is already finished')
        self.connection.commit()
        self.active = False

    def rollback(self) -> None:
        if not self.active:
            raise InvariantViolation('Transaction is already finished')
        self.active = False
        self.connection.rollback()

    def execute(self, sql: str, args: Mapping[str, Any] | None = None) -> int:
        """Execute SQL within the transaction and return the affected row count."""
        return self.connection.execute(sql, args)

    def query(self, sql: str, args: Mapping[str, Any] | None = None) -> 'Result':
        return self.connection.query(sql, args)
