"""Cash ledger for the simulated account."""

import logging
import sqlite3
from typing import Optional

from signaltrader.db.store import DataStore
from signaltrader.errors import InsufficientFundsError

logger = logging.getLogger(__name__)


class Ledger:
    """Single-row available-cash balance.

    ``get_available``/``set_available`` are plain reads and writes. ``debit``
    and ``credit`` read the latest balance and write the new one inside one
    storage transaction, so concurrent opens and closes cannot lose updates.
    Both accept the connection of an enclosing transaction so a position
    write and its ledger movement commit together.
    """

    DEFAULT_STARTING_BALANCE = 10000.0

    def __init__(
        self,
        data_store: DataStore,
        starting_balance: float = DEFAULT_STARTING_BALANCE,
    ):
        """Initialize the ledger.

        Args:
            data_store: DataStore instance for persistence.
            starting_balance: Balance written the first time the ledger is used.
        """
        self._data_store = data_store
        self._starting_balance = starting_balance
        self._data_store.init_available_cash(starting_balance)

    @property
    def starting_balance(self) -> float:
        return self._starting_balance

    def get_available(self, conn: Optional[sqlite3.Connection] = None) -> float:
        """Get the current available cash."""
        available = self._data_store.get_available_cash(conn)
        if available is None:
            # Row removed behind our back; recreate it
            self._data_store.set_available_cash(self._starting_balance, conn)
            return self._starting_balance
        return available

    def set_available(
        self, amount: float, conn: Optional[sqlite3.Connection] = None
    ) -> None:
        """Overwrite the available cash."""
        self._data_store.set_available_cash(amount, conn)
        logger.info("Available cash updated to %.2f", amount)

    def _adjust(
        self, delta: float, conn: Optional[sqlite3.Connection], check_funds: bool
    ) -> float:
        if conn is None:
            with self._data_store.transaction() as tx:
                return self._adjust(delta, tx, check_funds)

        current = self.get_available(conn)
        if check_funds and -delta > current:
            raise InsufficientFundsError(required=-delta, available=current)
        new_balance = current + delta
        self.set_available(new_balance, conn)
        return new_balance

    def debit(
        self,
        amount: float,
        conn: Optional[sqlite3.Connection] = None,
        allow_overdraft: bool = False,
    ) -> float:
        """Remove cash from the ledger.

        Args:
            amount: Amount to remove.
            conn: Optional connection of an enclosing transaction.
            allow_overdraft: Permit the balance to go negative.

        Returns:
            The new balance.

        Raises:
            InsufficientFundsError: If ``amount`` exceeds the balance and
                overdraft is not allowed.
        """
        return self._adjust(-amount, conn, check_funds=not allow_overdraft)

    def credit(self, amount: float, conn: Optional[sqlite3.Connection] = None) -> float:
        """Add cash to the ledger and return the new balance."""
        return self._adjust(amount, conn, check_funds=False)

    def reset(self) -> None:
        """Restore the starting balance."""
        self.set_available(self._starting_balance)
