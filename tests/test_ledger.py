"""Property-based tests for the cash ledger.

**Feature: signal-trading**
"""

import tempfile
import threading
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from signaltrader.db.store import DataStore
from signaltrader.errors import InsufficientFundsError
from signaltrader.trading import Ledger


class TestLedgerBalance:
    """
    **Feature: signal-trading, Property 13: Ledger Arithmetic**

    *For any* sequence of credits and affordable debits, the balance equals
    the starting balance plus credits minus debits.
    """

    def test_starts_at_default_balance(self, temp_db: DataStore):
        assert Ledger(temp_db).get_available() == 10000.0

    def test_existing_balance_survives_restart(self, temp_db: DataStore):
        Ledger(temp_db).set_available(2500.0)

        assert Ledger(temp_db, starting_balance=99.0).get_available() == 2500.0

    @given(
        moves=st.lists(
            st.tuples(st.booleans(), st.floats(min_value=0.01, max_value=5000, allow_nan=False)),
            max_size=20,
        )
    )
    @settings(max_examples=30, deadline=None)
    def test_balance_tracks_moves(self, moves: list[tuple[bool, float]]):
        with tempfile.TemporaryDirectory() as tmpdir:
            ledger = Ledger(DataStore(Path(tmpdir) / "test.db"), starting_balance=10000.0)
            expected = 10000.0

            for is_credit, amount in moves:
                if is_credit:
                    ledger.credit(amount)
                    expected += amount
                elif amount <= expected:
                    ledger.debit(amount)
                    expected -= amount

            assert ledger.get_available() == pytest.approx(expected)

    def test_debit_more_than_available_rejected(self, temp_db: DataStore):
        ledger = Ledger(temp_db, starting_balance=100.0)

        with pytest.raises(InsufficientFundsError) as exc:
            ledger.debit(150.0)

        assert exc.value.required == 150.0
        assert exc.value.available == 100.0
        assert ledger.get_available() == 100.0

    def test_overdraft_when_allowed(self, temp_db: DataStore):
        ledger = Ledger(temp_db, starting_balance=100.0)

        assert ledger.debit(150.0, allow_overdraft=True) == pytest.approx(-50.0)

    def test_reset_restores_starting_balance(self, temp_db: DataStore):
        ledger = Ledger(temp_db, starting_balance=500.0)
        ledger.debit(200.0)

        ledger.reset()

        assert ledger.get_available() == 500.0

    def test_missing_row_recreated(self, temp_db: DataStore):
        ledger = Ledger(temp_db, starting_balance=750.0)
        with temp_db.transaction() as conn:
            conn.execute("DELETE FROM ledger")

        assert ledger.get_available() == 750.0
        assert temp_db.get_available_cash() == 750.0


class TestLedgerConcurrency:
    """
    **Feature: signal-trading, Property 14: No Lost Updates**

    Concurrent credits from several threads all land.
    """

    def test_concurrent_credits(self, temp_db: DataStore):
        ledger = Ledger(temp_db, starting_balance=1.0)
        errors: list[Exception] = []

        def worker():
            try:
                for _ in range(20):
                    ledger.credit(1.0)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert ledger.get_available() == pytest.approx(81.0)

    def test_debit_inside_failed_transaction_rolls_back(self, temp_db: DataStore):
        ledger = Ledger(temp_db, starting_balance=1000.0)

        with pytest.raises(RuntimeError):
            with temp_db.transaction() as conn:
                ledger.debit(400.0, conn=conn)
                raise RuntimeError("position insert failed")

        assert ledger.get_available() == 1000.0
