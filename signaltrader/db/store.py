"""SQLite data store for SignalTrader."""

import sqlite3
import threading
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Iterator, Literal, Optional

from signaltrader.models import CompanyFundamentals, FilingAnalysis, Position
from signaltrader.models.overview import FUNDAMENTAL_FIELDS

PriceKind = Literal["current", "previous"]

_PRICE_COLUMNS = {
    "current": ("current_price", "current_updated"),
    "previous": ("previous_close", "previous_updated"),
}

_TEXT_FUNDAMENTALS = {"symbol", "name", "sector", "industry", "description"}

# One write lock per database file, shared by every DataStore pointing at it
_LOCKS: dict[Path, threading.RLock] = {}
_LOCKS_GUARD = threading.Lock()


def _lock_for(db_path: Path) -> threading.RLock:
    key = db_path.resolve()
    with _LOCKS_GUARD:
        if key not in _LOCKS:
            _LOCKS[key] = threading.RLock()
        return _LOCKS[key]


class DataStore:
    """SQLite-based data store for SignalTrader."""

    REQUIRED_TABLES = [
        "positions",
        "ledger",
        "price_cache",
        "overview_cache",
        "analysis_cache",
        "cooldowns",
    ]

    def __init__(self, db_path: Path):
        """Initialize the data store.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = db_path
        self._ensure_db_dir()
        self._lock = _lock_for(db_path)
        self._init_schema()

    def _ensure_db_dir(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection in autocommit mode."""
        conn = sqlite3.connect(self.db_path, timeout=30, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _connection(
        self, conn: Optional[sqlite3.Connection] = None
    ) -> Iterator[sqlite3.Connection]:
        """Yield the caller's connection, or a fresh one closed afterwards."""
        if conn is not None:
            yield conn
            return
        own = self._get_connection()
        try:
            yield own
        finally:
            own.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block of statements as one write transaction.

        The transaction takes SQLite's reserved lock up front so two
        read-modify-write sequences cannot interleave.

        Yields:
            Connection to pass to the store's ``conn`` parameters.
        """
        with self._lock:
            conn = self._get_connection()
            try:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    yield conn
                except BaseException:
                    conn.execute("ROLLBACK")
                    raise
                conn.execute("COMMIT")
            finally:
                conn.close()

    def _init_schema(self) -> None:
        """Initialize database schema on first run."""
        fundamentals_columns = ",\n".join(
            f"{name} {'TEXT' if name in _TEXT_FUNDAMENTALS else 'REAL'}"
            for name in FUNDAMENTAL_FIELDS
        )

        with self._connection() as conn:
            cursor = conn.cursor()

            # Positions are append-only history
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS positions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    ticker TEXT NOT NULL,
                    direction TEXT NOT NULL CHECK(direction IN ('Long', 'Short')),
                    amount_invested REAL NOT NULL,
                    entry_price REAL NOT NULL,
                    leverage INTEGER NOT NULL CHECK(leverage BETWEEN 1 AND 10),
                    open_date TEXT NOT NULL,
                    target_close_date TEXT NOT NULL,
                    stop_loss_pct REAL NOT NULL,
                    take_profit_pct REAL NOT NULL,
                    confidence REAL NOT NULL CHECK(confidence BETWEEN 0 AND 1),
                    rationale TEXT NOT NULL DEFAULT '',
                    closed INTEGER NOT NULL DEFAULT 0,
                    close_reason TEXT,
                    close_price REAL,
                    close_date TEXT,
                    final_value REAL,
                    created_at TEXT NOT NULL
                )
            """)

            # Single-row cash balance
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS ledger (
                    id INTEGER PRIMARY KEY CHECK(id = 1),
                    available REAL NOT NULL
                )
            """)

            # Price cache with one timestamp per price field
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS price_cache (
                    ticker TEXT PRIMARY KEY,
                    current_price REAL,
                    current_updated TEXT,
                    previous_close REAL,
                    previous_updated TEXT
                )
            """)

            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS overview_cache (
                    ticker TEXT PRIMARY KEY,
                    {fundamentals_columns},
                    last_updated TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS analysis_cache (
                    ticker TEXT PRIMARY KEY,
                    business_overview TEXT NOT NULL,
                    risk_overview TEXT NOT NULL,
                    full_analysis TEXT NOT NULL,
                    last_updated TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS cooldowns (
                    user_id TEXT PRIMARY KEY,
                    last_invoked TEXT NOT NULL
                )
            """)

    def get_tables(self) -> list[str]:
        """Get list of all tables in the database."""
        with self._connection() as conn:
            cursor = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
            )
            return [row["name"] for row in cursor.fetchall()]

    # ==================== Ledger ====================

    def get_available_cash(
        self, conn: Optional[sqlite3.Connection] = None
    ) -> Optional[float]:
        """Get the ledger balance, or None if the ledger is uninitialized."""
        with self._connection(conn) as c:
            row = c.execute("SELECT available FROM ledger WHERE id = 1").fetchone()
            return row["available"] if row else None

    def set_available_cash(
        self, amount: float, conn: Optional[sqlite3.Connection] = None
    ) -> None:
        """Overwrite the ledger balance."""
        with self._connection(conn) as c:
            c.execute(
                "INSERT OR REPLACE INTO ledger (id, available) VALUES (1, ?)",
                (amount,),
            )

    def init_available_cash(self, amount: float) -> None:
        """Create the ledger row with the given balance if it does not exist."""
        with self._connection() as c:
            c.execute(
                "INSERT OR IGNORE INTO ledger (id, available) VALUES (1, ?)",
                (amount,),
            )

    # ==================== Positions ====================

    @staticmethod
    def _row_to_position(row: sqlite3.Row) -> Position:
        return Position(
            id=row["id"],
            ticker=row["ticker"],
            direction=row["direction"],
            amount_invested=row["amount_invested"],
            entry_price=row["entry_price"],
            leverage=row["leverage"],
            open_date=date.fromisoformat(row["open_date"]),
            target_close_date=date.fromisoformat(row["target_close_date"]),
            stop_loss_pct=row["stop_loss_pct"],
            take_profit_pct=row["take_profit_pct"],
            confidence=row["confidence"],
            rationale=row["rationale"],
            closed=bool(row["closed"]),
            close_reason=row["close_reason"],
            close_price=row["close_price"],
            close_date=date.fromisoformat(row["close_date"]) if row["close_date"] else None,
            final_value=row["final_value"],
        )

    def insert_position(
        self, position: Position, conn: Optional[sqlite3.Connection] = None
    ) -> int:
        """Insert a new position.

        Args:
            position: Position to insert. Its ``id`` is ignored.
            conn: Optional connection of an enclosing transaction.

        Returns:
            The ID assigned to the position.
        """
        with self._connection(conn) as c:
            cursor = c.execute(
                """
                INSERT INTO positions
                (ticker, direction, amount_invested, entry_price, leverage,
                 open_date, target_close_date, stop_loss_pct, take_profit_pct,
                 confidence, rationale, closed, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?)
                """,
                (
                    position.ticker,
                    position.direction,
                    position.amount_invested,
                    position.entry_price,
                    position.leverage,
                    position.open_date.isoformat(),
                    position.target_close_date.isoformat(),
                    position.stop_loss_pct,
                    position.take_profit_pct,
                    position.confidence,
                    position.rationale,
                    datetime.now().isoformat(),
                ),
            )
            return cursor.lastrowid or 0

    def get_position(
        self, position_id: int, conn: Optional[sqlite3.Connection] = None
    ) -> Optional[Position]:
        """Get a position by ID."""
        with self._connection(conn) as c:
            row = c.execute(
                "SELECT * FROM positions WHERE id = ?", (position_id,)
            ).fetchone()
            return self._row_to_position(row) if row else None

    def get_unclosed_positions(self) -> list[Position]:
        """Get every position not yet closed, regardless of its target date."""
        with self._connection() as c:
            rows = c.execute(
                "SELECT * FROM positions WHERE closed = 0 ORDER BY id"
            ).fetchall()
            return [self._row_to_position(row) for row in rows]

    def get_active_positions(self, as_of: date) -> list[Position]:
        """Get open positions whose target close date has not passed."""
        with self._connection() as c:
            rows = c.execute(
                """
                SELECT * FROM positions
                WHERE closed = 0 AND target_close_date >= ?
                ORDER BY open_date DESC, id DESC
                """,
                (as_of.isoformat(),),
            ).fetchall()
            return [self._row_to_position(row) for row in rows]

    def get_closed_positions(self) -> list[Position]:
        """Get closed positions, most recently closed first."""
        with self._connection() as c:
            rows = c.execute(
                "SELECT * FROM positions WHERE closed = 1 ORDER BY close_date DESC, id DESC"
            ).fetchall()
            return [self._row_to_position(row) for row in rows]

    def get_active_position_for_ticker(
        self, ticker: str, as_of: date, conn: Optional[sqlite3.Connection] = None
    ) -> Optional[Position]:
        """Get the open, unexpired position for a ticker if one exists."""
        with self._connection(conn) as c:
            row = c.execute(
                """
                SELECT * FROM positions
                WHERE ticker = ? AND closed = 0 AND target_close_date >= ?
                ORDER BY id DESC LIMIT 1
                """,
                (ticker, as_of.isoformat()),
            ).fetchone()
            return self._row_to_position(row) if row else None

    def count_active_positions(self, as_of: date) -> int:
        """Count open, unexpired positions."""
        with self._connection() as c:
            row = c.execute(
                """
                SELECT COUNT(*) AS count FROM positions
                WHERE closed = 0 AND target_close_date >= ?
                """,
                (as_of.isoformat(),),
            ).fetchone()
            return row["count"]

    def mark_position_closed(
        self,
        position_id: int,
        close_reason: str,
        close_price: float,
        close_date: date,
        final_value: float,
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        """Mark a position closed.

        Returns:
            True if the row transitioned from open to closed, False if it was
            missing or already closed.
        """
        with self._connection(conn) as c:
            cursor = c.execute(
                """
                UPDATE positions
                SET closed = 1, close_reason = ?, close_price = ?,
                    close_date = ?, final_value = ?
                WHERE id = ? AND closed = 0
                """,
                (
                    close_reason,
                    close_price,
                    close_date.isoformat(),
                    final_value,
                    position_id,
                ),
            )
            return cursor.rowcount == 1

    # ==================== Price Cache ====================

    def get_cached_price(
        self, ticker: str, kind: PriceKind
    ) -> Optional[tuple[float, datetime]]:
        """Get a cached price and its timestamp.

        Args:
            ticker: Ticker symbol.
            kind: "current" or "previous".

        Returns:
            (price, last_updated) or None if that field was never cached.
        """
        price_col, updated_col = _PRICE_COLUMNS[kind]
        with self._connection() as c:
            row = c.execute(
                f"SELECT {price_col} AS price, {updated_col} AS updated "
                "FROM price_cache WHERE ticker = ?",
                (ticker,),
            ).fetchone()
            if row is None or row["price"] is None or row["updated"] is None:
                return None
            return row["price"], datetime.fromisoformat(row["updated"])

    def save_cached_price(
        self, ticker: str, kind: PriceKind, price: float, updated_at: datetime
    ) -> None:
        """Store one price field, leaving the other field untouched."""
        price_col, updated_col = _PRICE_COLUMNS[kind]
        with self._connection() as c:
            c.execute(
                f"""
                INSERT INTO price_cache (ticker, {price_col}, {updated_col})
                VALUES (?, ?, ?)
                ON CONFLICT(ticker) DO UPDATE SET
                    {price_col} = excluded.{price_col},
                    {updated_col} = excluded.{updated_col}
                """,
                (ticker, price, updated_at.isoformat()),
            )

    def delete_cached_price(self, ticker: str) -> None:
        with self._connection() as c:
            c.execute("DELETE FROM price_cache WHERE ticker = ?", (ticker,))

    def price_cache_stats(self) -> dict:
        """Count cached tickers and those with a previous close."""
        with self._connection() as c:
            total = c.execute("SELECT COUNT(*) AS count FROM price_cache").fetchone()
            with_previous = c.execute(
                "SELECT COUNT(*) AS count FROM price_cache WHERE previous_close IS NOT NULL"
            ).fetchone()
            return {"total": total["count"], "with_previous": with_previous["count"]}

    # ==================== Overview Cache ====================

    def get_cached_overview(
        self, ticker: str
    ) -> Optional[tuple[CompanyFundamentals, datetime]]:
        """Get cached fundamentals and their timestamp."""
        with self._connection() as c:
            row = c.execute(
                "SELECT * FROM overview_cache WHERE ticker = ?", (ticker,)
            ).fetchone()
            if row is None:
                return None
            fundamentals = CompanyFundamentals(
                **{name: row[name] for name in FUNDAMENTAL_FIELDS if row[name] is not None}
            )
            return fundamentals, datetime.fromisoformat(row["last_updated"])

    def save_cached_overview(
        self, ticker: str, fundamentals: CompanyFundamentals, updated_at: datetime
    ) -> None:
        """Insert or replace cached fundamentals for a ticker."""
        columns = ", ".join(FUNDAMENTAL_FIELDS)
        placeholders = ", ".join("?" for _ in FUNDAMENTAL_FIELDS)
        values = [getattr(fundamentals, name) for name in FUNDAMENTAL_FIELDS]
        with self._connection() as c:
            c.execute(
                f"""
                INSERT OR REPLACE INTO overview_cache
                (ticker, {columns}, last_updated)
                VALUES (?, {placeholders}, ?)
                """,
                (ticker, *values, updated_at.isoformat()),
            )

    def delete_cached_overview(self, ticker: str) -> None:
        with self._connection() as c:
            c.execute("DELETE FROM overview_cache WHERE ticker = ?", (ticker,))

    # ==================== Analysis Cache ====================

    def get_cached_analysis(
        self, ticker: str
    ) -> Optional[tuple[FilingAnalysis, datetime]]:
        """Get a cached filing analysis and its timestamp."""
        with self._connection() as c:
            row = c.execute(
                """
                SELECT business_overview, risk_overview, full_analysis, last_updated
                FROM analysis_cache WHERE ticker = ?
                """,
                (ticker,),
            ).fetchone()
            if row is None:
                return None
            analysis = FilingAnalysis(
                business_overview=row["business_overview"],
                risk_overview=row["risk_overview"],
                full_analysis=row["full_analysis"],
            )
            return analysis, datetime.fromisoformat(row["last_updated"])

    def save_cached_analysis(
        self, ticker: str, analysis: FilingAnalysis, updated_at: datetime
    ) -> None:
        """Store all three analysis texts under a single timestamp."""
        with self._connection() as c:
            c.execute(
                """
                INSERT OR REPLACE INTO analysis_cache
                (ticker, business_overview, risk_overview, full_analysis, last_updated)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    ticker,
                    analysis.business_overview,
                    analysis.risk_overview,
                    analysis.full_analysis,
                    updated_at.isoformat(),
                ),
            )

    def delete_cached_analysis(self, ticker: str) -> None:
        with self._connection() as c:
            c.execute("DELETE FROM analysis_cache WHERE ticker = ?", (ticker,))

    def cache_age_stats(self, table: str, expired_before: datetime) -> dict:
        """Count entries of a timestamped cache table and how many are stale.

        Args:
            table: "overview_cache" or "analysis_cache".
            expired_before: Entries updated before this are counted as expired.
        """
        if table not in ("overview_cache", "analysis_cache"):
            raise ValueError(f"Unknown cache table: {table}")
        with self._connection() as c:
            total = c.execute(f"SELECT COUNT(*) AS count FROM {table}").fetchone()
            expired = c.execute(
                f"SELECT COUNT(*) AS count FROM {table} WHERE last_updated < ?",
                (expired_before.isoformat(),),
            ).fetchone()
            return {"total": total["count"], "expired": expired["count"]}

    # ==================== Cooldowns ====================

    def get_last_invocation(self, user_id: str) -> Optional[datetime]:
        with self._connection() as c:
            row = c.execute(
                "SELECT last_invoked FROM cooldowns WHERE user_id = ?", (user_id,)
            ).fetchone()
            return datetime.fromisoformat(row["last_invoked"]) if row else None

    def set_last_invocation(self, user_id: str, invoked_at: datetime) -> None:
        with self._connection() as c:
            c.execute(
                "INSERT OR REPLACE INTO cooldowns (user_id, last_invoked) VALUES (?, ?)",
                (user_id, invoked_at.isoformat()),
            )

    # ==================== Stats ====================

    def get_stats(self) -> dict:
        """Get database statistics.

        Returns:
            Dictionary with table record counts.
        """
        with self._connection() as conn:
            stats = {}
            for table in self.REQUIRED_TABLES:
                row = conn.execute(f"SELECT COUNT(*) as count FROM {table}").fetchone()
                stats[table] = row["count"]
            return stats

