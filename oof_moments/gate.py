"""
Analysis Gate - Per-wallet cooldown between analysis runs.

States per wallet:
    no record      -> eligible
    eligible       -> (run) -> cooling down
    cooling down   -> (cooldown elapsed) -> eligible

A run consumes the cooldown whether it succeeded or failed.
"""

import logging
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

from .config import AnalyzerConfig, get_config
from .exceptions import StorageError
from .models import GateDecision, utcnow


logger = logging.getLogger(__name__)


def _normalize_wallet(wallet_address: str) -> str:
    return wallet_address.strip()


class RateLimitStore(ABC):
    """Key-value store of wallet -> last analysis time."""

    @abstractmethod
    def get_last_analysis_time(self, wallet_address: str) -> Optional[datetime]:
        pass

    @abstractmethod
    def set_last_analysis_time(self, wallet_address: str, timestamp: datetime) -> None:
        pass


class InMemoryRateLimitStore(RateLimitStore):
    """Process-local store, for tests and single-process use."""

    def __init__(self) -> None:
        self._records: dict[str, datetime] = {}

    def get_last_analysis_time(self, wallet_address: str) -> Optional[datetime]:
        return self._records.get(_normalize_wallet(wallet_address))

    def set_last_analysis_time(self, wallet_address: str, timestamp: datetime) -> None:
        self._records[_normalize_wallet(wallet_address)] = timestamp

    def __len__(self) -> int:
        return len(self._records)


class SQLiteRateLimitStore(RateLimitStore):
    """
    SQLite-backed store.

    Timestamps are stored as ISO-8601 UTC strings.
    """

    def __init__(
        self,
        db_path: Optional[str] = None,
        config: Optional[AnalyzerConfig] = None,
    ) -> None:
        self.config = config or get_config()
        self.db_path = db_path or self.config.rate_limit_db_path

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        # A named in-memory database only lives as long as one connection
        self._memory_conn: Optional[sqlite3.Connection] = (
            sqlite3.connect(":memory:") if self.db_path == ":memory:" else None
        )

        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        if self._memory_conn is not None:
            return self._memory_conn
        return sqlite3.connect(self.db_path)

    def _init_db(self) -> None:
        """Initialize the database schema."""
        try:
            conn = self._connect()
            with conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS analysis_rate_limits (
                        wallet_address TEXT PRIMARY KEY,
                        last_analysis_at TEXT NOT NULL
                    )
                """)
            self._close(conn)
            logger.info(f"Rate limit store initialized at {self.db_path}")
        except sqlite3.Error as e:
            raise StorageError(f"Failed to initialize rate limit database: {e}")

    def get_last_analysis_time(self, wallet_address: str) -> Optional[datetime]:
        try:
            conn = self._connect()
            row = conn.execute(
                "SELECT last_analysis_at FROM analysis_rate_limits WHERE wallet_address = ?",
                (_normalize_wallet(wallet_address),),
            ).fetchone()
            self._close(conn)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read rate limit for {wallet_address}: {e}")

        if row is None:
            return None
        timestamp = datetime.fromisoformat(row[0])
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return timestamp

    def set_last_analysis_time(self, wallet_address: str, timestamp: datetime) -> None:
        try:
            conn = self._connect()
            with conn:
                conn.execute("""
                    INSERT INTO analysis_rate_limits (wallet_address, last_analysis_at)
                    VALUES (?, ?)
                    ON CONFLICT(wallet_address) DO UPDATE SET
                        last_analysis_at = excluded.last_analysis_at
                """, (_normalize_wallet(wallet_address), timestamp.isoformat()))
            self._close(conn)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to write rate limit for {wallet_address}: {e}")

    def _close(self, conn: sqlite3.Connection) -> None:
        if conn is not self._memory_conn:
            conn.close()


class AnalysisGate:
    """
    Enforces the cooldown before a wallet may be analysed again.

    Check before fetching anything; record after the run concludes.
    """

    def __init__(
        self,
        store: Optional[RateLimitStore] = None,
        config: Optional[AnalyzerConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.config = config or get_config()
        self.store = store if store is not None else InMemoryRateLimitStore()
        self.cooldown = timedelta(hours=self.config.analysis_cooldown_hours)
        self.clock = clock

    def is_analysis_allowed(self, wallet_address: str) -> GateDecision:
        last_analysis = self.store.get_last_analysis_time(wallet_address)
        if last_analysis is None:
            return GateDecision(allowed=True)

        next_allowed = last_analysis + self.cooldown
        if self.clock() < next_allowed:
            return GateDecision(allowed=False, next_allowed_time=next_allowed)
        return GateDecision(allowed=True)

    def record_analysis(
        self,
        wallet_address: str,
        timestamp: Optional[datetime] = None,
    ) -> None:
        when = timestamp or self.clock()
        self.store.set_last_analysis_time(wallet_address, when)
        logger.debug(f"Recorded analysis of {wallet_address} at {when.isoformat()}")
