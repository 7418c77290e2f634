"""
Database repository for Coinflip settlements.
SQLite, one connection per call.
"""
import sqlite3
import logging
from typing import Optional, Tuple
from datetime import datetime, timezone
from .models import SettlementRecord, SettlementStatus, Outcome

logger = logging.getLogger(__name__)


class Database:
    """Database repository."""

    def __init__(self, db_path: str = "coinflip.db"):
        self.db_path = db_path
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=10)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self):
        """Initialize database schema."""
        conn = self._connect()
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS settlements (
                signature TEXT PRIMARY KEY,
                player_wallet TEXT NOT NULL,
                price_lamports INTEGER NOT NULL,
                status TEXT NOT NULL,
                outcome TEXT,
                payout_signature TEXT,
                payout_lamports INTEGER DEFAULT 0,
                created_at TEXT NOT NULL,
                settled_at TEXT
            )
        """)

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_settlements_player ON settlements(player_wallet)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_settlements_status ON settlements(status)")

        conn.commit()
        conn.close()
        logger.info(f"Database initialized at {self.db_path}")

    def _row_to_record(self, row) -> SettlementRecord:
        return SettlementRecord(
            signature=row["signature"],
            player_wallet=row["player_wallet"],
            price_lamports=row["price_lamports"],
            status=SettlementStatus(row["status"]),
            outcome=Outcome(row["outcome"]) if row["outcome"] else None,
            payout_signature=row["payout_signature"],
            payout_lamports=row["payout_lamports"] or 0,
            created_at=datetime.fromisoformat(row["created_at"]),
            settled_at=datetime.fromisoformat(row["settled_at"]) if row["settled_at"] else None,
        )

    # === Atomic Operations (SECURITY: Prevent race conditions) ===

    def claim_settlement(self, record: SettlementRecord) -> Tuple[bool, SettlementRecord]:
        """Atomically claim a wager signature for settlement.

        The PRIMARY KEY on signature is the serialization point: of any
        number of concurrent claims for one signature exactly one INSERT
        succeeds.

        Returns:
            (True, record) if this call claimed the signature,
            (False, existing_record) if it was already claimed
        """
        conn = self._connect()
        try:
            try:
                conn.execute("""
                    INSERT INTO settlements (
                        signature, player_wallet, price_lamports, status, created_at
                    ) VALUES (?, ?, ?, ?, ?)
                """, (
                    record.signature,
                    record.player_wallet,
                    record.price_lamports,
                    SettlementStatus.PENDING.value,
                    record.created_at.isoformat(),
                ))
                conn.commit()
                return True, record
            except sqlite3.IntegrityError:
                row = conn.execute(
                    "SELECT * FROM settlements WHERE signature = ?", (record.signature,)
                ).fetchone()
                return False, self._row_to_record(row)
        finally:
            conn.close()

    def complete_settlement(
        self,
        signature: str,
        outcome: Outcome,
        payout_signature: Optional[str] = None,
        payout_lamports: int = 0,
    ):
        """Record the final outcome of a claimed settlement."""
        status = SettlementStatus.PAID if outcome == Outcome.WIN else SettlementStatus.LOST
        conn = self._connect()
        conn.execute("""
            UPDATE settlements
            SET status = ?, outcome = ?, payout_signature = ?, payout_lamports = ?, settled_at = ?
            WHERE signature = ?
        """, (
            status.value,
            outcome.value,
            payout_signature,
            payout_lamports,
            datetime.now(timezone.utc).isoformat(),
            signature,
        ))
        conn.commit()
        conn.close()

    def mark_payout_failed(self, signature: str, payout_lamports: int):
        """Record a winning settlement whose payout could not be submitted."""
        conn = self._connect()
        conn.execute("""
            UPDATE settlements
            SET status = ?, outcome = ?, payout_lamports = ?, settled_at = ?
            WHERE signature = ?
        """, (
            SettlementStatus.PAYOUT_FAILED.value,
            Outcome.WIN.value,
            payout_lamports,
            datetime.now(timezone.utc).isoformat(),
            signature,
        ))
        conn.commit()
        conn.close()

    def get_settlement(self, signature: str) -> Optional[SettlementRecord]:
        """Get a settlement by wager signature."""
        conn = self._connect()
        row = conn.execute(
            "SELECT * FROM settlements WHERE signature = ?", (signature,)
        ).fetchone()
        conn.close()

        if not row:
            return None
        return self._row_to_record(row)

    def count_settlements(self, status: Optional[SettlementStatus] = None) -> int:
        """Count settlements, optionally filtered by status."""
        conn = self._connect()
        if status:
            row = conn.execute(
                "SELECT COUNT(*) FROM settlements WHERE status = ?", (status.value,)
            ).fetchone()
        else:
            row = conn.execute("SELECT COUNT(*) FROM settlements").fetchone()
        conn.close()
        return row[0]
