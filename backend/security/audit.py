"""
Security audit logging system.
Tracks all security-relevant settlement events for forensics and monitoring.
"""
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Optional
from enum import Enum

logger = logging.getLogger(__name__)


class AuditEventType(Enum):
    """Types of security events to audit."""
    # Input
    INVALID_WALLET = "invalid_wallet"

    # Transaction Security
    SIGNATURE_REUSE = "signature_reuse"
    INVALID_TRANSACTION = "invalid_transaction"
    SIGNATURE_VERIFIED = "signature_verified"

    # Game
    GAME_COMPLETED = "game_completed"
    PAYOUT_PROCESSED = "payout_processed"
    PAYOUT_FAILED = "payout_failed"
    PAYOUT_UNRECORDED = "payout_unrecorded"


class AuditSeverity(Enum):
    """Severity levels for audit events."""
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class AuditLogger:
    """Audit logging system for security events."""

    def __init__(self, db_path: str = "coinflip.db"):
        self.db_path = db_path
        self._init_audit_table()

    def _init_audit_table(self):
        """Initialize audit log table."""
        conn = sqlite3.connect(self.db_path)
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS audit_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                event_type TEXT NOT NULL,
                wallet TEXT,
                signature TEXT,
                ip_address TEXT,
                details TEXT,
                severity TEXT NOT NULL,
                timestamp TEXT NOT NULL
            )
        """)

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_logs(timestamp)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_audit_signature ON audit_logs(signature)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_audit_event_type ON audit_logs(event_type)")

        conn.commit()
        conn.close()

    def log(
        self,
        event_type: AuditEventType,
        severity: AuditSeverity = AuditSeverity.INFO,
        wallet: Optional[str] = None,
        signature: Optional[str] = None,
        ip_address: Optional[str] = None,
        details: Optional[str] = None,
    ):
        """Log a security event.

        Args:
            event_type: Type of event
            severity: Severity level
            wallet: Player wallet if applicable
            signature: Transaction signature if applicable
            ip_address: IP address if applicable
            details: Additional details (JSON string or text)
        """
        try:
            conn = sqlite3.connect(self.db_path)
            cursor = conn.cursor()

            cursor.execute("""
                INSERT INTO audit_logs (
                    event_type, wallet, signature, ip_address, details, severity, timestamp
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                event_type.value,
                wallet,
                signature,
                ip_address,
                details,
                severity.value,
                datetime.now(timezone.utc).isoformat()
            ))

            conn.commit()
            conn.close()
        except sqlite3.Error as e:
            logger.error(f"Failed to write audit log: {e}", exc_info=True)

        # Also log to application logger
        log_msg = f"[AUDIT] {event_type.value}"
        if wallet:
            log_msg += f" | wallet={wallet}"
        if signature:
            log_msg += f" | sig={signature}"
        if ip_address:
            log_msg += f" | ip={ip_address}"
        if details:
            log_msg += f" | {details}"

        if severity == AuditSeverity.CRITICAL:
            logger.critical(log_msg)
        elif severity == AuditSeverity.WARNING:
            logger.warning(log_msg)
        else:
            logger.info(log_msg)

    def get_recent_events(
        self,
        limit: int = 100,
        severity: Optional[AuditSeverity] = None,
        event_type: Optional[AuditEventType] = None,
        signature: Optional[str] = None
    ) -> list:
        """Get recent audit events, newest first."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        cursor = conn.cursor()

        query = "SELECT * FROM audit_logs WHERE 1=1"
        params = []

        if severity:
            query += " AND severity = ?"
            params.append(severity.value)

        if event_type:
            query += " AND event_type = ?"
            params.append(event_type.value)

        if signature:
            query += " AND signature = ?"
            params.append(signature)

        query += " ORDER BY id DESC LIMIT ?"
        params.append(limit)

        cursor.execute(query, params)
        rows = cursor.fetchall()
        conn.close()

        return [dict(row) for row in rows]
