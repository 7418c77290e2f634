"""
Data models for Coinflip settlements.
"""
from dataclasses import dataclass, field
from typing import Optional
from datetime import datetime, timezone
from enum import Enum


class Outcome(Enum):
    """Result of a coin flip from the player's side."""
    WIN = "win"
    LOSE = "lose"


class SettlementStatus(Enum):
    """Lifecycle of a settlement keyed by the wager signature."""
    PENDING = "pending"              # Claimed, outcome not recorded yet
    LOST = "lost"                    # Player lost, nothing to pay
    PAID = "paid"                    # Player won, payout submitted
    PAYOUT_FAILED = "payout_failed"  # Player won, payout submission failed

    @property
    def is_final(self) -> bool:
        return self in (SettlementStatus.LOST, SettlementStatus.PAID)


@dataclass
class SettlementRecord:
    """One row per wager signature.

    SECURITY: The signature is the primary key, so a payment can only
    ever be settled once.
    """
    signature: str
    player_wallet: str
    price_lamports: int
    status: SettlementStatus = SettlementStatus.PENDING

    outcome: Optional[Outcome] = None
    payout_signature: Optional[str] = None
    payout_lamports: int = 0

    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    settled_at: Optional[datetime] = None


@dataclass
class SettlementResult:
    """What a settle call reports back to the player."""
    outcome: Outcome
    payout_signature: Optional[str] = None
    payout_lamports: int = 0
    replayed: bool = False

    @property
    def win(self) -> bool:
        return self.outcome == Outcome.WIN

    @classmethod
    def from_record(cls, record: SettlementRecord, replayed: bool = False) -> "SettlementResult":
        return cls(
            outcome=record.outcome,
            payout_signature=record.payout_signature,
            payout_lamports=record.payout_lamports,
            replayed=replayed,
        )
