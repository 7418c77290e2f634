"""Database module for Coinflip settlements."""
from .models import Outcome, SettlementRecord, SettlementResult, SettlementStatus
from .repo import Database

__all__ = ["Outcome", "SettlementRecord", "SettlementResult", "SettlementStatus", "Database"]
