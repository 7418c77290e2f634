"""Utility modules for Coinflip."""
from .formatting import (
    LAMPORTS_PER_SOL,
    lamports_to_sol,
    format_sol,
    format_tx_link,
    truncate_address,
)
from .validation import is_valid_solana_address, is_valid_transaction_signature

__all__ = [
    "LAMPORTS_PER_SOL",
    "lamports_to_sol",
    "format_sol",
    "format_tx_link",
    "truncate_address",
    "is_valid_solana_address",
    "is_valid_transaction_signature",
]
