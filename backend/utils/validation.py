"""
Input validation utilities for security.
"""
from typing import Tuple

import base58

BASE58_CHARS = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def is_valid_solana_address(address: str) -> Tuple[bool, str]:
    """Validate Solana public key format.

    Args:
        address: Solana wallet address to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not address:
        return False, "Wallet address is required"

    if not isinstance(address, str):
        return False, "Wallet address must be a string"

    # Solana addresses are base58 encoded, 32-44 characters
    if len(address) < 32 or len(address) > 44:
        return False, "Invalid wallet address length"

    # Check for valid base58 characters (no 0, O, I, l)
    if not all(c in BASE58_CHARS for c in address):
        return False, "Wallet address contains invalid characters"

    try:
        decoded = base58.b58decode(address)
    except ValueError as e:
        return False, f"Failed to decode wallet address: {str(e)}"
    if len(decoded) != 32:
        return False, "Invalid wallet address format (must be 32 bytes when decoded)"

    return True, ""


def is_valid_transaction_signature(signature: str) -> Tuple[bool, str]:
    """Validate Solana transaction signature format.

    Args:
        signature: Transaction signature to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not signature:
        return False, "Transaction signature is required"

    if not isinstance(signature, str):
        return False, "Transaction signature must be a string"

    # Solana signatures are base58 encoded, typically 87-88 characters
    if len(signature) < 80 or len(signature) > 90:
        return False, "Invalid transaction signature length"

    if not all(c in BASE58_CHARS for c in signature):
        return False, "Transaction signature contains invalid characters"

    try:
        decoded = base58.b58decode(signature)
    except ValueError as e:
        return False, f"Failed to decode transaction signature: {str(e)}"
    if len(decoded) != 64:
        return False, "Invalid transaction signature format (must be 64 bytes when decoded)"

    return True, ""
