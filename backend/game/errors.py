"""
Error taxonomy for bet preparation and settlement.

Components raise these; only the HTTP layer maps them to status codes.
"""
from typing import Optional


class CoinflipError(Exception):
    """Base class for every error the settlement protocol raises."""

    code = "CoinflipError"
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class InvalidInput(CoinflipError):
    """Malformed or missing request fields."""

    code = "InvalidInput"
    status_code = 400


class VerificationError(CoinflipError):
    """The claimed payment could not be verified on-chain."""

    code = "VerificationError"
    status_code = 400


class NotFound(VerificationError):
    code = "NotFound"


class Mismatch(VerificationError):
    code = "Mismatch"


class DecodeError(VerificationError):
    """An instruction's operand bytes are not a system transfer."""

    code = "DecodeError"

    def __init__(self, reason: str, index: Optional[int] = None):
        self.reason = reason
        self.index = index
        where = f"instruction {index}: " if index is not None else ""
        super().__init__(f"{where}{reason}")


class AlreadySettled(CoinflipError):
    """Another settlement already holds this signature."""

    code = "AlreadySettled"
    status_code = 409


class NetworkFailure(CoinflipError):
    """RPC endpoint unreachable, timed out, or returned an error."""

    code = "NetworkFailure"
    status_code = 500

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause


class ConfigFailure(CoinflipError):
    """Fatal startup configuration problem (RPC endpoint, house key, price)."""

    code = "ConfigFailure"
    status_code = 500
