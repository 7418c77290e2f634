"""Game logic module for Coinflip."""
from .errors import (
    CoinflipError,
    InvalidInput,
    VerificationError,
    NotFound,
    Mismatch,
    DecodeError,
    AlreadySettled,
    NetworkFailure,
    ConfigFailure,
)
from .solana_ops import SolanaLedger, BlockReference, FetchedTransaction, keypair_from_secret
from .house import HouseKeyCustodian
from .instructions import DecodedTransfer, decode_system_transfer
from .prepare import BetPreparer, PreparedTransaction
from .verify import PaymentVerifier, ConfirmedPayment
from .coinflip import SettlementEngine, SecureCoin, SeededCoin, SequenceCoin

__all__ = [
    "CoinflipError",
    "InvalidInput",
    "VerificationError",
    "NotFound",
    "Mismatch",
    "DecodeError",
    "AlreadySettled",
    "NetworkFailure",
    "ConfigFailure",
    "SolanaLedger",
    "BlockReference",
    "FetchedTransaction",
    "keypair_from_secret",
    "HouseKeyCustodian",
    "DecodedTransfer",
    "decode_system_transfer",
    "BetPreparer",
    "PreparedTransaction",
    "PaymentVerifier",
    "ConfirmedPayment",
    "SettlementEngine",
    "SecureCoin",
    "SeededCoin",
    "SequenceCoin",
]
