"""
House wallet key custody.

The keypair is loaded once at startup and only ever leaves this module as
signatures.
"""
import logging

from solders.hash import Hash
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from .errors import ConfigFailure
from .solana_ops import keypair_from_secret

logger = logging.getLogger(__name__)


class HouseKeyCustodian:
    """Holds the house signing key."""

    def __init__(self, keypair):
        self.__keypair = keypair
        self._pubkey = keypair.pubkey()

    @classmethod
    def from_secret(cls, secret: str) -> "HouseKeyCustodian":
        """Load the house key from a base58 string or a JSON byte array.

        Raises:
            ConfigFailure: If the value is empty or cannot be parsed
        """
        if not secret or not secret.strip():
            raise ConfigFailure(
                "HOUSE_SECRET_KEY is empty. Provide a base58 secret key or a JSON array of secret key bytes."
            )
        try:
            keypair = keypair_from_secret(secret)
        except Exception as e:
            # Parser messages may contain key material; keep only the type.
            raise ConfigFailure(
                f"Failed to parse HOUSE_SECRET_KEY ({type(e).__name__}). "
                "Provide a base58 secret key or a JSON array of secret key bytes."
            ) from None

        custodian = cls(keypair)
        logger.info(f"House key loaded: {custodian.public_address()}")
        return custodian

    @property
    def pubkey(self) -> Pubkey:
        return self._pubkey

    def public_address(self) -> str:
        return str(self._pubkey)

    def sign(self, message: Message, blockhash: Hash) -> Transaction:
        """Sign a message whose only required signer is the house."""
        return Transaction([self.__keypair], message, blockhash)

    def __repr__(self):
        return f"HouseKeyCustodian({self.public_address()})"
