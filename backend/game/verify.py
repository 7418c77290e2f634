"""
On-chain verification of a player's wager payment.
"""
import logging
from dataclasses import dataclass

from solana.rpc.commitment import Confirmed
from solders.pubkey import Pubkey

from utils import is_valid_transaction_signature
from .errors import DecodeError, InvalidInput, Mismatch, NotFound
from .instructions import decode_system_transfer, is_system_program
from .prepare import parse_player_address

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfirmedPayment:
    """A verified player -> house wager transfer."""
    signature: str
    sender: str
    recipient: str
    lamports: int
    slot: int


class PaymentVerifier:
    """Checks that a signature refers to exactly the expected wager transfer.

    Nothing is cached: each call re-reads the transaction from the ledger.
    """

    def __init__(self, ledger, house_pubkey: Pubkey, price_lamports: int):
        self.ledger = ledger
        self.house_pubkey = house_pubkey
        self.price_lamports = price_lamports

    async def verify(self, signature: str, player_address: str) -> ConfirmedPayment:
        """Verify a wager payment.

        Args:
            signature: Transaction signature claimed by the player
            player_address: Wallet the payment should come from

        Returns:
            ConfirmedPayment for the first matching transfer instruction

        Raises:
            InvalidInput: Malformed signature or address
            NotFound: No confirmed transaction for the signature
            Mismatch: No instruction transfers exactly the price from player to house
            NetworkFailure: Ledger unreachable
        """
        is_valid, error = is_valid_transaction_signature(signature)
        if not is_valid:
            raise InvalidInput(error)
        player = parse_player_address(player_address)

        tx = await self.ledger.get_transaction(signature, Confirmed)
        if tx is None:
            logger.warning(f"[VERIFY] Transaction not found/confirmed: {signature}")
            raise NotFound(f"Transaction {signature} not found or not confirmed")

        if tx.failed:
            logger.warning(f"[VERIFY] Transaction failed on-chain: {signature}")
            raise Mismatch(f"Transaction {signature} failed on-chain")

        decode_errors = []
        for index, ix in enumerate(tx.instructions):
            if not is_system_program(ix, tx.account_keys):
                continue

            try:
                decoded = decode_system_transfer(ix, tx.account_keys, index)
            except DecodeError as e:
                logger.info(f"[VERIFY] Skipping system instruction in {signature}: {e.message}")
                decode_errors.append(e)
                continue

            if decoded.source != player:
                continue
            if decoded.destination != self.house_pubkey:
                continue
            if decoded.lamports != self.price_lamports:
                logger.warning(
                    f"[VERIFY] Amount mismatch in {signature}: expected {self.price_lamports}, "
                    f"got {decoded.lamports} lamports"
                )
                continue

            logger.info(
                f"[VERIFY] Verified {decoded.lamports} lamports from {player_address} "
                f"to {self.house_pubkey} (tx: {signature}, slot {tx.slot})"
            )
            return ConfirmedPayment(
                signature=signature,
                sender=str(decoded.source),
                recipient=str(decoded.destination),
                lamports=decoded.lamports,
                slot=tx.slot,
            )

        detail = (
            f"Transaction {signature} does not transfer exactly {self.price_lamports} lamports "
            f"from {player_address} to {self.house_pubkey}"
        )
        if decode_errors:
            detail += f" ({len(decode_errors)} system instruction(s) could not be decoded)"
        logger.warning(f"[VERIFY] {detail}")
        raise Mismatch(detail)
