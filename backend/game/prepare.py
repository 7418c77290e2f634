"""
Bet preparation: build the unsigned wager transfer for the player to sign.
"""
import base64
import logging
from dataclasses import dataclass

from solana.rpc.commitment import Finalized
from solders.hash import Hash
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction

from utils import is_valid_solana_address, format_sol
from .errors import InvalidInput

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreparedTransaction:
    """Unsigned wager transfer (player -> house) and its blockhash window."""
    tx_bytes: bytes
    blockhash: str
    last_valid_block_height: int
    house: str
    price_lamports: int

    @property
    def tx_base64(self) -> str:
        return base64.b64encode(self.tx_bytes).decode("utf-8")


def build_transfer_message(source: Pubkey, destination: Pubkey, lamports: int, blockhash: Hash) -> Message:
    """Single System Program transfer, fee paid by the source."""
    transfer_ix = transfer(
        TransferParams(
            from_pubkey=source,
            to_pubkey=destination,
            lamports=lamports,
        )
    )
    return Message.new_with_blockhash([transfer_ix], source, blockhash)


def parse_player_address(address: str) -> Pubkey:
    """Validate a player wallet address and return it as a Pubkey.

    Raises:
        InvalidInput: If the address is not a valid Solana public key
    """
    is_valid, error = is_valid_solana_address(address)
    if not is_valid:
        raise InvalidInput(error)
    return Pubkey.from_string(address)


class BetPreparer:
    """Builds the unsigned wager transaction for a player."""

    def __init__(self, ledger, house_pubkey: Pubkey, price_lamports: int):
        self.ledger = ledger
        self.house_pubkey = house_pubkey
        self.price_lamports = price_lamports

    async def prepare(self, player_address: str) -> PreparedTransaction:
        player = parse_player_address(player_address)

        # Finalized keeps the blockhash valid for as long as possible
        ref = await self.ledger.latest_blockhash(Finalized)

        message = build_transfer_message(
            player,
            self.house_pubkey,
            self.price_lamports,
            Hash.from_string(ref.blockhash),
        )
        tx = Transaction.new_unsigned(message)

        logger.info(
            f"[PREPARE] {format_sol(self.price_lamports)} SOL wager from {player_address} "
            f"(blockhash: {ref.blockhash[:8]}..., valid until height {ref.last_valid_block_height})"
        )
        return PreparedTransaction(
            tx_bytes=bytes(tx),
            blockhash=ref.blockhash,
            last_valid_block_height=ref.last_valid_block_height,
            house=str(self.house_pubkey),
            price_lamports=self.price_lamports,
        )
