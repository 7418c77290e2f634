"""
Solana blockchain operations for Coinflip game.
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from typing import List, Optional

import base58
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed, Finalized
from solana.rpc.types import TxOpts
from solders.instruction import CompiledInstruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction, VersionedTransaction

from .errors import NetworkFailure

logger = logging.getLogger(__name__)


def keypair_from_base58(secret: str) -> Keypair:
    """Create keypair from base58 secret key."""
    secret_bytes = base58.b58decode(secret)
    return Keypair.from_bytes(secret_bytes)


def keypair_from_json_array(secret: str) -> Keypair:
    """Create keypair from a JSON array of secret key bytes, e.g. `[12,34,...]`."""
    values = json.loads(secret)
    if not isinstance(values, list):
        raise ValueError("Secret key JSON must be an array of byte values")
    return Keypair.from_bytes(bytes(values))


def keypair_from_secret(secret: str) -> Keypair:
    """Create keypair from either accepted secret key encoding.

    Raises:
        ValueError: If the secret is empty or matches neither encoding
    """
    secret = (secret or "").strip()
    if not secret:
        raise ValueError("Secret key is empty")
    if secret.startswith("[") and secret.endswith("]"):
        return keypair_from_json_array(secret)
    return keypair_from_base58(secret)


@dataclass(frozen=True)
class BlockReference:
    """Recent blockhash plus the last block height at which it is still valid."""
    blockhash: str
    last_valid_block_height: int


@dataclass
class FetchedTransaction:
    """A transaction as read back from the ledger.

    account_keys holds the static keys followed by any keys loaded from
    address lookup tables (writable, then readonly), which is the index
    space compiled instructions refer to.
    """
    signature: str
    slot: int
    account_keys: List[Pubkey]
    instructions: List[CompiledInstruction]
    failed: bool = False


class SolanaLedger:
    """Ledger client over one shared AsyncClient connection.

    Reads retry a bounded number of times; submit sends exactly once.
    """

    def __init__(
        self,
        rpc_url: str,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        client: Optional[AsyncClient] = None,
    ):
        self.rpc_url = rpc_url
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.client = client or AsyncClient(rpc_url)

    async def close(self):
        await self.client.close()

    async def _read_with_retries(self, label: str, call):
        last_error = None

        for attempt in range(self.max_retries):
            try:
                return await call()
            except Exception as e:
                last_error = e
                logger.warning(f"[LEDGER] {label} attempt {attempt + 1}/{self.max_retries} failed: {e}")
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(self.retry_delay)

        logger.error(f"[LEDGER] {label}: all retries failed: {last_error}")
        raise NetworkFailure(f"{label} failed after {self.max_retries} attempts: {last_error}", cause=last_error)

    async def latest_blockhash(self, commitment: Commitment = Finalized) -> BlockReference:
        """Get the latest blockhash and its expiry height."""
        async def call():
            resp = await self.client.get_latest_blockhash(commitment)
            return BlockReference(
                blockhash=str(resp.value.blockhash),
                last_valid_block_height=resp.value.last_valid_block_height,
            )

        return await self._read_with_retries("get_latest_blockhash", call)

    async def get_transaction(
        self,
        signature: str,
        commitment: Commitment = Confirmed,
    ) -> Optional[FetchedTransaction]:
        """Fetch a transaction by signature.

        Returns:
            FetchedTransaction, or None if the ledger has no such transaction
            at the requested commitment
        """
        sig = Signature.from_string(signature)

        async def call():
            return await self.client.get_transaction(
                sig,
                encoding="base64",
                commitment=commitment,
                max_supported_transaction_version=0,
            )

        resp = await self._read_with_retries("get_transaction", call)

        if resp.value is None:
            logger.info(f"[LEDGER] Transaction not found: {signature}")
            return None

        encoded = resp.value.transaction
        tx = encoded.transaction
        if not isinstance(tx, VersionedTransaction):
            raise NetworkFailure(f"Unexpected transaction encoding for {signature}: {type(tx).__name__}")

        message = tx.message
        account_keys = list(message.account_keys)
        meta = encoded.meta
        if meta is not None and meta.loaded_addresses is not None:
            account_keys.extend(meta.loaded_addresses.writable)
            account_keys.extend(meta.loaded_addresses.readonly)

        return FetchedTransaction(
            signature=signature,
            slot=resp.value.slot,
            account_keys=account_keys,
            instructions=list(message.instructions),
            failed=meta is not None and meta.err is not None,
        )

    async def submit(self, transaction: Transaction) -> str:
        """Send a signed transaction once and return its signature."""
        try:
            opts = TxOpts(skip_preflight=False, preflight_commitment=Confirmed)
            resp = await self.client.send_raw_transaction(bytes(transaction), opts)
        except Exception as e:
            logger.error(f"[LEDGER] send_raw_transaction failed: {e}")
            raise NetworkFailure(f"Transaction submission failed: {e}", cause=e) from e

        tx_sig = str(resp.value)
        logger.info(f"[LEDGER] Submitted TX: {tx_sig}")
        return tx_sig
