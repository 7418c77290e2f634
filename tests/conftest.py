import os
import struct
import sys
from pathlib import Path

import base58
import pytest
from solana.rpc.commitment import Confirmed, Finalized
from solders.hash import Hash
from solders.instruction import CompiledInstruction
from solders.keypair import Keypair
from solders.system_program import ID as SYSTEM_PROGRAM_ID

ROOT = Path(__file__).resolve().parents[1]
BACKEND = ROOT / "backend"
if str(BACKEND) not in sys.path:
    sys.path.insert(0, str(BACKEND))

from database import Database  # noqa: E402
from game import BlockReference, FetchedTransaction, NetworkFailure  # noqa: E402
from game.prepare import build_transfer_message  # noqa: E402
from security import AuditLogger  # noqa: E402

PRICE = 20_000_000


class FakeLedger:
    """In-memory stand-in for SolanaLedger."""

    def __init__(self):
        self.blockhash = str(Hash.new_unique())
        self.last_valid_block_height = 1_150
        self.transactions = {}
        self.submitted = []
        self.blockhash_commitments = []
        self.transaction_commitments = []
        self.fail_reads = False
        self.fail_submit = False
        self.fail_blockhash = False
        self.closed = False

    async def latest_blockhash(self, commitment=Finalized):
        self.blockhash_commitments.append(commitment)
        if self.fail_reads or self.fail_blockhash:
            raise NetworkFailure("get_latest_blockhash failed: connection refused")
        return BlockReference(self.blockhash, self.last_valid_block_height)

    async def get_transaction(self, signature, commitment=Confirmed):
        self.transaction_commitments.append(commitment)
        if self.fail_reads:
            raise NetworkFailure("get_transaction failed: connection refused")
        return self.transactions.get(signature)

    async def submit(self, transaction):
        if self.fail_submit:
            raise NetworkFailure("Transaction submission failed: blockhash not found")
        self.submitted.append(transaction)
        return str(transaction.signatures[0])

    async def close(self):
        self.closed = True

    def add(self, tx: FetchedTransaction) -> str:
        self.transactions[tx.signature] = tx
        return tx.signature


def new_signature() -> str:
    return str(Keypair().sign_message(os.urandom(16)))


def transfer_tx(source, destination, lamports, slot=250_000_000, failed=False) -> FetchedTransaction:
    """A confirmed single-transfer transaction as the ledger would return it."""
    message = build_transfer_message(source, destination, lamports, Hash.new_unique())
    return FetchedTransaction(
        signature=new_signature(),
        slot=slot,
        account_keys=list(message.account_keys),
        instructions=list(message.instructions),
        failed=failed,
    )


def raw_system_tx(account_keys, instructions, slot=250_000_000) -> FetchedTransaction:
    """Transaction built from hand-written compiled instructions.

    The system program must be in account_keys; instructions are
    (data, account_indexes) pairs targeting it.
    """
    program_index = account_keys.index(SYSTEM_PROGRAM_ID)
    compiled = [
        CompiledInstruction(program_index, data, bytes(accounts))
        for data, accounts in instructions
    ]
    return FetchedTransaction(
        signature=new_signature(),
        slot=slot,
        account_keys=list(account_keys),
        instructions=compiled,
    )


def transfer_data(lamports, opcode=2) -> bytes:
    return struct.pack("<IQ", opcode, lamports)


@pytest.fixture
def house_keypair():
    return Keypair()


@pytest.fixture
def house_secret(house_keypair):
    return base58.b58encode(bytes(house_keypair)).decode("utf-8")


@pytest.fixture
def player_keypair():
    return Keypair()


@pytest.fixture
def player(player_keypair):
    return player_keypair.pubkey()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "coinflip.db")


@pytest.fixture
def db(db_path):
    return Database(db_path)


@pytest.fixture
def audit(db_path):
    return AuditLogger(db_path)
