"""
Decoder for System Program transfer instructions.

Wire layout of a transfer: u32 LE operation code (2), u64 LE lamports,
accounts [source, destination].
"""
import struct
from dataclasses import dataclass
from typing import Sequence

from solders.instruction import CompiledInstruction
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID

from .errors import DecodeError

TRANSFER_OPCODE = 2
TRANSFER_DATA_LEN = 12

_OPCODE = struct.Struct("<I")
_TRANSFER = struct.Struct("<IQ")


@dataclass(frozen=True)
class DecodedTransfer:
    source: Pubkey
    destination: Pubkey
    lamports: int


def program_id(instruction: CompiledInstruction, account_keys: Sequence[Pubkey]):
    """Resolve the program an instruction targets, or None if the index is out of range."""
    index = instruction.program_id_index
    if index >= len(account_keys):
        return None
    return account_keys[index]


def is_system_program(instruction: CompiledInstruction, account_keys: Sequence[Pubkey]) -> bool:
    program = program_id(instruction, account_keys)
    return program is not None and program == SYSTEM_PROGRAM_ID


def decode_system_transfer(
    instruction: CompiledInstruction,
    account_keys: Sequence[Pubkey],
    index: int = None,
) -> DecodedTransfer:
    """Decode a compiled System Program instruction as a transfer.

    Args:
        instruction: Compiled instruction from a transaction message
        account_keys: Account keys the instruction's indexes refer to
        index: Position of the instruction, used in error messages

    Raises:
        DecodeError: If the bytes do not describe a well-formed transfer
    """
    data = bytes(instruction.data)
    if len(data) < _OPCODE.size:
        raise DecodeError(f"data too short for an operation code ({len(data)} bytes)", index)

    (opcode,) = _OPCODE.unpack_from(data)
    if opcode != TRANSFER_OPCODE:
        raise DecodeError(f"operation code {opcode} is not a transfer", index)

    if len(data) != TRANSFER_DATA_LEN:
        raise DecodeError(f"transfer data must be {TRANSFER_DATA_LEN} bytes, got {len(data)}", index)

    accounts = bytes(instruction.accounts)
    if len(accounts) < 2:
        raise DecodeError(f"transfer needs 2 accounts, got {len(accounts)}", index)

    source_index, destination_index = accounts[0], accounts[1]
    for account_index in (source_index, destination_index):
        if account_index >= len(account_keys):
            raise DecodeError(
                f"account index {account_index} out of range ({len(account_keys)} keys)", index
            )

    _, lamports = _TRANSFER.unpack(data)
    return DecodedTransfer(
        source=account_keys[source_index],
        destination=account_keys[destination_index],
        lamports=lamports,
    )
