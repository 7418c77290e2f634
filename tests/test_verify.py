import asyncio

import pytest
from solana.rpc.commitment import Confirmed
from solders.hash import Hash
from solders.instruction import Instruction, AccountMeta
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID, TransferParams, transfer

from conftest import PRICE, new_signature, raw_system_tx, transfer_data, transfer_tx
from game import FetchedTransaction, InvalidInput, Mismatch, NetworkFailure, NotFound, PaymentVerifier


@pytest.fixture
def house():
    return Keypair().pubkey()


@pytest.fixture
def verifier(ledger, house):
    return PaymentVerifier(ledger, house, PRICE)


def verify(verifier, signature, player):
    return asyncio.run(verifier.verify(signature, str(player)))


def test_exact_payment_is_confirmed(verifier, ledger, player, house):
    sig = ledger.add(transfer_tx(player, house, PRICE, slot=123))

    payment = verify(verifier, sig, player)

    assert payment.signature == sig
    assert payment.sender == str(player)
    assert payment.recipient == str(house)
    assert payment.lamports == PRICE
    assert payment.slot == 123
    assert ledger.transaction_commitments == [Confirmed]


@pytest.mark.parametrize("lamports", [PRICE - 1, PRICE + 1, 0, PRICE * 2])
def test_any_amount_difference_is_rejected(verifier, ledger, player, house, lamports):
    sig = ledger.add(transfer_tx(player, house, lamports))
    with pytest.raises(Mismatch):
        verify(verifier, sig, player)


def test_transfer_to_other_recipient_is_rejected(verifier, ledger, player):
    sig = ledger.add(transfer_tx(player, Pubkey.new_unique(), PRICE))
    with pytest.raises(Mismatch):
        verify(verifier, sig, player)


def test_transfer_from_other_sender_is_rejected(verifier, ledger, player, house):
    sig = ledger.add(transfer_tx(Pubkey.new_unique(), house, PRICE))
    with pytest.raises(Mismatch):
        verify(verifier, sig, player)


def test_missing_transaction_is_not_found(verifier, player):
    with pytest.raises(NotFound):
        verify(verifier, new_signature(), player)


def test_failed_transaction_is_rejected(verifier, ledger, player, house):
    sig = ledger.add(transfer_tx(player, house, PRICE, failed=True))
    with pytest.raises(Mismatch, match="failed on-chain"):
        verify(verifier, sig, player)


def test_first_matching_instruction_wins(verifier, ledger, player, house):
    # A wrong-amount transfer, then the exact wager, then a second exact wager
    ixs = [
        transfer(TransferParams(from_pubkey=player, to_pubkey=house, lamports=PRICE - 1)),
        transfer(TransferParams(from_pubkey=player, to_pubkey=house, lamports=PRICE)),
        transfer(TransferParams(from_pubkey=player, to_pubkey=house, lamports=PRICE)),
    ]
    message = Message.new_with_blockhash(ixs, player, Hash.new_unique())
    sig = ledger.add(FetchedTransaction(
        signature=new_signature(),
        slot=9,
        account_keys=list(message.account_keys),
        instructions=list(message.instructions),
    ))

    payment = verify(verifier, sig, player)
    assert payment.lamports == PRICE


def test_non_system_instructions_are_skipped(verifier, ledger, player, house):
    memo_program = Pubkey.new_unique()
    memo = Instruction(memo_program, b"gl hf", [AccountMeta(player, True, False)])
    wager = transfer(TransferParams(from_pubkey=player, to_pubkey=house, lamports=PRICE))
    message = Message.new_with_blockhash([memo, wager], player, Hash.new_unique())
    sig = ledger.add(FetchedTransaction(
        signature=new_signature(),
        slot=9,
        account_keys=list(message.account_keys),
        instructions=list(message.instructions),
    ))

    assert verify(verifier, sig, player).lamports == PRICE


def test_decode_errors_are_skipped_and_scanning_resumes(verifier, ledger, player, house):
    tx = raw_system_tx(
        [player, house, SYSTEM_PROGRAM_ID],
        [
            (b"\x02\x00", (0, 1)),                # truncated
            (transfer_data(PRICE, opcode=0), (0, 1)),  # not a transfer
            (transfer_data(PRICE), (0, 5)),       # bad account index
            (transfer_data(PRICE), (0, 1)),       # the wager
        ],
    )
    sig = ledger.add(tx)

    assert verify(verifier, sig, player).lamports == PRICE


def test_only_decode_errors_is_a_mismatch(verifier, ledger, player, house):
    tx = raw_system_tx(
        [player, house, SYSTEM_PROGRAM_ID],
        [(b"\x02\x00", (0, 1)), (transfer_data(PRICE), (0,))],
    )
    sig = ledger.add(tx)

    with pytest.raises(Mismatch, match="2 system instruction"):
        verify(verifier, sig, player)


def test_no_instruction_to_house_is_a_mismatch(verifier, ledger, player):
    tx = raw_system_tx([player, SYSTEM_PROGRAM_ID], [])
    sig = ledger.add(tx)
    with pytest.raises(Mismatch):
        verify(verifier, sig, player)


def test_lookup_table_accounts_resolve(verifier, ledger, player, house):
    # House only appears among the loaded (lookup table) keys, index 2
    tx = raw_system_tx(
        [player, SYSTEM_PROGRAM_ID, house],
        [(transfer_data(PRICE), (0, 2))],
    )
    sig = ledger.add(tx)
    assert verify(verifier, sig, player).recipient == str(house)


def test_malformed_inputs_are_invalid(verifier, ledger, player, house):
    sig = ledger.add(transfer_tx(player, house, PRICE))
    with pytest.raises(InvalidInput):
        asyncio.run(verifier.verify("not-a-signature", str(player)))
    with pytest.raises(InvalidInput):
        asyncio.run(verifier.verify(sig, "not-an-address"))
    assert ledger.transaction_commitments == []


def test_network_failure_propagates(verifier, ledger, player):
    ledger.fail_reads = True
    with pytest.raises(NetworkFailure):
        verify(verifier, new_signature(), player)


def test_every_call_refetches(verifier, ledger, player, house):
    sig = ledger.add(transfer_tx(player, house, PRICE))
    verify(verifier, sig, player)
    verify(verifier, sig, player)
    assert len(ledger.transaction_commitments) == 2
