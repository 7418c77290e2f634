import json

import base58
import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.signature import Signature

from game import ConfigFailure, HouseKeyCustodian, keypair_from_secret
from game.instructions import decode_system_transfer
from game.prepare import build_transfer_message


def test_load_from_base58(house_keypair, house_secret):
    custodian = HouseKeyCustodian.from_secret(house_secret)
    assert custodian.pubkey == house_keypair.pubkey()
    assert custodian.public_address() == str(house_keypair.pubkey())


def test_load_from_json_array(house_keypair):
    secret = json.dumps(list(bytes(house_keypair)))
    custodian = HouseKeyCustodian.from_secret(secret)
    assert custodian.public_address() == str(house_keypair.pubkey())


def test_surrounding_whitespace_is_ignored(house_keypair, house_secret):
    custodian = HouseKeyCustodian.from_secret(f"  {house_secret}\n")
    assert custodian.pubkey == house_keypair.pubkey()

    spaced_json = "  " + json.dumps(list(bytes(house_keypair))) + " "
    assert HouseKeyCustodian.from_secret(spaced_json).pubkey == house_keypair.pubkey()


@pytest.mark.parametrize("secret", ["", "   ", None])
def test_empty_secret_is_fatal(secret):
    with pytest.raises(ConfigFailure, match="empty"):
        HouseKeyCustodian.from_secret(secret)


@pytest.mark.parametrize("secret", [
    "not-a-key",
    "[1, 2, 3]",
    "[\"a\", \"b\"]",
    "[1, 2,",
    base58.b58encode(b"\x01" * 10).decode(),
])
def test_unparseable_secret_is_fatal(secret):
    with pytest.raises(ConfigFailure, match="Failed to parse HOUSE_SECRET_KEY"):
        HouseKeyCustodian.from_secret(secret)


def test_parse_error_does_not_echo_secret():
    secret = "[" + ",".join(["300"] * 64) + "]"
    with pytest.raises(ConfigFailure) as exc_info:
        HouseKeyCustodian.from_secret(secret)
    assert "300" not in str(exc_info.value)


def test_repr_shows_only_public_address(house_keypair, house_secret):
    custodian = HouseKeyCustodian.from_secret(house_secret)
    assert house_secret not in repr(custodian)
    assert str(house_keypair.pubkey()) in repr(custodian)
    assert not hasattr(custodian, "keypair")


def test_sign_produces_signed_house_transfer(house_secret):
    custodian = HouseKeyCustodian.from_secret(house_secret)
    player = Keypair().pubkey()
    blockhash = Hash.new_unique()
    message = build_transfer_message(custodian.pubkey, player, 40_000_000, blockhash)

    tx = custodian.sign(message, blockhash)

    assert tx.signatures[0] != Signature.default()
    assert tx.message.account_keys[0] == custodian.pubkey
    decoded = decode_system_transfer(tx.message.instructions[0], tx.message.account_keys)
    assert decoded.lamports == 40_000_000
    assert decoded.destination == player


def test_keypair_from_secret_rejects_empty():
    with pytest.raises(ValueError):
        keypair_from_secret("  ")
