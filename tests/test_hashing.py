"""
Tests for message identifiers and log-proof hashing.
"""
import pytest
from eth_abi.packed import encode_packed
from web3 import Web3

from rollup_sdk import hashing

from tests.test_helpers import DEST_ADDRESS, ROLLUP_ADDRESS

SENDER = Web3.to_checksum_address("0x" + "ee" * 20)


def test_message_id_matches_packed_keccak():
    expected = Web3.keccak(encode_packed(
        ["address", "address", "address", "uint256", "uint256", "bytes32"],
        [ROLLUP_ADDRESS, DEST_ADDRESS, SENDER, 3, 10**18, Web3.keccak(b"\xca\xfe")],
    ))
    assert hashing.message_id(ROLLUP_ADDRESS, DEST_ADDRESS, SENDER, 3, 10**18, "0xcafe") == hashing.to_hex(expected)


def test_message_id_accepts_lowercase_addresses():
    """Case of the address strings does not change the id"""
    lower = hashing.message_id(ROLLUP_ADDRESS.lower(), DEST_ADDRESS.lower(), SENDER.lower(), 1, 0, "0x")
    mixed = hashing.message_id(ROLLUP_ADDRESS, DEST_ADDRESS, SENDER, 1, 0, "0x")
    assert lower == mixed


def test_message_id_depends_on_every_field():
    base = hashing.message_id(ROLLUP_ADDRESS, DEST_ADDRESS, SENDER, 1, 5, "0x01")
    assert base != hashing.message_id(ROLLUP_ADDRESS, DEST_ADDRESS, SENDER, 2, 5, "0x01")
    assert base != hashing.message_id(ROLLUP_ADDRESS, DEST_ADDRESS, SENDER, 1, 6, "0x01")
    assert base != hashing.message_id(ROLLUP_ADDRESS, DEST_ADDRESS, SENDER, 1, 5, "0x02")
    assert base != hashing.message_id(ROLLUP_ADDRESS, SENDER, DEST_ADDRESS, 1, 5, "0x01")


def test_batch_hash_does_not_bind_sender():
    expected = Web3.keccak(encode_packed(
        ["address", "address", "uint256", "uint256", "bytes32"],
        [ROLLUP_ADDRESS, DEST_ADDRESS, 7, 0, Web3.keccak(b"")],
    ))
    batch = hashing.batch_hash(ROLLUP_ADDRESS, DEST_ADDRESS, 7, 0, "0x")
    assert batch == hashing.to_hex(expected)
    assert batch != hashing.message_id(ROLLUP_ADDRESS, DEST_ADDRESS, SENDER, 7, 0, "0x")


def test_payload_accepts_bytes_or_hex():
    assert hashing.payload_hash(b"\x01\x02") == hashing.payload_hash("0x0102")


def test_deposit_message_id_is_left_padded_message_number():
    assert hashing.deposit_message_id(7) == "0x" + "00" * 31 + "07"
    assert hashing.deposit_message_id(0) == "0x" + "00" * 32
    assert hashing.deposit_message_id(256) == "0x" + "00" * 30 + "0100"


def test_deposit_message_id_rejects_negative():
    with pytest.raises(ValueError, match="non-negative"):
        hashing.deposit_message_id(-1)


def test_log_chain_step():
    acc = b"\x01" * 32
    item = b"\x02" * 32
    assert hashing.log_chain_step(acc, item) == Web3.keccak(acc + item)


def test_log_chain_step_rejects_short_input():
    with pytest.raises(ValueError, match="Expected 32 bytes"):
        hashing.log_chain_step(b"\x01" * 31, b"\x02" * 32)


def test_fold_without_siblings_is_single_step():
    pre = b"\x03" * 32
    value_hash = b"\x04" * 32
    assert hashing.fold_log_proof(pre, value_hash, []) == hashing.log_chain_step(pre, value_hash)


def test_fold_chains_siblings_in_order():
    pre, value_hash = b"\x05" * 32, b"\x06" * 32
    s1, s2 = b"\x07" * 32, b"\x08" * 32
    expected = Web3.keccak(Web3.keccak(Web3.keccak(pre + value_hash) + s1) + s2)
    assert hashing.fold_log_proof(pre, value_hash, [s1, s2]) == expected
    assert hashing.fold_log_proof(pre, value_hash, [s2, s1]) != expected


def test_to_hex_is_prefixed_lowercase():
    assert hashing.to_hex(b"\xAB\xcd") == "0xabcd"
    assert hashing.to_hex(b"") == "0x"
