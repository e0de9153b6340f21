"""
Canonical identifiers for rollup messages and log-proof chaining.

Everything here is a pure function over solidity-packed encodings hashed
with keccak-256, so an id computed locally matches the id the rollup
reports for the same message.
"""
from typing import Iterable, Union

from eth_abi.packed import encode_packed
from hexbytes import HexBytes
from web3 import Web3

HexLike = Union[str, bytes]


def _address(value: str) -> str:
    return Web3.to_checksum_address(value)


def _bytes32(value: HexLike) -> bytes:
    raw = bytes(HexBytes(value))
    if len(raw) != 32:
        raise ValueError(f"Expected 32 bytes, got {len(raw)}")
    return raw


def to_hex(value: bytes) -> str:
    """Return a 0x-prefixed lowercase hex string."""
    return "0x" + bytes(value).hex()


def payload_hash(payload: HexLike) -> bytes:
    """keccak-256 of a message payload."""
    return Web3.keccak(HexBytes(payload))


def message_id(
    chain: str,
    destination: str,
    sender: str,
    sequence_num: int,
    value: int,
    payload: HexLike,
) -> str:
    """
    Compute the rollup-native id of a transaction message.

    The id does not depend on gas settings or on the dispatch path, so the
    aggregator path and the inbox path agree on it.

    Args:
        chain: Rollup chain address
        destination: Destination address on the rollup
        sender: Sending account
        sequence_num: Per-account sequence number
        value: Attached value in wei
        payload: Calldata

    Returns:
        0x-prefixed 32-byte hex id
    """
    packed = encode_packed(
        ["address", "address", "address", "uint256", "uint256", "bytes32"],
        [
            _address(chain),
            _address(destination),
            _address(sender),
            sequence_num,
            value,
            payload_hash(payload),
        ],
    )
    return to_hex(Web3.keccak(packed))


def batch_hash(
    chain: str,
    destination: str,
    sequence_num: int,
    value: int,
    payload: HexLike,
) -> str:
    """
    Compute the hash a sender signs when submitting through an aggregator.

    The sender is bound by the signature rather than by the hash itself.
    """
    packed = encode_packed(
        ["address", "address", "uint256", "uint256", "bytes32"],
        [
            _address(chain),
            _address(destination),
            sequence_num,
            value,
            payload_hash(payload),
        ],
    )
    return to_hex(Web3.keccak(packed))


def deposit_message_id(message_num: int) -> str:
    """Deposit messages are identified by their inbox message number, left-padded to 32 bytes."""
    if message_num < 0:
        raise ValueError("message number must be non-negative")
    return to_hex(message_num.to_bytes(32, byteorder="big"))


def log_chain_step(acc: HexLike, item: HexLike) -> bytes:
    """One step of the log accumulator: keccak(acc ‖ item)."""
    return Web3.keccak(encode_packed(["bytes32", "bytes32"], [_bytes32(acc), _bytes32(item)]))


def fold_log_proof(pre_hash: HexLike, value_hash: HexLike, siblings: Iterable[HexLike]) -> bytes:
    """
    Fold a log-inclusion proof into its final accumulator.

    Starts from ``keccak(pre_hash ‖ value_hash)`` and chains every sibling
    hash in order.
    """
    acc = log_chain_step(pre_hash, value_hash)
    for sibling in siblings:
        acc = log_chain_step(acc, sibling)
    return acc
