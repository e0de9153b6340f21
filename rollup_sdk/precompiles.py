"""
Rollup system-info precompiles.

Balances, code and transaction counts live inside the rollup, so they are
read by executing calls to fixed precompile addresses through the validator.
"""
from typing import Any, Callable, List, Sequence

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector
from web3 import Web3

from .models import L2Call

ARB_SYS_ADDRESS = "0x0000000000000000000000000000000000000064"
ARB_INFO_ADDRESS = "0x0000000000000000000000000000000000000065"

PRECOMPILE_ADDRESSES = frozenset({ARB_SYS_ADDRESS, ARB_INFO_ADDRESS})

# Code reported for the precompiles themselves
PRECOMPILE_CODE = "0x100"


def is_precompile(address: str) -> bool:
    return address.lower() in PRECOMPILE_ADDRESSES


def encode_call(signature: str, arg_types: Sequence[str], args: Sequence[Any]) -> bytes:
    """Selector plus ABI-encoded arguments, e.g. ``encode_call("getBalance(address)", ["address"], [addr])``"""
    return function_signature_to_4byte_selector(signature) + encode(list(arg_types), list(args))


def withdraw_eth_calldata(destination: str, amount: int) -> bytes:
    return encode_call(
        "withdrawEth(address,uint256)",
        ["address", "uint256"],
        [Web3.to_checksum_address(destination), amount],
    )


class SystemInfo:
    """Typed reads against the system-info precompiles"""

    def __init__(self, execute: Callable[[L2Call], bytes]):
        """
        Args:
            execute: Runs a read-only rollup call and returns its return data
        """
        self._execute = execute

    def _read(self, to: str, signature: str, arg_types: List[str], args: List[Any], out_type: str) -> Any:
        calldata = encode_call(signature, arg_types, args)
        returned = self._execute(L2Call(to=to, data="0x" + calldata.hex()))
        return decode([out_type], returned)[0]

    def get_balance(self, address: str) -> int:
        return self._read(
            ARB_INFO_ADDRESS, "getBalance(address)", ["address"],
            [Web3.to_checksum_address(address)], "uint256",
        )

    def get_code(self, address: str) -> bytes:
        return self._read(
            ARB_INFO_ADDRESS, "getCode(address)", ["address"],
            [Web3.to_checksum_address(address)], "bytes",
        )

    def get_transaction_count(self, address: str) -> int:
        return self._read(
            ARB_SYS_ADDRESS, "getTransactionCount(address)", ["address"],
            [Web3.to_checksum_address(address)], "uint256",
        )
