"""
Contract interfaces used on the base chain, and event decoding for them.

Only the functions and events the provider touches are listed. Event
decoding sits behind ``EventDecoder`` so the verification code depends on
event names and arguments rather than on a binding library.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol

from eth_abi.exceptions import DecodingError
from eth_utils import event_abi_to_log_topic
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import LogTopicError, MismatchedABI

logger = logging.getLogger(__name__)

ROLLUP_ASSERTED = "RollupAsserted"
TRANSACTION_MESSAGE_DELIVERED = "TransactionMessageDelivered"
ETH_DEPOSIT_MESSAGE_DELIVERED = "EthDepositMessageDelivered"
ERC20_DEPOSIT_MESSAGE_DELIVERED = "ERC20DepositMessageDelivered"
ERC721_DEPOSIT_MESSAGE_DELIVERED = "ERC721DepositMessageDelivered"

DEPOSIT_EVENTS = frozenset({
    ETH_DEPOSIT_MESSAGE_DELIVERED,
    ERC20_DEPOSIT_MESSAGE_DELIVERED,
    ERC721_DEPOSIT_MESSAGE_DELIVERED,
})

# Positions inside RollupAsserted.fields
ASSERTED_LOG_POST_HASH_INDEX = 6
ASSERTED_NODE_HASH_INDEX = 7


def _input(name: str, type_: str, indexed: bool = False) -> Dict[str, Any]:
    return {"indexed": indexed, "internalType": type_, "name": name, "type": type_}


def _arg(name: str, type_: str) -> Dict[str, Any]:
    return {"internalType": type_, "name": name, "type": type_}


ROLLUP_ABI: List[Dict[str, Any]] = [
    {
        "anonymous": False,
        "inputs": [
            _input("fields", "bytes32[8]"),
            _input("inboxCount", "uint256"),
            _input("importedMessageCount", "uint256"),
            _input("numArbGas", "uint256"),
            _input("numSteps", "uint256"),
        ],
        "name": ROLLUP_ASSERTED,
        "type": "event",
    },
    {
        "inputs": [],
        "name": "globalInbox",
        "outputs": [_arg("", "address")],
        "stateMutability": "view",
        "type": "function",
    },
]

INBOX_ABI: List[Dict[str, Any]] = [
    {
        "anonymous": False,
        "inputs": [
            _input("chain", "address", True),
            _input("to", "address", True),
            _input("from", "address", True),
            _input("seqNumber", "uint256"),
            _input("value", "uint256"),
            _input("data", "bytes"),
        ],
        "name": TRANSACTION_MESSAGE_DELIVERED,
        "type": "event",
    },
    {
        "anonymous": False,
        "inputs": [
            _input("chain", "address", True),
            _input("to", "address", True),
            _input("from", "address", True),
            _input("value", "uint256"),
            _input("messageNum", "uint256"),
        ],
        "name": ETH_DEPOSIT_MESSAGE_DELIVERED,
        "type": "event",
    },
    {
        "anonymous": False,
        "inputs": [
            _input("chain", "address", True),
            _input("to", "address", True),
            _input("from", "address", True),
            _input("erc20", "address"),
            _input("value", "uint256"),
            _input("messageNum", "uint256"),
        ],
        "name": ERC20_DEPOSIT_MESSAGE_DELIVERED,
        "type": "event",
    },
    {
        "anonymous": False,
        "inputs": [
            _input("chain", "address", True),
            _input("to", "address", True),
            _input("from", "address", True),
            _input("erc721", "address"),
            _input("id", "uint256"),
            _input("messageNum", "uint256"),
        ],
        "name": ERC721_DEPOSIT_MESSAGE_DELIVERED,
        "type": "event",
    },
    {
        "inputs": [_arg("chain", "address"), _arg("messageData", "bytes")],
        "name": "sendL2Message",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [_arg("chain", "address"), _arg("to", "address")],
        "name": "depositEthMessage",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function",
    },
    {
        "inputs": [
            _arg("chain", "address"),
            _arg("erc20", "address"),
            _arg("to", "address"),
            _arg("value", "uint256"),
        ],
        "name": "depositERC20Message",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            _arg("chain", "address"),
            _arg("erc721", "address"),
            _arg("to", "address"),
            _arg("id", "uint256"),
        ],
        "name": "depositERC721Message",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "withdrawEth",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [_arg("erc20", "address")],
        "name": "withdrawERC20",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [_arg("erc721", "address"), _arg("id", "uint256")],
        "name": "withdrawERC721",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            _arg("originalOwner", "address"),
            _arg("newOwner", "address"),
            _arg("nodeHash", "bytes32"),
            _arg("messageIndex", "uint256"),
        ],
        "name": "transferPayment",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]


@dataclass(frozen=True)
class DecodedEvent:
    """One decoded base-chain log"""
    name: str
    address: str
    args: Mapping[str, Any] = field(default_factory=dict)


class EventDecoder(Protocol):
    """Anything that can turn a raw log into a named event."""

    def decode_event(self, log: Mapping[str, Any]) -> Optional[DecodedEvent]:
        """Return the decoded event, or None if the log is not one of ours"""
        ...


class ContractEventDecoder:
    """
    Decodes logs against the events of one contract ABI.

    Decoding needs no chain access, so the contract object is created on a
    provider-less ``Web3`` instance.
    """

    def __init__(self, abi: List[Dict[str, Any]]):
        self._contract = Web3().eth.contract(abi=abi)
        self._events_by_topic: Dict[bytes, str] = {
            bytes(event_abi_to_log_topic(entry)): entry["name"]
            for entry in abi
            if entry.get("type") == "event"
        }

    def decode_event(self, log: Mapping[str, Any]) -> Optional[DecodedEvent]:
        topics = log.get("topics") or []
        if not topics:
            return None
        name = self._events_by_topic.get(bytes(HexBytes(topics[0])))
        if name is None:
            return None
        try:
            decoded = getattr(self._contract.events, name)().process_log(log)
        except (MismatchedABI, LogTopicError, DecodingError, ValueError) as e:
            logger.debug(f"Log matched {name} topic but failed to decode: {e}")
            return None
        return DecodedEvent(name=name, address=log.get("address", ""), args=dict(decoded["args"]))


def rollup_event_decoder() -> ContractEventDecoder:
    return ContractEventDecoder(ROLLUP_ABI)


def inbox_event_decoder() -> ContractEventDecoder:
    return ContractEventDecoder(INBOX_ABI)
