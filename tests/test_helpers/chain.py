"""
Fake validator transport, fake base chain and result builders used across tests.
"""
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import MagicMock

from eth_abi import encode
from eth_utils import event_abi_to_log_topic
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import TransactionNotFound

from rollup_sdk.codec import JsonValueCodec, ValueCodec
from rollup_sdk.contracts import INBOX_ABI, ROLLUP_ABI, ROLLUP_ASSERTED
from rollup_sdk.exceptions import ValidatorResponseError
from rollup_sdk.hashing import fold_log_proof, to_hex
from rollup_sdk.models import (
    AssertionProof,
    IncomingMessage,
    MessageKind,
    MessageResult,
    NodeInfo,
    ResultCode,
)
from rollup_sdk.provider import RollupProvider
from rollup_sdk.rpc.aggregator import AggregatorClient
from rollup_sdk.rpc.transport import JsonRpcTransport
from rollup_sdk.rpc.validator import ValidatorClient

# Test constants used throughout tests
TEST_RPC_URL = "https://rpc.example.com"
TEST_VALIDATOR_URL = "https://validator.example.com"
TEST_AGGREGATOR_URL = "https://aggregator.example.com"
TEST_PRIV_KEY = "0x0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"

# Last six bytes 0x000000066eee
ROLLUP_ADDRESS = Web3.to_checksum_address("0x" + "ab" * 14 + "000000066eee")
ROLLUP_CHAIN_ID = 0x66eee
INBOX_ADDRESS = Web3.to_checksum_address("0x" + "cd" * 20)
DEST_ADDRESS = Web3.to_checksum_address("0x1234567890123456789012345678901234567890")

INBOX_FUNCTIONS = (
    "sendL2Message",
    "depositEthMessage",
    "depositERC20Message",
    "depositERC721Message",
    "withdrawEth",
    "withdrawERC20",
    "withdrawERC721",
    "transferPayment",
)


class FakeTransport(JsonRpcTransport):
    """
    In-memory JSON-RPC transport.

    ``responses`` maps a method name to a value, an exception instance, or a
    callable taking the params object. Every call is recorded in ``calls``.
    """

    def __init__(self, responses: Optional[Dict[str, Any]] = None):
        self.responses: Dict[str, Any] = dict(responses or {})
        self.calls: List[tuple] = []
        self.closed = False

    def call(self, method: str, params: Any = None) -> Any:
        self.calls.append((method, params))
        if method not in self.responses:
            raise ValidatorResponseError(f"method not found: {method}", error_code=-32601)
        response = self.responses[method]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(params)
        return response

    def close(self) -> None:
        self.closed = True

    def methods_called(self) -> List[str]:
        return [method for method, _ in self.calls]


def _contract_fn(to: str) -> MagicMock:
    fn = MagicMock()
    fn.estimate_gas = MagicMock(return_value=100000)

    def build_tx(tx_params):
        return {
            **tx_params,
            'to': to,
            'data': '0x1234',
            'chainId': 1,
        }

    fn.build_transaction = MagicMock(side_effect=build_tx)
    return fn


class FakeBaseChain:
    """MagicMock-backed Web3 with a receipt store and rollup/inbox contract mocks"""

    def __init__(self, block_number: int = 100):
        self.receipts: Dict[str, Dict[str, Any]] = {}

        self.rollup_contract = MagicMock()
        self.rollup_contract.address = ROLLUP_ADDRESS
        self.rollup_contract.functions.globalInbox.return_value.call.return_value = INBOX_ADDRESS

        self.inbox_contract = MagicMock()
        self.inbox_contract.address = INBOX_ADDRESS
        for name in INBOX_FUNCTIONS:
            getattr(self.inbox_contract.functions, name).return_value = _contract_fn(INBOX_ADDRESS)

        self.w3 = MagicMock()
        self.w3.eth.block_number = block_number
        self.w3.eth.gas_price = 1000000000  # 1 gwei
        self.w3.eth.get_transaction_count = MagicMock(return_value=12)
        self.w3.eth.get_transaction_receipt = MagicMock(side_effect=self._receipt)
        self.w3.eth.contract = MagicMock(side_effect=self._contract)
        self.w3.eth.send_raw_transaction = MagicMock(return_value=HexBytes(b"\xbb" * 32))
        self.w3.provider.make_request = MagicMock(return_value={"jsonrpc": "2.0", "id": 1, "result": "0x1"})

    def _receipt(self, tx_hash: Any) -> Dict[str, Any]:
        key = to_hex(HexBytes(tx_hash))
        if key not in self.receipts:
            raise TransactionNotFound(f"Transaction with hash: {key} not found.")
        return self.receipts[key]

    def _contract(self, address: str = None, abi: Any = None) -> MagicMock:
        if abi is ROLLUP_ABI:
            return self.rollup_contract
        return self.inbox_contract

    def add_receipt(self, tx_hash: str, logs: List[Dict[str, Any]], block_number: int = 90) -> Dict[str, Any]:
        receipt = {
            "transactionHash": HexBytes(tx_hash),
            "blockNumber": block_number,
            "status": 1,
            "logs": logs,
        }
        self.receipts[to_hex(HexBytes(tx_hash))] = receipt
        return receipt

    def inbox_fn(self, name: str) -> MagicMock:
        return getattr(self.inbox_contract.functions, name).return_value


def build_log(
    abi: List[Dict[str, Any]],
    event_name: str,
    address: str,
    args: Dict[str, Any],
    log_index: int = 0,
    block_number: int = 1,
) -> Dict[str, Any]:
    """ABI-encode a raw log for ``event_name`` the way a node would return it"""
    event_abi = next(e for e in abi if e.get("type") == "event" and e["name"] == event_name)
    topics = [HexBytes(event_abi_to_log_topic(event_abi))]
    data_types, data_values = [], []
    for arg in event_abi["inputs"]:
        if arg["indexed"]:
            topics.append(HexBytes(encode([arg["type"]], [args[arg["name"]]])))
        else:
            data_types.append(arg["type"])
            data_values.append(args[arg["name"]])
    return {
        "address": address,
        "topics": topics,
        "data": HexBytes(encode(data_types, data_values)),
        "logIndex": log_index,
        "transactionIndex": 0,
        "transactionHash": HexBytes(b"\x11" * 32),
        "blockHash": HexBytes(b"\x22" * 32),
        "blockNumber": block_number,
    }


def inbox_log(event_name: str, args: Dict[str, Any], address: str = INBOX_ADDRESS) -> Dict[str, Any]:
    return build_log(INBOX_ABI, event_name, address, args)


def asserted_log(log_post_hash: str, node_hash: str, address: str = ROLLUP_ADDRESS) -> Dict[str, Any]:
    """RollupAsserted log whose fields carry the given accumulator and node hash"""
    fields = [bytes([i]) * 32 for i in range(8)]
    fields[6] = bytes(HexBytes(log_post_hash))
    fields[7] = bytes(HexBytes(node_hash))
    return build_log(ROLLUP_ABI, ROLLUP_ASSERTED, address, {
        "fields": fields,
        "inboxCount": 4,
        "importedMessageCount": 2,
        "numArbGas": 1000,
        "numSteps": 50,
    })


def transaction_result(
    sender: str,
    destination: str = DEST_ADDRESS,
    sequence_num: int = 0,
    value: int = 0,
    payload: str = "0x",
    result_code: ResultCode = ResultCode.RETURN,
    return_data: str = "0x",
    logs: Optional[List[Dict[str, Any]]] = None,
    block_number: Optional[int] = None,
) -> MessageResult:
    return MessageResult(
        resultCode=result_code,
        logs=logs or [],
        returnData=return_data,
        incoming=IncomingMessage(
            kind=MessageKind.TRANSACTION,
            sender=sender,
            dest=destination,
            sequenceNum=sequence_num,
            value=value,
            data=payload,
            blockNumber=block_number,
        ),
    )


def deposit_result(
    sender: str,
    message_num: int,
    kind: MessageKind = MessageKind.ETH_DEPOSIT,
    value: int = 0,
) -> MessageResult:
    return MessageResult(
        resultCode=ResultCode.RETURN,
        incoming=IncomingMessage(kind=kind, sender=sender, value=value, messageNum=message_num),
    )


def make_proof(codec: ValueCodec, value: bytes, sibling_count: int = 2, seed: str = "proof") -> AssertionProof:
    """Log-inclusion proof that genuinely contains ``value``"""
    pre_hash = Web3.keccak(text=f"{seed}-pre")
    siblings = [Web3.keccak(text=f"{seed}-sibling-{i}") for i in range(sibling_count)]
    post_hash = fold_log_proof(pre_hash, codec.hash(value), siblings)
    return AssertionProof(
        logPreHash=to_hex(pre_hash),
        logValHashes=[to_hex(s) for s in siblings],
        logPostHash=to_hex(post_hash),
    )


def raw_result_response(
    result: MessageResult,
    codec: Optional[ValueCodec] = None,
    node_info: Optional[NodeInfo] = None,
    proof: Optional[AssertionProof] = None,
) -> Dict[str, Any]:
    """Body of a found ``Validator.GetMessageResult`` response"""
    codec = codec or JsonValueCodec()
    return {
        "found": True,
        "rawVal": to_hex(codec.encode(result)),
        "nodeInfo": node_info.model_dump(by_alias=True) if node_info else None,
        "proof": proof.model_dump(by_alias=True) if proof else None,
    }


def make_provider(
    chain: FakeBaseChain,
    validator_responses: Optional[Dict[str, Any]] = None,
    aggregator_transport: Optional[FakeTransport] = None,
    **kwargs
) -> RollupProvider:
    """
    Provider wired to a fake base chain and a fake validator.

    ``Validator.GetVMInfo`` answers with ``ROLLUP_ADDRESS`` unless overridden.
    """
    responses: Dict[str, Any] = {"Validator.GetVMInfo": {"vmID": ROLLUP_ADDRESS}}
    responses.update(validator_responses or {})
    validator = ValidatorClient(transport=FakeTransport(responses))
    aggregator = AggregatorClient(transport=aggregator_transport) if aggregator_transport is not None else None
    kwargs.setdefault("poll_interval", 0.001)
    return RollupProvider(w3=chain.w3, validator=validator, aggregator=aggregator, **kwargs)


def by_message_id(results: Dict[str, Dict[str, Any]]) -> Callable[[Any], Dict[str, Any]]:
    """GetMessageResult handler answering from a message-id keyed table"""
    def handler(params):
        return results.get(params["txHash"], {"found": False})
    return handler
