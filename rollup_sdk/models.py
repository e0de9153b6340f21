"""
Data models for the rollup provider SDK.
"""
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Union

from eth_abi.packed import encode_packed
from hexbytes import HexBytes
from pydantic import BaseModel, ConfigDict, Field
from web3 import Web3

from . import hashing


class ResultCode(IntEnum):
    """Terminal outcome of executing a rollup message"""
    RETURN = 0
    REVERT = 1
    CONGESTION = 2
    INSUFFICIENT_GAS_FUNDS = 3
    INSUFFICIENT_TX_FUNDS = 4
    BAD_SEQUENCE_CODE = 5
    INVALID_MESSAGE_FORMAT = 6
    UNKNOWN = 255


class MessageKind(str, Enum):
    """How a message entered the rollup"""
    TRANSACTION = "transaction"
    ETH_DEPOSIT = "eth_deposit"
    ERC20_DEPOSIT = "erc20_deposit"
    ERC721_DEPOSIT = "erc721_deposit"
    CALL = "call"


DEPOSIT_KINDS = frozenset({MessageKind.ETH_DEPOSIT, MessageKind.ERC20_DEPOSIT, MessageKind.ERC721_DEPOSIT})


class DispatchPath(str, Enum):
    AGGREGATOR = "aggregator"
    INBOX = "inbox"


class Log(BaseModel):
    """Log emitted by a rollup message"""
    address: str
    topics: List[str] = Field(default_factory=list)
    data: str = "0x"


class IncomingMessage(BaseModel):
    """Envelope of the message that produced a result"""
    kind: MessageKind
    sender: str
    destination: Optional[str] = Field(None, alias="dest")
    sequence_num: int = Field(0, alias="sequenceNum")
    value: int = 0
    payload: str = Field("0x", alias="data")
    message_num: Optional[int] = Field(None, alias="messageNum")
    token: Optional[str] = None
    block_number: Optional[int] = Field(None, alias="blockNumber")

    model_config = ConfigDict(populate_by_name=True)

    def message_id(self, chain_address: str) -> str:
        """
        Derive the rollup-native id of this message.

        Args:
            chain_address: Address of the rollup chain the message was sent to

        Returns:
            0x-prefixed 32-byte hex id

        Raises:
            ValueError: If the envelope lacks the fields its kind needs
        """
        if self.kind == MessageKind.TRANSACTION:
            if self.destination is None:
                raise ValueError("transaction message has no destination")
            return hashing.message_id(
                chain_address,
                self.destination,
                self.sender,
                self.sequence_num,
                self.value,
                self.payload,
            )
        if self.kind in DEPOSIT_KINDS:
            if self.message_num is None:
                raise ValueError(f"{self.kind.value} message has no message number")
            return hashing.deposit_message_id(self.message_num)
        raise ValueError(f"{self.kind.value} messages have no message id")


class MessageResult(BaseModel):
    """Outcome of executing one rollup message"""
    result_code: ResultCode = Field(..., alias="resultCode")
    logs: List[Log] = Field(default_factory=list)
    return_data: str = Field("0x", alias="returnData")
    incoming: IncomingMessage

    model_config = ConfigDict(populate_by_name=True)

    @property
    def succeeded(self) -> bool:
        return self.result_code == ResultCode.RETURN


class AssertionProof(BaseModel):
    """Evidence that a result value is included in an asserted log accumulator"""
    log_pre_hash: str = Field(..., alias="logPreHash")
    log_val_hashes: List[str] = Field(default_factory=list, alias="logValHashes")
    log_post_hash: str = Field(..., alias="logPostHash")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class NodeInfo(BaseModel):
    """Rollup assertion ("node") that produced a result"""
    node_hash: str = Field(..., alias="nodeHash")
    node_height: int = Field(..., alias="nodeHeight")
    l1_tx_hash: Optional[str] = Field(None, alias="l1TxHash")
    l1_confirmations: Optional[int] = Field(None, alias="l1Confirmations")

    model_config = ConfigDict(populate_by_name=True)

    def same_location(self, other: "NodeInfo") -> bool:
        return self.node_height == other.node_height and self.node_hash == other.node_hash


class RawMessageResult(BaseModel):
    """Unverified result as returned by the validator"""
    value: str
    node_info: Optional[NodeInfo] = Field(None, alias="nodeInfo")
    proof: Optional[AssertionProof] = None

    model_config = ConfigDict(populate_by_name=True)


class OutputMessage(BaseModel):
    """Output message of an asserted node, used for payment transfers"""
    value: str = Field(..., alias="outputMsg")

    model_config = ConfigDict(populate_by_name=True)


@dataclass(frozen=True)
class RawResolution:
    """A result whose id has been checked but whose proof has not."""
    message_id: str
    result: MessageResult
    value: bytes
    node_info: Optional[NodeInfo] = None
    proof: Optional[AssertionProof] = None

    @property
    def verifiable(self) -> bool:
        return (
            self.proof is not None
            and self.node_info is not None
            and self.node_info.l1_tx_hash is not None
        )


@dataclass(frozen=True)
class UnconfirmedResult:
    """Result resolved but not yet backed by a confirmed on-chain assertion."""
    result: MessageResult
    message_id: str
    node_info: Optional[NodeInfo] = None

    @property
    def confirmations(self) -> int:
        return 0


@dataclass(frozen=True)
class ConfirmedResult:
    """Result proven to be inside an on-chain assertion."""
    result: MessageResult
    message_id: str
    node_info: NodeInfo
    proof: AssertionProof
    confirmations: int


ResolvedResult = Union[UnconfirmedResult, ConfirmedResult]


class OutgoingMessage(BaseModel):
    """A transaction message about to be submitted"""
    destination: str
    sequence_num: int = Field(..., ge=0)
    value: int = Field(0, ge=0)
    payload: str = "0x"
    gas_limit: Optional[int] = None
    gas_price: Optional[int] = None

    def message_id(self, chain_address: str, sender: str) -> str:
        return hashing.message_id(
            chain_address, self.destination, sender, self.sequence_num, self.value, self.payload
        )

    def batch_hash(self, chain_address: str) -> str:
        return hashing.batch_hash(
            chain_address, self.destination, self.sequence_num, self.value, self.payload
        )

    def as_data(self) -> bytes:
        """
        Serialize for the inbox's ``sendL2Message``.

        Raises:
            ValueError: If gas limit or gas price is missing
        """
        if self.gas_limit is None or self.gas_price is None:
            raise ValueError("gas_limit and gas_price are required to serialize a message")
        return encode_packed(
            ["uint8", "uint256", "uint256", "uint256", "address", "uint256", "bytes"],
            [
                0,
                self.gas_limit,
                self.gas_price,
                self.sequence_num,
                Web3.to_checksum_address(self.destination),
                self.value,
                bytes(HexBytes(self.payload)),
            ],
        )


class TransactionHandle(BaseModel):
    """Handle returned from a submission; ``hash`` resolves through the provider"""
    hash: str
    message_id: str = Field(..., alias="messageId")
    from_address: str = Field(..., alias="from")
    to: Optional[str] = None
    nonce: int
    value: int = 0
    data: str = "0x"
    path: DispatchPath
    chain_id: int = Field(..., alias="chainId")

    model_config = ConfigDict(populate_by_name=True)


class RollupTxReceipt(BaseModel):
    """Receipt shaped like a base-chain receipt, backed by a rollup result"""
    tx_hash: str = Field(..., alias="transactionHash")
    block_number: int = Field(..., alias="blockNumber")
    block_hash: str = Field(..., alias="blockHash")
    status: int
    gas_used: int = Field(1, alias="gasUsed")
    cumulative_gas_used: int = Field(1, alias="cumulativeGasUsed")
    from_address: str = Field(..., alias="from")
    to_address: Optional[str] = Field(None, alias="to")
    logs: List[Log] = Field(default_factory=list)
    confirmations: int = 0
    transaction_index: int = Field(0, alias="transactionIndex")

    model_config = ConfigDict(populate_by_name=True)


class RollupTransaction(BaseModel):
    """Transaction shaped like a base-chain transaction, backed by a rollup result"""
    hash: str
    from_address: str = Field(..., alias="from")
    to: Optional[str] = None
    nonce: int
    value: int = 0
    data: str = Field("0x", alias="input")
    gas: int = 1
    gas_price: int = Field(1, alias="gasPrice")
    chain_id: int = Field(..., alias="chainId")
    block_hash: Optional[str] = Field(None, alias="blockHash")
    block_number: Optional[int] = Field(None, alias="blockNumber")
    confirmations: int = 0

    model_config = ConfigDict(populate_by_name=True)


class L2Call(BaseModel):
    """Read-only call executed by the validator"""
    gas_limit: Optional[int] = Field(None, alias="gasLimit")
    gas_price: Optional[int] = Field(None, alias="gasPrice")
    to: str
    data: str = "0x"

    model_config = ConfigDict(populate_by_name=True)

    def to_rpc(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
