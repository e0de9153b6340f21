"""
Request variants accepted by ``RollupProvider.perform``.

Each supported chain-client method is its own type; anything else goes
through ``PassThrough`` to the base chain unchanged.
"""
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass(frozen=True)
class GetTransactionReceipt:
    transaction_hash: str


@dataclass(frozen=True)
class GetTransaction:
    transaction_hash: str
    cancel_event: Optional[threading.Event] = field(default=None, compare=False)


@dataclass(frozen=True)
class GetBalance:
    address: str


@dataclass(frozen=True)
class GetCode:
    address: str


@dataclass(frozen=True)
class GetTransactionCount:
    address: str


@dataclass(frozen=True)
class GetBlockNumber:
    pass


@dataclass(frozen=True)
class GetLogs:
    filter: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Call:
    transaction: Dict[str, Any]
    block_tag: Optional[str] = None


@dataclass(frozen=True)
class PassThrough:
    method: str
    params: List[Any] = field(default_factory=list)


RollupRequest = Union[
    GetTransactionReceipt,
    GetTransaction,
    GetBalance,
    GetCode,
    GetTransactionCount,
    GetBlockNumber,
    GetLogs,
    Call,
    PassThrough,
]
