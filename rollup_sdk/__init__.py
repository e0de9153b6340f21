"""
Rollup provider SDK.

Client-side access to a rollup chain: results returned by an untrusted
validator are id-checked and proven against the base chain, and
transactions are submitted either through an aggregator or directly to
the base-chain inbox.
"""
from .config import ProviderConfig
from .exceptions import (
    CallRevertedError,
    IntegrityError,
    PollingCancelledError,
    PreconditionError,
    ProofInvalidError,
    ResolutionError,
    RollupSDKError,
    SubmissionError,
    TransportError,
    ValidatorConnectionError,
    ValidatorResponseError,
)
from .models import (
    AssertionProof,
    ConfirmedResult,
    DispatchPath,
    IncomingMessage,
    MessageKind,
    MessageResult,
    NodeInfo,
    OutgoingMessage,
    ResultCode,
    RollupTransaction,
    RollupTxReceipt,
    TransactionHandle,
    UnconfirmedResult,
)
from .provider import RollupProvider
from .version import __version__
from .wallet import RollupWallet

__all__ = [
    'RollupProvider', 'RollupWallet', 'ProviderConfig',
    'AssertionProof', 'ConfirmedResult', 'DispatchPath', 'IncomingMessage', 'MessageKind',
    'MessageResult', 'NodeInfo', 'OutgoingMessage', 'ResultCode', 'RollupTransaction',
    'RollupTxReceipt', 'TransactionHandle', 'UnconfirmedResult',
    'RollupSDKError', 'ResolutionError', 'IntegrityError', 'ProofInvalidError', 'SubmissionError',
    'PreconditionError', 'CallRevertedError', 'PollingCancelledError', 'TransportError',
    'ValidatorConnectionError', 'ValidatorResponseError',
    '__version__',
]
