"""
RollupProvider - chain-client-shaped access to a rollup chain.

Receipt, transaction, balance, code, transaction-count, block-number, logs
and call requests are answered from the rollup; everything else is
forwarded to the base-chain client.
"""
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Union

import requests
from hexbytes import HexBytes
from web3 import Web3

from . import methods
from .addresses import ChainAddressResolver
from .codec import JsonValueCodec, ValueCodec
from .config import DEFAULT_POLL_INTERVAL, ProviderConfig, validate_endpoint_url
from .contracts import inbox_event_decoder, rollup_event_decoder
from .exceptions import (
    CallRevertedError,
    PreconditionError,
    TransportError,
    ValidatorConnectionError,
    ValidatorResponseError,
)
from .hashing import to_hex
from .models import (
    ConfirmedResult,
    L2Call,
    MessageKind,
    MessageResult,
    NodeInfo,
    OutputMessage,
    ResolvedResult,
    RollupTransaction,
    RollupTxReceipt,
    UnconfirmedResult,
)
from .polling import poll_until
from .precompiles import PRECOMPILE_CODE, SystemInfo, is_precompile
from .proof import ProofVerifier
from .resolver import ResultResolver
from .rpc.aggregator import AggregatorClient
from .rpc.validator import ValidatorClient

logger = logging.getLogger(__name__)

ZERO_HASH = "0x" + "00" * 32

# Failures that mean "try again on the next poll"
TRANSIENT_ERRORS = (ValidatorConnectionError, requests.RequestException)


def _hex_data(data: Any) -> str:
    if data is None:
        return "0x"
    return to_hex(HexBytes(data))


class RollupProvider:
    """
    Client for a rollup chain, backed by a validator, a base-chain Web3
    instance and optionally an aggregator.

    Results returned by the validator are id-checked and, when the validator
    supplies a proof, verified against the base chain before they are
    reported as confirmed.
    """

    _HANDLERS = {
        methods.GetTransactionReceipt: "_perform_get_transaction_receipt",
        methods.GetTransaction: "_perform_get_transaction",
        methods.GetBalance: "_perform_get_balance",
        methods.GetCode: "_perform_get_code",
        methods.GetTransactionCount: "_perform_get_transaction_count",
        methods.GetBlockNumber: "_perform_get_block_number",
        methods.GetLogs: "_perform_get_logs",
        methods.Call: "_perform_call",
        methods.PassThrough: "_perform_pass_through",
    }

    def __init__(
        self,
        validator_url: Optional[str] = None,
        rpc_url: Optional[str] = None,
        w3: Optional[Web3] = None,
        aggregator_url: Optional[str] = None,
        deterministic_assertions: bool = False,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        retry_count: int = 3,
        timeout: int = 30,
        codec: Optional[ValueCodec] = None,
        validator: Optional[ValidatorClient] = None,
        aggregator: Optional[AggregatorClient] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the RollupProvider

        Args:
            validator_url: Rollup validator RPC URL (optional if validator provided)
            rpc_url: Base-chain RPC URL (optional if w3 provided)
            w3: Base-chain Web3 instance (optional if rpc_url provided)
            aggregator_url: Aggregator RPC URL; enables the fast submission path
            deterministic_assertions: Use pending node state and block-distance confirmations
            poll_interval: Seconds between polls when waiting for results
            retry_count: Number of retries for HTTP requests
            timeout: Timeout for HTTP requests in seconds
            codec: Codec for serialized result values
            validator: Pre-built validator client
            aggregator: Pre-built aggregator client
            logger: Optional logger instance to use for debug/info logging

        Raises:
            ValueError: If a required endpoint is missing or does not use https
        """
        if w3 is None:
            if not rpc_url:
                raise ValueError("Either rpc_url or w3 must be provided")
            validate_endpoint_url("rpc_url", rpc_url)
            w3 = Web3(Web3.HTTPProvider(rpc_url))

        if validator is None:
            if not validator_url:
                raise ValueError("Either validator_url or validator must be provided")
            validator = ValidatorClient(validator_url, retry_count=retry_count, timeout=timeout)

        if aggregator is None and aggregator_url:
            aggregator = AggregatorClient(aggregator_url, retry_count=retry_count, timeout=timeout)

        self.w3 = w3
        self.validator = validator
        self.aggregator = aggregator
        self.deterministic_assertions = deterministic_assertions
        self.poll_interval = poll_interval
        self.codec = codec or JsonValueCodec()
        self.logger = logger or logging.getLogger(__name__)

        self.addresses = ChainAddressResolver(validator, w3, self.logger)
        self.resolver = ResultResolver(
            w3, validator, self.addresses, self.codec, inbox_event_decoder(), self.logger
        )
        self.verifier = ProofVerifier(
            w3, self.addresses, self.codec, rollup_event_decoder(), poll_interval, self.logger
        )
        self.system_info = SystemInfo(self._execute_for_return_data)

        self.latest_location: Optional[NodeInfo] = None
        self.events_reset_block: Optional[int] = None
        self._location_lock = threading.Lock()
        self._reset_listeners: List[Callable[[int], None]] = []

    @classmethod
    def from_config(
        cls,
        config: ProviderConfig,
        rpc_url: Optional[str] = None,
        w3: Optional[Web3] = None,
        **kwargs
    ) -> "RollupProvider":
        """Create a provider from a ``ProviderConfig``"""
        return cls(
            validator_url=config.validator_url,
            rpc_url=rpc_url,
            w3=w3,
            aggregator_url=config.aggregator_url,
            deterministic_assertions=config.deterministic_assertions,
            poll_interval=config.poll_interval,
            retry_count=config.retry_count,
            timeout=config.timeout,
            **kwargs
        )

    # ------------------------------------------------------------------
    # Chain identity
    # ------------------------------------------------------------------

    def chain_address(self) -> str:
        return self.addresses.rollup_address()

    @property
    def chain_id(self) -> int:
        return self.addresses.chain_id()

    def get_wallet(self, signer: Any = None, priv_key: Optional[str] = None, logger: Optional[logging.Logger] = None):
        """Wallet that submits through this provider"""
        from .wallet import RollupWallet
        return RollupWallet(self, signer=signer, priv_key=priv_key, logger=logger or self.logger)

    # ------------------------------------------------------------------
    # Result pipeline
    # ------------------------------------------------------------------

    def get_message_result(
        self,
        identifier: Any,
        cancel_event: Optional[threading.Event] = None,
    ) -> Optional[ResolvedResult]:
        """
        Resolve an identifier and verify its proof when one is available.

        Args:
            identifier: Base-chain transaction hash or rollup message id
            cancel_event: Stops the wait for the assertion transaction

        Returns:
            ConfirmedResult if the proof checked out, UnconfirmedResult if the
            message is not yet in an asserted node, None if nothing matches

        Raises:
            IntegrityError: If the validator answered for a different message
            ProofInvalidError: If a supplied proof does not verify
        """
        raw = self.resolver.resolve(identifier)
        if raw is None:
            return None

        if not raw.verifiable:
            return UnconfirmedResult(result=raw.result, message_id=raw.message_id, node_info=raw.node_info)

        receipt = self.verifier.verify(raw.value, raw.node_info, raw.proof, cancel_event)
        current_block = self.w3.eth.block_number
        confirmations = max(current_block - receipt["blockNumber"] + 1, 0)
        node_info = raw.node_info.model_copy(update={"l1_confirmations": confirmations})
        self.logger.debug(f"Message {raw.message_id} confirmed with {confirmations} confirmations")
        return ConfirmedResult(
            result=raw.result,
            message_id=raw.message_id,
            node_info=node_info,
            proof=raw.proof,
            confirmations=confirmations,
        )

    def get_payment_message(self, asserted_node_hash: str, message_index: int) -> Optional[OutputMessage]:
        return self.validator.get_output_message(asserted_node_hash, message_index)

    # ------------------------------------------------------------------
    # Request dispatch
    # ------------------------------------------------------------------

    def perform(self, request: methods.RollupRequest) -> Any:
        """
        Answer one chain-client request.

        Raises:
            TypeError: If the request is not one of the known request types
        """
        handler_name = self._HANDLERS.get(type(request))
        if handler_name is None:
            raise TypeError(f"Unsupported request type: {type(request).__name__}")
        return getattr(self, handler_name)(request)

    def _perform_get_transaction_receipt(self, request: methods.GetTransactionReceipt) -> Optional[RollupTxReceipt]:
        resolved = self.get_message_result(request.transaction_hash)
        if resolved is None:
            return None
        incoming = self._require_transaction(resolved)

        status = 0
        logs = []
        if resolved.result.succeeded:
            status = 1
            logs = resolved.result.logs

        if self.deterministic_assertions:
            if incoming.block_number is None:
                confirmations = 0
            else:
                confirmations = max(self.w3.eth.block_number - incoming.block_number + 1, 0)
        else:
            confirmations = resolved.confirmations

        node_info = resolved.node_info
        return RollupTxReceipt(
            transactionHash=resolved.message_id,
            blockNumber=node_info.node_height if node_info else 0,
            blockHash=node_info.node_hash if node_info else ZERO_HASH,
            status=status,
            **{"from": incoming.sender},
            to=incoming.destination,
            logs=logs,
            confirmations=confirmations,
        )

    def _perform_get_transaction(self, request: methods.GetTransaction) -> RollupTransaction:
        def fetch() -> Optional[RollupTransaction]:
            resolved = self.get_message_result(request.transaction_hash, request.cancel_event)
            if resolved is None:
                return None
            return self._to_transaction(resolved)

        return poll_until(
            fetch,
            self.poll_interval,
            retry_on=TRANSIENT_ERRORS,
            cancel_event=request.cancel_event,
            description=f"transaction {request.transaction_hash}",
            logger_instance=self.logger,
        )

    def _perform_get_balance(self, request: methods.GetBalance) -> int:
        return self.system_info.get_balance(request.address)

    def _perform_get_code(self, request: methods.GetCode) -> str:
        if is_precompile(request.address):
            return PRECOMPILE_CODE
        return to_hex(self.system_info.get_code(request.address))

    def _perform_get_transaction_count(self, request: methods.GetTransactionCount) -> int:
        return self.system_info.get_transaction_count(request.address)

    def _perform_get_block_number(self, request: methods.GetBlockNumber) -> int:
        if self.deterministic_assertions:
            location = self.validator.get_latest_pending_node_location()
        else:
            location = self.validator.get_latest_node_location()

        if location is not None:
            with self._location_lock:
                previous = self.latest_location
                self.latest_location = location
            if previous is not None and not previous.same_location(location):
                self.logger.info(
                    f"Rollup head moved from node {previous.node_height} to {location.node_height}"
                )
                self._reset_events_block(location.node_height)

        return self.w3.eth.block_number

    def _perform_get_logs(self, request: methods.GetLogs) -> List[Dict[str, Any]]:
        return self.validator.find_logs(request.filter)

    def _perform_call(self, request: methods.Call) -> str:
        transaction = request.transaction
        to = transaction.get("to")
        if not to:
            raise PreconditionError("call requires a 'to' address")
        tx = L2Call(
            gas_limit=transaction.get("gas", transaction.get("gasLimit")),
            gas_price=transaction.get("gasPrice"),
            to=to,
            data=_hex_data(transaction.get("data")),
        )
        result = self._execute_call(tx, transaction.get("from"), request.block_tag)
        return result.return_data

    def _perform_pass_through(self, request: methods.PassThrough) -> Any:
        self.logger.debug(f"Forwarding {request.method} to base chain")
        response = self.w3.provider.make_request(request.method, list(request.params))
        error = response.get("error")
        if error:
            raise TransportError(f"{request.method} failed on base chain: {error}")
        return response.get("result")

    # ------------------------------------------------------------------
    # Convenience wrappers
    # ------------------------------------------------------------------

    def get_transaction_receipt(self, transaction_hash: Any) -> Optional[RollupTxReceipt]:
        """Receipt for a rollup transaction, or None if it is not known yet"""
        return self.perform(methods.GetTransactionReceipt(transaction_hash))

    def get_transaction(self, transaction_hash: Any, cancel_event: Optional[threading.Event] = None) -> RollupTransaction:
        """
        Wait for a rollup transaction and return it.

        Polls until the transaction resolves or ``cancel_event`` is set.

        Raises:
            PollingCancelledError: If ``cancel_event`` is set before a result appears
        """
        return self.perform(methods.GetTransaction(transaction_hash, cancel_event))

    def get_balance(self, address: str) -> int:
        return self.perform(methods.GetBalance(address))

    def get_code(self, address: str) -> str:
        return self.perform(methods.GetCode(address))

    def get_transaction_count(self, address: str) -> int:
        return self.perform(methods.GetTransactionCount(address))

    def get_block_number(self) -> int:
        return self.perform(methods.GetBlockNumber())

    def get_logs(self, log_filter: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return self.perform(methods.GetLogs(log_filter or {}))

    def call(self, transaction: Dict[str, Any], block_tag: Optional[str] = None) -> str:
        """
        Execute a read-only call on the rollup.

        Args:
            transaction: Dict with ``to`` and optionally ``data``, ``from``, ``gas``, ``gasPrice``
            block_tag: None, "latest" or "pending"

        Returns:
            Return data as hex

        Raises:
            PreconditionError: If the block tag is not supported
            CallRevertedError: If the call did not return successfully
        """
        return self.perform(methods.Call(transaction, block_tag))

    def make_request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Forward a raw JSON-RPC request to the base chain"""
        return self.perform(methods.PassThrough(method, list(params or [])))

    # ------------------------------------------------------------------
    # Event-filter reset notifications
    # ------------------------------------------------------------------

    def add_reset_listener(self, listener: Callable[[int], None]) -> None:
        """Register a callback invoked with the new node height when the rollup head moves"""
        self._reset_listeners.append(listener)

    def remove_reset_listener(self, listener: Callable[[int], None]) -> None:
        self._reset_listeners.remove(listener)

    def _reset_events_block(self, node_height: int) -> None:
        self.events_reset_block = node_height
        for listener in list(self._reset_listeners):
            listener(node_height)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_transaction(self, resolved: ResolvedResult):
        incoming = resolved.result.incoming
        if incoming.kind != MessageKind.TRANSACTION:
            raise PreconditionError(
                f"Can only describe rollup transaction messages, got {incoming.kind.value}"
            )
        return incoming

    def _to_transaction(self, resolved: ResolvedResult) -> RollupTransaction:
        incoming = self._require_transaction(resolved)
        node_info = resolved.node_info
        return RollupTransaction(
            hash=resolved.message_id,
            **{"from": incoming.sender},
            to=incoming.destination,
            nonce=incoming.sequence_num,
            value=incoming.value,
            input=incoming.payload,
            chainId=self.chain_id,
            blockHash=node_info.node_hash if node_info else None,
            blockNumber=node_info.node_height if node_info else None,
            confirmations=resolved.confirmations,
        )

    def _execute_call(self, tx: L2Call, sender: Optional[str], block_tag: Optional[str]) -> MessageResult:
        if block_tag is None or block_tag == "latest":
            if self.deterministic_assertions:
                value = self.validator.pending_call(tx, sender)
            else:
                value = self.validator.call(tx, sender)
        elif block_tag == "pending":
            value = self.validator.pending_call(tx, sender)
        else:
            raise PreconditionError(f"Invalid block tag: {block_tag}")

        try:
            result = self.codec.decode(value)
        except ValueError as e:
            raise ValidatorResponseError(f"Validator returned an undecodable call result: {e}") from e

        if not result.succeeded:
            raise CallRevertedError(
                f"Call was reverted ({result.result_code.name})", result_code=int(result.result_code)
            )
        return result

    def _execute_for_return_data(self, tx: L2Call) -> bytes:
        return bytes(HexBytes(self._execute_call(tx, None, None).return_data))
