"""
Verification of validator-supplied proofs.

A result is accepted as confirmed only if (A) its value is provably inside
the log accumulator the proof names, and (B) that accumulator was published
on the base chain in an assertion from the expected rollup for the
expected node.
"""
import logging
import threading
from typing import Any, Mapping, Optional

import requests
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import TransactionNotFound

from . import hashing
from .addresses import ChainAddressResolver
from .codec import ValueCodec
from .config import DEFAULT_POLL_INTERVAL
from .contracts import (
    ASSERTED_LOG_POST_HASH_INDEX,
    ASSERTED_NODE_HASH_INDEX,
    ROLLUP_ASSERTED,
    EventDecoder,
)
from .exceptions import ProofInvalidError
from .models import AssertionProof, NodeInfo
from .polling import poll_until

logger = logging.getLogger(__name__)


class ProofVerifier:
    """Certifies that a result is backed by an on-chain assertion"""

    def __init__(
        self,
        w3: Web3,
        addresses: ChainAddressResolver,
        codec: ValueCodec,
        rollup_events: EventDecoder,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        logger_instance: Optional[logging.Logger] = None,
    ):
        self.w3 = w3
        self.addresses = addresses
        self.codec = codec
        self.rollup_events = rollup_events
        self.poll_interval = poll_interval
        self.logger = logger_instance or logger

    def verify_logs(self, value: bytes, proof: AssertionProof) -> bool:
        """True if the hash of ``value`` folds into ``proof.log_post_hash``"""
        try:
            check = hashing.fold_log_proof(proof.log_pre_hash, self.codec.hash(value), proof.log_val_hashes)
        except ValueError as e:
            self.logger.warning(f"Malformed log proof: {e}")
            return False
        return HexBytes(check) == HexBytes(proof.log_post_hash)

    def _receipt_or_none(self, tx_hash: str) -> Optional[Mapping[str, Any]]:
        try:
            return self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None

    def wait_for_receipt(self, tx_hash: str, cancel_event: Optional[threading.Event] = None) -> Mapping[str, Any]:
        """Block until the base-chain transaction is mined"""
        return poll_until(
            lambda: self._receipt_or_none(tx_hash),
            self.poll_interval,
            retry_on=(requests.RequestException,),
            cancel_event=cancel_event,
            description=f"assertion transaction {tx_hash}",
            logger_instance=self.logger,
        )

    def verify_assertion(
        self,
        node_info: NodeInfo,
        proof: AssertionProof,
        cancel_event: Optional[threading.Event] = None,
    ) -> Mapping[str, Any]:
        """
        Check that the node's base-chain transaction published the proof's accumulator.

        Returns:
            The base-chain receipt of the assertion transaction

        Raises:
            ProofInvalidError: If the assertion is missing or disagrees with the proof
        """
        if node_info.l1_tx_hash is None:
            raise ProofInvalidError("node doesn't exist on chain")

        receipt = self.wait_for_receipt(node_info.l1_tx_hash, cancel_event)
        logs = receipt.get("logs") or []
        if not logs:
            raise ProofInvalidError("RollupAsserted tx had no logs")

        asserted = None
        raw_log = None
        for log in logs:
            event = self.rollup_events.decode_event(log)
            if event is not None and event.name == ROLLUP_ASSERTED:
                asserted, raw_log = event, log
                break
        if asserted is None:
            raise ProofInvalidError(f"RollupAsserted {node_info.l1_tx_hash} not found on chain")

        rollup_address = self.addresses.rollup_address()
        if str(raw_log["address"]).lower() != rollup_address.lower():
            raise ProofInvalidError(
                f"RollupAsserted Event is from a different address: {raw_log['address']}\n"
                f"Expected address: {rollup_address}"
            )

        fields = asserted.args["fields"]
        on_chain_post_hash = HexBytes(fields[ASSERTED_LOG_POST_HASH_INDEX])
        if on_chain_post_hash != HexBytes(proof.log_post_hash):
            raise ProofInvalidError(
                f"RollupAsserted Event on-chain logPostHash is: {hashing.to_hex(on_chain_post_hash)}\n"
                f"Expected: {proof.log_post_hash}"
            )

        on_chain_node_hash = HexBytes(fields[ASSERTED_NODE_HASH_INDEX])
        if on_chain_node_hash != HexBytes(node_info.node_hash):
            raise ProofInvalidError(
                f"RollupAsserted Event on-chain nodeHash is: {hashing.to_hex(on_chain_node_hash)}\n"
                f"Expected: {node_info.node_hash}"
            )

        return receipt

    def verify(
        self,
        value: bytes,
        node_info: NodeInfo,
        proof: AssertionProof,
        cancel_event: Optional[threading.Event] = None,
    ) -> Mapping[str, Any]:
        """
        Run both verification steps.

        Args:
            value: Serialized result value as returned by the validator
            node_info: Node the validator says produced the result
            proof: Log-inclusion proof for ``value``

        Returns:
            The base-chain receipt of the assertion transaction; confirmation
            depth is left to the caller

        Raises:
            ProofInvalidError: If either step fails
        """
        if not self.verify_logs(value, proof):
            raise ProofInvalidError("Failed to prove val is in logPostHash")
        return self.verify_assertion(node_info, proof, cancel_event)
