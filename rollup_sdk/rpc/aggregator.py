"""
Client for the low-latency transaction aggregator.
"""
import logging
from typing import Any, Optional

from hexbytes import HexBytes

from ..hashing import to_hex
from .transport import HttpJsonRpcTransport, JsonRpcTransport

logger = logging.getLogger(__name__)


class AggregatorClient:
    """Submits signed rollup transactions to an aggregator for batching"""

    def __init__(
        self,
        aggregator_url: Optional[str] = None,
        transport: Optional[JsonRpcTransport] = None,
        retry_count: int = 3,
        timeout: int = 30,
    ):
        if transport is None:
            if not aggregator_url:
                raise ValueError("Either aggregator_url or transport must be provided")
            transport = HttpJsonRpcTransport(
                aggregator_url, retry_count=retry_count, timeout=timeout, url_name="aggregator_url"
            )
        self.transport = transport

    def send_transaction(
        self,
        destination: str,
        sequence_num: int,
        value: int,
        payload: Any,
        pubkey: Any,
        signature: Any,
    ) -> Any:
        """
        Hand a signed transaction to the aggregator.

        Returns:
            The aggregator's acknowledgement, which callers do not rely on for ids
        """
        params = {
            "to": destination,
            "sequenceNum": hex(sequence_num),
            "value": hex(value),
            "data": to_hex(HexBytes(payload)) if payload else "0x",
            "pubkey": to_hex(HexBytes(pubkey)),
            "signature": to_hex(HexBytes(signature)),
        }
        logger.debug(f"Sending transaction {sequence_num} for {destination} to aggregator")
        return self.transport.call("Aggregator.SendTransaction", params)
