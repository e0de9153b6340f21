"""
Client for the rollup validator's JSON-RPC interface.

The validator is untrusted: everything it returns is checked by the
resolver and the proof verifier before it is treated as confirmed.
"""
import logging
from typing import Any, Dict, List, Optional

from hexbytes import HexBytes
from pydantic import ValidationError

from ..exceptions import ValidatorResponseError
from ..models import L2Call, NodeInfo, OutputMessage, RawMessageResult
from .transport import HttpJsonRpcTransport, JsonRpcTransport

logger = logging.getLogger(__name__)


class ValidatorClient:
    """Typed wrapper over the validator RPC methods"""

    def __init__(
        self,
        validator_url: Optional[str] = None,
        transport: Optional[JsonRpcTransport] = None,
        retry_count: int = 3,
        timeout: int = 30,
    ):
        if transport is None:
            if not validator_url:
                raise ValueError("Either validator_url or transport must be provided")
            transport = HttpJsonRpcTransport(
                validator_url, retry_count=retry_count, timeout=timeout, url_name="validator_url"
            )
        self.transport = transport

    def _call(self, method: str, params: Any = None) -> Any:
        return self.transport.call(f"Validator.{method}", params)

    def get_vm_id(self) -> str:
        """Address of the rollup chain this validator serves"""
        result = self._call("GetVMInfo")
        if not isinstance(result, dict) or not result.get("vmID"):
            raise ValidatorResponseError(f"GetVMInfo returned no vmID: {result!r}")
        return result["vmID"]

    def get_message_result(self, message_id: str) -> Optional[RawMessageResult]:
        """
        Fetch the raw, unverified result for a rollup message id.

        Returns:
            The raw result, or None if the validator has no result for it
        """
        result = self._call("GetMessageResult", {"txHash": message_id})
        if not result or not result.get("found"):
            return None
        try:
            return RawMessageResult.model_validate({
                "value": result["rawVal"],
                "nodeInfo": result.get("nodeInfo"),
                "proof": result.get("proof"),
            })
        except (KeyError, ValidationError) as e:
            raise ValidatorResponseError(f"Malformed GetMessageResult response: {e}") from e

    def get_output_message(self, asserted_node_hash: str, message_index: int) -> Optional[OutputMessage]:
        result = self._call("GetOutputMessage", {
            "assertionNodeHash": asserted_node_hash,
            "msgIndex": hex(message_index),
        })
        if not result or not result.get("found"):
            return None
        try:
            return OutputMessage.model_validate(result)
        except ValidationError as e:
            raise ValidatorResponseError(f"Malformed GetOutputMessage response: {e}") from e

    def find_logs(self, log_filter: Dict[str, Any]) -> List[Dict[str, Any]]:
        result = self._call("FindLogs", log_filter)
        if not result:
            return []
        return list(result.get("logs") or [])

    def _node_location(self, method: str) -> Optional[NodeInfo]:
        result = self._call(method)
        if not result or not result.get("location"):
            return None
        try:
            return NodeInfo.model_validate(result["location"])
        except ValidationError as e:
            raise ValidatorResponseError(f"Malformed {method} response: {e}") from e

    def get_latest_node_location(self) -> Optional[NodeInfo]:
        return self._node_location("GetLatestNodeLocation")

    def get_latest_pending_node_location(self) -> Optional[NodeInfo]:
        return self._node_location("GetLatestPendingNodeLocation")

    def _execute(self, method: str, tx: L2Call, sender: Optional[str]) -> bytes:
        params = {"tx": tx.to_rpc()}
        if sender:
            params["sender"] = sender
        result = self._call(method, params)
        if not result or "rawVal" not in result:
            raise ValidatorResponseError(f"{method} returned no value: {result!r}")
        return bytes(HexBytes(result["rawVal"]))

    def call(self, tx: L2Call, sender: Optional[str] = None) -> bytes:
        """Execute a read-only call against the latest asserted state"""
        return self._execute("CallMessage", tx, sender)

    def pending_call(self, tx: L2Call, sender: Optional[str] = None) -> bytes:
        """Execute a read-only call against the latest pending state"""
        return self._execute("PendingCall", tx, sender)
