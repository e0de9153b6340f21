"""
Resolution of caller-supplied identifiers to rollup message results.
"""
import logging
import re
from typing import Any, Mapping, Optional

from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import TransactionNotFound

from . import hashing
from .addresses import ChainAddressResolver
from .codec import ValueCodec
from .contracts import DEPOSIT_EVENTS, TRANSACTION_MESSAGE_DELIVERED, EventDecoder
from .exceptions import IntegrityError, PreconditionError, ValidatorResponseError
from .models import RawResolution
from .rpc.validator import ValidatorClient

logger = logging.getLogger(__name__)

_HASH_RE = re.compile(r"^0x[0-9a-f]{64}$")


def normalize_identifier(identifier: Any) -> str:
    """
    Normalize a transaction identifier to lowercase 0x-prefixed hex.

    Raises:
        PreconditionError: If the identifier is not 32 bytes of hex
    """
    if isinstance(identifier, (bytes, bytearray)):
        identifier = hashing.to_hex(bytes(identifier))
    if not isinstance(identifier, str):
        raise PreconditionError(f"Transaction identifier must be a hex string, got {type(identifier).__name__}")
    normalized = identifier.lower()
    if not normalized.startswith("0x"):
        normalized = "0x" + normalized
    if not _HASH_RE.match(normalized):
        raise PreconditionError(f"Transaction identifier must be 32 bytes of hex: {identifier}")
    return normalized


class ResultResolver:
    """
    Turns a base-chain transaction hash or a rollup message id into an
    id-checked, still unproven, message result.
    """

    def __init__(
        self,
        w3: Web3,
        validator: ValidatorClient,
        addresses: ChainAddressResolver,
        codec: ValueCodec,
        inbox_events: EventDecoder,
        logger_instance: Optional[logging.Logger] = None,
    ):
        self.w3 = w3
        self.validator = validator
        self.addresses = addresses
        self.codec = codec
        self.inbox_events = inbox_events
        self.logger = logger_instance or logger

    def base_chain_receipt(self, tx_hash: str) -> Optional[Mapping[str, Any]]:
        """Receipt for a base-chain transaction, or None if the hash is not one"""
        try:
            return self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None

    def message_id_from_receipt(self, receipt: Mapping[str, Any]) -> Optional[str]:
        """
        Derive the rollup message id from the first message-delivery event in a receipt.

        Returns:
            The message id, or None if the transaction delivered no message
        """
        for log in receipt.get("logs") or []:
            event = self.inbox_events.decode_event(log)
            if event is None:
                continue
            if event.name == TRANSACTION_MESSAGE_DELIVERED:
                args = event.args
                return hashing.message_id(
                    self.addresses.rollup_address(),
                    args["to"],
                    args["from"],
                    args["seqNumber"],
                    args["value"],
                    args["data"],
                )
            if event.name in DEPOSIT_EVENTS:
                return hashing.deposit_message_id(event.args["messageNum"])
        return None

    def resolve(self, identifier: Any) -> Optional[RawResolution]:
        """
        Resolve an identifier to a raw result.

        Args:
            identifier: Base-chain transaction hash or rollup message id

        Returns:
            The raw resolution, or None if no message matches

        Raises:
            PreconditionError: If the identifier is malformed
            IntegrityError: If the returned result belongs to a different message
            ValidatorResponseError: If the returned value cannot be decoded
        """
        identifier = normalize_identifier(identifier)

        receipt = self.base_chain_receipt(identifier)
        if receipt is not None:
            message_id = self.message_id_from_receipt(receipt)
            if message_id is None:
                self.logger.debug(f"Base-chain transaction {identifier} delivered no rollup message")
                return None
            self.logger.debug(f"Base-chain transaction {identifier} delivered message {message_id}")
        else:
            message_id = identifier

        raw = self.validator.get_message_result(message_id)
        if raw is None:
            return None

        value = bytes(HexBytes(raw.value))
        try:
            result = self.codec.decode(value)
        except ValueError as e:
            raise ValidatorResponseError(f"Validator returned an undecodable result for {message_id}: {e}") from e

        try:
            check_id = result.incoming.message_id(self.addresses.rollup_address())
        except ValueError as e:
            raise IntegrityError(
                f"Result for {message_id} carries no derivable message id: {e}", expected=message_id
            ) from e

        if check_id.lower() != message_id:
            self.logger.error(f"Validator returned result for {check_id} when asked for {message_id}")
            raise IntegrityError(
                f"txHash did not match its queried transaction {message_id} {check_id}",
                expected=message_id,
                actual=check_id,
            )

        return RawResolution(
            message_id=message_id,
            result=result,
            value=value,
            node_info=raw.node_info,
            proof=raw.proof,
        )
