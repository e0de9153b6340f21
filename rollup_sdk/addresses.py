"""
Discovery and caching of the rollup chain and inbox addresses.
"""
import logging
from typing import Optional

from web3 import Web3
from web3.contract import Contract

from .contracts import INBOX_ABI, ROLLUP_ABI
from .exceptions import ResolutionError, TransportError
from .rpc.validator import ValidatorClient
from .single_flight import SingleFlight

logger = logging.getLogger(__name__)

# The rollup chain id is the integer value of the chain address's last 6 bytes
CHAIN_ID_BYTES = 6


def chain_id_from_address(address: str) -> int:
    return int(address[-2 * CHAIN_ID_BYTES:], 16)


class ChainAddressResolver:
    """
    Resolves the rollup chain address, its inbox address and its chain id.

    Each value is fetched at most once per process and shared by concurrent
    callers. A failed fetch raises ``ResolutionError`` and is retried on the
    next call.
    """

    def __init__(self, validator: ValidatorClient, w3: Web3, logger_instance: Optional[logging.Logger] = None):
        self.validator = validator
        self.w3 = w3
        self.logger = logger_instance or logger
        self._rollup_address = SingleFlight(self._fetch_rollup_address)
        self._inbox_address = SingleFlight(self._fetch_inbox_address)
        self._rollup_contract = SingleFlight(self._build_rollup_contract)
        self._inbox_contract = SingleFlight(self._build_inbox_contract)

    def _fetch_rollup_address(self) -> str:
        try:
            vm_id = self.validator.get_vm_id()
        except TransportError as e:
            self.logger.error(f"Failed to fetch rollup address from validator: {e}")
            raise ResolutionError(f"Could not resolve rollup address: {str(e)}") from e
        try:
            address = Web3.to_checksum_address(vm_id)
        except ValueError as e:
            raise ResolutionError(f"Validator returned an invalid rollup address: {vm_id!r}") from e
        self.logger.debug(f"Resolved rollup address {address}")
        return address

    def _fetch_inbox_address(self) -> str:
        rollup = self.rollup_contract()
        try:
            inbox = rollup.functions.globalInbox().call()
        except Exception as e:
            self.logger.error(f"Failed to read inbox address from rollup {rollup.address}: {e}")
            raise ResolutionError(f"Could not resolve inbox address: {str(e)}") from e
        try:
            address = Web3.to_checksum_address(inbox)
        except (ValueError, TypeError) as e:
            raise ResolutionError(f"Rollup returned an invalid inbox address: {inbox!r}") from e
        self.logger.debug(f"Resolved inbox address {address}")
        return address

    def _build_rollup_contract(self) -> Contract:
        return self.w3.eth.contract(address=self.rollup_address(), abi=ROLLUP_ABI)

    def _build_inbox_contract(self) -> Contract:
        return self.w3.eth.contract(address=self.inbox_address(), abi=INBOX_ABI)

    def rollup_address(self) -> str:
        """Checksummed address of the rollup chain contract"""
        return self._rollup_address.get()

    def inbox_address(self) -> str:
        """Checksummed address of the message-inbox contract"""
        return self._inbox_address.get()

    def chain_id(self) -> int:
        """Rollup chain id, derived from the rollup address"""
        return chain_id_from_address(self.rollup_address())

    def rollup_contract(self) -> Contract:
        return self._rollup_contract.get()

    def inbox_contract(self) -> Contract:
        return self._inbox_contract.get()
