"""
RollupWallet - signs and submits rollup transactions and bridge operations.

Rollup transactions go to the aggregator when the provider has one, and to
the base-chain inbox otherwise. Either way the returned handle resolves
through the provider to the same rollup message id.
"""
import logging
import threading
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.base import BaseAccount
from eth_keys import keys
from hexbytes import HexBytes
from web3 import Web3

from .exceptions import PreconditionError, ResolutionError, SubmissionError
from .hashing import to_hex
from .models import DispatchPath, OutgoingMessage, TransactionHandle
from .precompiles import ARB_SYS_ADDRESS, withdraw_eth_calldata
from .sequence import SequenceManager, SequenceReservation

if TYPE_CHECKING:
    from .provider import RollupProvider

DEFAULT_GAS_LIMIT = 300000

EIP191_PREFIX_32 = b"\x19Ethereum Signed Message:\n32"


class Signer(Protocol):
    """Protocol for custom signers"""
    address: str

    def sign_transaction(self, transaction_dict: Dict[str, Any]) -> Any:
        """Sign transaction and return signed tx object"""
        ...

    def sign_message(self, signable_message: Any) -> Any:
        """Sign an EIP-191 message and return an object with ``signature``"""
        ...


def recover_public_key(message_hash: bytes, signature: bytes) -> bytes:
    """
    Recover the uncompressed public key that signed a 32-byte hash as an EIP-191 message.

    Args:
        message_hash: The 32 bytes that were signed
        signature: 65-byte r ‖ s ‖ v signature

    Returns:
        65-byte public key with the 0x04 prefix
    """
    signature = bytes(signature)
    if len(signature) != 65:
        raise ValueError(f"Expected a 65-byte signature, got {len(signature)}")
    v = signature[64]
    if v >= 27:
        v -= 27
    digest = Web3.keccak(EIP191_PREFIX_32 + bytes(message_hash))
    public_key = keys.Signature(signature_bytes=signature[:64] + bytes([v])).recover_public_key_from_msg_hash(digest)
    return b"\x04" + public_key.to_bytes()


class RollupWallet:
    """
    Wallet bound to one account and one RollupProvider.

    To use this wallet, you'll need either a private key or a custom signer;
    the account also needs base-chain funds for inbox submissions, deposits
    and withdrawals.
    """

    def __init__(
        self,
        provider: "RollupProvider",
        signer: Optional[Signer] = None,
        priv_key: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the RollupWallet

        Args:
            provider: Provider used for chain access and result lookups
            signer: Custom signer object (optional if priv_key provided)
            priv_key: Ethereum private key (optional if signer provided)
            logger: Optional logger instance to use for debug/info logging

        Raises:
            ValueError: If neither priv_key nor signer is provided
        """
        if not priv_key and signer is None:
            raise ValueError("Either priv_key or signer must be provided")

        self.provider = provider
        self.signer: Signer = signer if signer is not None else Account.from_key(priv_key)
        self.logger = logger or logging.getLogger(__name__)
        self.sequence = SequenceManager(self.address, provider.get_transaction_count, self.logger)
        self._pubkey: Optional[bytes] = None
        self._pubkey_lock = threading.Lock()

    @property
    def address(self) -> str:
        return Web3.to_checksum_address(self.signer.address)

    @property
    def pubkey(self) -> Optional[bytes]:
        """Public key recovered from the first aggregator signature, if any"""
        return self._pubkey

    @property
    def w3(self) -> Web3:
        return self.provider.w3

    # ------------------------------------------------------------------
    # Rollup transactions
    # ------------------------------------------------------------------

    def send_transaction(self, transaction: Dict[str, Any]) -> TransactionHandle:
        """
        Send a rollup transaction.

        Args:
            transaction: Dict with ``to`` and optionally ``value``, ``data``,
                ``gas``/``gasLimit`` and ``gasPrice`` (gas fields are required
                without an aggregator)

        Returns:
            Handle whose ``hash`` can be passed to the provider's lookups

        Raises:
            PreconditionError: If a required field is missing or malformed
            SubmissionError: If signing or dispatch fails
        """
        to = transaction.get("to")
        if not to:
            raise PreconditionError("must specify destination address")
        gas_limit = transaction.get("gas", transaction.get("gasLimit"))
        gas_price = transaction.get("gasPrice")
        if self.provider.aggregator is None:
            if not gas_limit:
                raise PreconditionError("must specify gas limit")
            if not gas_price:
                raise PreconditionError("must specify gas price")

        # Validate every field before a sequence number is taken
        try:
            draft = OutgoingMessage(
                destination=Web3.to_checksum_address(to),
                sequence_num=0,
                value=transaction.get("value") or 0,
                payload=to_hex(HexBytes(transaction.get("data") or b"")),
                gas_limit=gas_limit,
                gas_price=gas_price,
            )
        except (ValueError, TypeError) as e:
            raise PreconditionError(f"invalid transaction: {str(e)}") from e

        reservation = self.sequence.reserve_next()
        message = draft.model_copy(update={"sequence_num": reservation.sequence_num})
        return self.submit(message, reservation)

    def submit(self, message: OutgoingMessage, reservation: Optional[SequenceReservation] = None) -> TransactionHandle:
        """
        Dispatch an outgoing message through the aggregator or the inbox.

        On failure the reservation (if given) is released before the error
        propagates, so the sequence number is handed out again.
        """
        path = DispatchPath.AGGREGATOR if self.provider.aggregator is not None else DispatchPath.INBOX
        try:
            if path == DispatchPath.AGGREGATOR:
                return self._submit_to_aggregator(message)
            return self._submit_to_inbox(message)
        except Exception as e:
            if reservation is not None:
                self.sequence.release(reservation)
            if isinstance(e, (PreconditionError, ResolutionError, SubmissionError)):
                raise
            self.logger.error(f"Submission of sequence {message.sequence_num} via {path.value} failed: {e}")
            raise SubmissionError(f"Failed to submit transaction: {str(e)}", path=path.value) from e

    def _submit_to_aggregator(self, message: OutgoingMessage) -> TransactionHandle:
        chain = self.provider.addresses.rollup_address()
        sender = self.address
        message_id = message.message_id(chain, sender)
        batch = bytes(HexBytes(message.batch_hash(chain)))

        try:
            signed = self.signer.sign_message(encode_defunct(primitive=batch))
        except Exception as e:
            self.logger.error(f"Message signing failed: {e}")
            raise SubmissionError(f"Failed to sign message: {str(e)}", path=DispatchPath.AGGREGATOR.value) from e
        signature = bytes(HexBytes(signed.signature))

        pubkey = self._cached_pubkey(batch, signature)

        self.provider.aggregator.send_transaction(
            message.destination,
            message.sequence_num,
            message.value,
            message.payload,
            pubkey,
            signature,
        )
        self.logger.info(f"Transaction {message_id} sent to aggregator")

        return TransactionHandle(
            hash=message_id,
            messageId=message_id,
            **{"from": sender},
            to=message.destination,
            nonce=message.sequence_num,
            value=message.value,
            data=message.payload,
            path=DispatchPath.AGGREGATOR,
            chainId=self.provider.chain_id,
        )

    def _cached_pubkey(self, batch: bytes, signature: bytes) -> bytes:
        with self._pubkey_lock:
            if self._pubkey is not None:
                return self._pubkey
        pubkey = recover_public_key(batch, signature)
        recovered = keys.PublicKey(pubkey[1:]).to_checksum_address()
        if recovered != self.address:
            raise SubmissionError(
                f"Signature recovers to {recovered}, expected {self.address}",
                path=DispatchPath.AGGREGATOR.value,
            )
        with self._pubkey_lock:
            # first writer wins
            if self._pubkey is None:
                self._pubkey = pubkey
            return self._pubkey

    def _submit_to_inbox(self, message: OutgoingMessage) -> TransactionHandle:
        if message.gas_limit is None or message.gas_price is None:
            raise PreconditionError("gas limit and gas price are required for inbox submission")
        chain = self.provider.addresses.rollup_address()
        sender = self.address
        inbox = self.provider.addresses.inbox_contract()

        tx_hash = self._send_base_chain(inbox.functions.sendL2Message(chain, message.as_data()))

        return TransactionHandle(
            hash=tx_hash,
            messageId=message.message_id(chain, sender),
            **{"from": sender},
            to=message.destination,
            nonce=message.sequence_num,
            value=message.value,
            data=message.payload,
            path=DispatchPath.INBOX,
            chainId=self.provider.chain_id,
        )

    def withdraw_eth_from_chain(
        self,
        value: int,
        gas_limit: Optional[int] = None,
        gas_price: Optional[int] = None,
    ) -> TransactionHandle:
        """Start a withdrawal of ``value`` wei from the rollup back to this account"""
        transaction = {
            "to": ARB_SYS_ADDRESS,
            "value": 0,
            "data": withdraw_eth_calldata(self.address, value),
        }
        if gas_limit is not None:
            transaction["gas"] = gas_limit
        if gas_price is not None:
            transaction["gasPrice"] = gas_price
        return self.send_transaction(transaction)

    # ------------------------------------------------------------------
    # Base-chain inbox operations
    # ------------------------------------------------------------------

    def deposit_eth(self, to: str, value: int) -> str:
        """
        Deposit ETH into the rollup.

        Returns:
            Base-chain transaction hash; it resolves through the provider to the deposit message
        """
        chain = self.provider.addresses.rollup_address()
        inbox = self.provider.addresses.inbox_contract()
        return self._send_base_chain(
            inbox.functions.depositEthMessage(chain, Web3.to_checksum_address(to)), value=value
        )

    def deposit_erc20(self, to: str, erc20: str, value: int) -> str:
        chain = self.provider.addresses.rollup_address()
        inbox = self.provider.addresses.inbox_contract()
        return self._send_base_chain(
            inbox.functions.depositERC20Message(
                chain, Web3.to_checksum_address(erc20), Web3.to_checksum_address(to), value
            )
        )

    def deposit_erc721(self, to: str, erc721: str, token_id: int) -> str:
        chain = self.provider.addresses.rollup_address()
        inbox = self.provider.addresses.inbox_contract()
        return self._send_base_chain(
            inbox.functions.depositERC721Message(
                chain, Web3.to_checksum_address(erc721), Web3.to_checksum_address(to), token_id
            )
        )

    def withdraw_eth(self) -> str:
        """Withdraw this account's ETH balance held by the inbox"""
        return self._send_base_chain(self.provider.addresses.inbox_contract().functions.withdrawEth())

    def withdraw_erc20(self, erc20: str) -> str:
        inbox = self.provider.addresses.inbox_contract()
        return self._send_base_chain(inbox.functions.withdrawERC20(Web3.to_checksum_address(erc20)))

    def withdraw_erc721(self, erc721: str, token_id: int) -> str:
        inbox = self.provider.addresses.inbox_contract()
        return self._send_base_chain(inbox.functions.withdrawERC721(Web3.to_checksum_address(erc721), token_id))

    def transfer_payment(self, original_owner: str, new_owner: str, node_hash: str, message_index: int) -> str:
        """Transfer the right to an unclaimed rollup payout to ``new_owner``"""
        inbox = self.provider.addresses.inbox_contract()
        return self._send_base_chain(
            inbox.functions.transferPayment(
                Web3.to_checksum_address(original_owner),
                Web3.to_checksum_address(new_owner),
                bytes(HexBytes(node_hash)),
                message_index,
            )
        )

    def _send_base_chain(self, contract_fn: Any, value: int = 0) -> str:
        """
        Build, sign and send a base-chain contract transaction.

        Returns:
            Transaction hash as 0x-prefixed hex

        Raises:
            SubmissionError: If signing or sending fails
        """
        from_address = self.address
        try:
            nonce = self.w3.eth.get_transaction_count(from_address)
        except Exception as e:
            self.logger.error(f"Failed to fetch nonce: {e}")
            raise SubmissionError(f"Failed to fetch nonce: {str(e)}", path=DispatchPath.INBOX.value) from e

        try:
            gas = contract_fn.estimate_gas({'from': from_address, 'value': value})
            # Add 10% buffer to gas estimate
            gas = int(gas * 1.1)
            self.logger.debug(f"Estimated gas: {gas}")
        except Exception as e:
            # Fallback to default gas if estimation fails
            gas = DEFAULT_GAS_LIMIT
            self.logger.warning(f"Gas estimation failed, using default: {gas}. Error: {e}")

        try:
            tx = contract_fn.build_transaction({
                'from': from_address,
                'nonce': nonce,
                'gas': gas,
                'gasPrice': self.w3.eth.gas_price,
                'value': value,
            })
        except Exception as e:
            self.logger.error(f"Failed to build transaction: {e}")
            raise SubmissionError(f"Failed to build transaction: {str(e)}", path=DispatchPath.INBOX.value) from e

        try:
            signed_tx = self.signer.sign_transaction(tx)
        except Exception as e:
            self.logger.error(f"Transaction signing failed: {e}")
            raise SubmissionError(f"Failed to sign transaction: {str(e)}", path=DispatchPath.INBOX.value) from e

        try:
            tx_hash = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        except Exception as e:
            self.logger.error(f"Failed to send transaction: {e}")
            raise SubmissionError(f"Failed to send transaction: {str(e)}", path=DispatchPath.INBOX.value) from e

        tx_hash_hex = to_hex(HexBytes(tx_hash))
        self.logger.info(f"Transaction sent: {tx_hash_hex}")
        return tx_hash_hex
