"""
Value codec for serialized rollup results.

The provider only needs ``encode``, ``decode`` and ``hash``; any codec that
implements ``ValueCodec`` can be passed in. ``JsonValueCodec`` is the default
and stores a result as its canonical JSON form.
"""
from typing import Protocol

from pydantic import ValidationError
from web3 import Web3

from .models import MessageResult


class ValueCodec(Protocol):
    """Protocol for serialized-value codecs"""

    def encode(self, result: MessageResult) -> bytes:
        ...

    def decode(self, value: bytes) -> MessageResult:
        """Decode a serialized value; raises ValueError if malformed"""
        ...

    def hash(self, value: bytes) -> bytes:
        """32-byte hash of a serialized value, as used in log proofs"""
        ...


class JsonValueCodec:
    """Canonical-JSON codec: compact, alias keys, fields in model order"""

    def encode(self, result: MessageResult) -> bytes:
        return result.model_dump_json(by_alias=True).encode("utf-8")

    def decode(self, value: bytes) -> MessageResult:
        try:
            return MessageResult.model_validate_json(value)
        except ValidationError as e:
            raise ValueError(f"Malformed result value: {e}") from e

    def hash(self, value: bytes) -> bytes:
        return Web3.keccak(value)
