"""
Exceptions for the rollup provider SDK.

Not-found is never an exception: lookups that find nothing return ``None``.
"""
from typing import Optional


class RollupSDKError(Exception):
    """Base exception for all SDK errors."""
    pass


class ResolutionError(RollupSDKError):
    """Raised when chain address or chain id discovery fails.

    Nothing is cached on failure, so the next call retries.
    """
    pass


class IntegrityError(RollupSDKError):
    """Raised when a recomputed identifier disagrees with the one a source claims."""

    def __init__(self, message: str, expected: Optional[str] = None, actual: Optional[str] = None):
        self.expected = expected
        self.actual = actual
        super().__init__(message)


class ProofInvalidError(RollupSDKError):
    """Raised when a log-inclusion or assertion-confirmation proof fails."""
    pass


class SubmissionError(RollupSDKError):
    """Raised when signing or dispatching an outgoing message fails."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class PreconditionError(RollupSDKError, ValueError):
    """Raised when the caller omitted a required field or passed an invalid one."""
    pass


class CallRevertedError(RollupSDKError):
    """Raised when a read-only rollup call does not return successfully."""

    def __init__(self, message: str, result_code: Optional[int] = None):
        self.result_code = result_code
        super().__init__(message)


class PollingCancelledError(RollupSDKError):
    """Raised when a caller cancels a polling loop."""
    pass


class TransportError(RollupSDKError):
    """Base exception for JSON-RPC transport failures."""
    pass


class ValidatorConnectionError(TransportError):
    """Raised when a JSON-RPC endpoint cannot be reached."""
    pass


class ValidatorResponseError(TransportError):
    """Raised when a JSON-RPC endpoint returns an error object or malformed body."""

    def __init__(self, message: str, error_code: Optional[int] = None):
        self.error_code = error_code
        super().__init__(message)
