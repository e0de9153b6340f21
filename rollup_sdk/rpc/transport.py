"""
Transport layer for the validator and aggregator endpoints.

Both speak JSON-RPC 2.0 over HTTP POST. ``JsonRpcTransport`` is the seam
tests and alternative transports plug into.
"""
import itertools
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import DEFAULT_RETRY_COUNT, DEFAULT_TIMEOUT, validate_endpoint_url
from ..exceptions import ValidatorConnectionError, ValidatorResponseError

# Configure logger
logger = logging.getLogger(__name__)


class JsonRpcTransport(ABC):
    """
    Abstract base class for JSON-RPC transports.
    """

    @abstractmethod
    def call(self, method: str, params: Any = None) -> Any:
        """
        Invoke a remote method.

        Args:
            method: Remote method name
            params: A single params object, sent as the first positional param

        Returns:
            The ``result`` member of the response

        Raises:
            ValidatorConnectionError: If the endpoint cannot be reached
            ValidatorResponseError: If the endpoint returns an error or a malformed body
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close any open connections or resources."""
        pass


class HttpJsonRpcTransport(JsonRpcTransport):
    """JSON-RPC over a pooled ``requests`` session with retries."""

    def __init__(
        self,
        url: str,
        retry_count: int = DEFAULT_RETRY_COUNT,
        timeout: int = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        url_name: str = "url",
    ):
        self.url = validate_endpoint_url(url_name, url)
        self.timeout = timeout
        self._ids = itertools.count(1)
        self._id_lock = threading.Lock()

        if session is None:
            session = requests.Session()
            retries = Retry(
                total=retry_count,
                backoff_factor=0.5,
                status_forcelist=[500, 502, 503, 504],
                allowed_methods=["POST"],
                raise_on_status=False,
                connect=retry_count,
                read=retry_count,
                other=retry_count
            )
            session.mount("http://", HTTPAdapter(max_retries=retries))
            session.mount("https://", HTTPAdapter(max_retries=retries))
        self.session = session

    def _next_id(self) -> int:
        with self._id_lock:
            return next(self._ids)

    def call(self, method: str, params: Any = None) -> Any:
        request_id = self._next_id()
        body = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": method,
            "params": [params] if params is not None else [],
        }
        logger.debug(f"RPC request {request_id} -> {self.url}: {method}")

        try:
            response = self.session.post(self.url, json=body, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"RPC {method} to {self.url} failed: {e}")
            raise ValidatorConnectionError(f"{method} failed: {str(e)}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise ValidatorResponseError(f"Invalid JSON response to {method}: {str(e)}") from e

        if not isinstance(payload, dict):
            raise ValidatorResponseError(f"Unexpected response to {method}: {payload!r}")

        error = payload.get("error")
        if error:
            if isinstance(error, dict):
                raise ValidatorResponseError(
                    f"{method} returned error: {error.get('message', error)}",
                    error_code=error.get("code"),
                )
            raise ValidatorResponseError(f"{method} returned error: {error}")

        if "result" not in payload:
            raise ValidatorResponseError(f"Missing result in response to {method}: {payload}")

        logger.debug(f"RPC response {request_id}: {method} ok")
        return payload["result"]

    def close(self) -> None:
        self.session.close()
