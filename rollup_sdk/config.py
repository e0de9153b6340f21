"""
Configuration for the rollup provider.

Settings are normally passed as keyword arguments; ``ProviderConfig.from_env``
builds the same settings from ``ROLLUP_*`` environment variables.
"""
import os
import urllib.parse
from typing import Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_POLL_INTERVAL = 0.1
DEFAULT_RETRY_COUNT = 3
DEFAULT_TIMEOUT = 30

_TRUTHY = {"1", "true", "yes", "on"}


def validate_endpoint_url(url_name: str, url: str) -> str:
    """
    Check that an endpoint URL uses https unless it points at the local machine.

    Args:
        url_name: Name of the setting, used in the error message
        url: URL to check

    Returns:
        The URL without a trailing slash

    Raises:
        ValueError: If the URL is not https and not localhost/127.0.0.1
    """
    parsed = urllib.parse.urlparse(url)
    # Check if it's a localhost or 127.0.0.1 address (with or without port)
    netloc_parts = parsed.netloc.split(':')
    host = netloc_parts[0] if netloc_parts else ''
    is_local = host in ('localhost', '127.0.0.1')
    if parsed.scheme != 'https' and not is_local:
        raise ValueError(f"{url_name} must use https:// for security (got: {parsed.scheme}://)")
    return url.rstrip('/')


class ProviderConfig(BaseModel):
    """Settings shared by the provider, its RPC clients and the wallet."""
    validator_url: str
    aggregator_url: Optional[str] = None
    poll_interval: float = Field(DEFAULT_POLL_INTERVAL, gt=0)
    deterministic_assertions: bool = False
    retry_count: int = Field(DEFAULT_RETRY_COUNT, ge=0)
    timeout: int = Field(DEFAULT_TIMEOUT, gt=0)

    @field_validator("validator_url")
    @classmethod
    def _check_validator_url(cls, v: str) -> str:
        return validate_endpoint_url("validator_url", v)

    @field_validator("aggregator_url")
    @classmethod
    def _check_aggregator_url(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        return validate_endpoint_url("aggregator_url", v)

    @classmethod
    def from_env(cls, **overrides) -> "ProviderConfig":
        """
        Build a config from environment variables.

        Reads ROLLUP_VALIDATOR_URL (required), ROLLUP_AGGREGATOR_URL,
        ROLLUP_POLL_INTERVAL, ROLLUP_DETERMINISTIC_ASSERTIONS,
        ROLLUP_RETRY_COUNT and ROLLUP_TIMEOUT. Keyword overrides win.

        Raises:
            ValueError: If no validator URL is configured
        """
        values = {}
        validator_url = os.environ.get("ROLLUP_VALIDATOR_URL")
        if validator_url:
            values["validator_url"] = validator_url
        aggregator_url = os.environ.get("ROLLUP_AGGREGATOR_URL")
        if aggregator_url:
            values["aggregator_url"] = aggregator_url
        if "ROLLUP_POLL_INTERVAL" in os.environ:
            values["poll_interval"] = float(os.environ["ROLLUP_POLL_INTERVAL"])
        if "ROLLUP_DETERMINISTIC_ASSERTIONS" in os.environ:
            flag = os.environ["ROLLUP_DETERMINISTIC_ASSERTIONS"].strip().lower()
            values["deterministic_assertions"] = flag in _TRUTHY
        if "ROLLUP_RETRY_COUNT" in os.environ:
            values["retry_count"] = int(os.environ["ROLLUP_RETRY_COUNT"])
        if "ROLLUP_TIMEOUT" in os.environ:
            values["timeout"] = int(os.environ["ROLLUP_TIMEOUT"])
        values.update(overrides)

        if "validator_url" not in values:
            raise ValueError("ROLLUP_VALIDATOR_URL must be set or validator_url passed explicitly")
        return cls(**values)
