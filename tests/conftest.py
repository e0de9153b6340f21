"""
Pytest fixtures for the rollup provider SDK tests.
"""
import time

import pytest
from eth_account import Account

from rollup_sdk.codec import JsonValueCodec
from rollup_sdk.rpc._rate_limited_log import clear_rate_limit_cache

from tests.test_helpers import TEST_PRIV_KEY, FakeBaseChain, FakeTransport, make_provider


# Make time.sleep instantaneous so polling loops don't slow the suite down
@pytest.fixture(autouse=True)
def _fast_sleep(monkeypatch):
    monkeypatch.setattr(time, "sleep", lambda *_a, **_kw: None)


@pytest.fixture(autouse=True)
def _fresh_rate_limit_cache():
    """Rate-limited log lines from one test must not suppress lines in the next."""
    clear_rate_limit_cache()
    yield
    clear_rate_limit_cache()


@pytest.fixture
def chain():
    """Fake base chain at block 100"""
    return FakeBaseChain(block_number=100)


@pytest.fixture
def codec():
    return JsonValueCodec()


@pytest.fixture
def account():
    """Create a deterministic test account"""
    return Account.from_key(TEST_PRIV_KEY)


@pytest.fixture
def provider(chain):
    """Provider without an aggregator, answering GetVMInfo only"""
    return make_provider(chain)


@pytest.fixture
def aggregator_transport():
    return FakeTransport({"Aggregator.SendTransaction": {"ok": True}})
