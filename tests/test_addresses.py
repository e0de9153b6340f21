"""
Tests for chain address discovery and caching.
"""
import threading

import pytest

from rollup_sdk.addresses import ChainAddressResolver, chain_id_from_address
from rollup_sdk.exceptions import ResolutionError, ValidatorConnectionError
from rollup_sdk.rpc.validator import ValidatorClient

from tests.test_helpers import INBOX_ADDRESS, ROLLUP_ADDRESS, ROLLUP_CHAIN_ID, FakeTransport


def make_resolver(chain, vm_info):
    transport = FakeTransport({"Validator.GetVMInfo": vm_info})
    return ChainAddressResolver(ValidatorClient(transport=transport), chain.w3), transport


def test_chain_id_is_last_six_bytes_of_address():
    assert chain_id_from_address(ROLLUP_ADDRESS) == ROLLUP_CHAIN_ID
    assert chain_id_from_address("0x" + "00" * 14 + "000000000001") == 1


def test_rollup_address_is_checksummed_and_cached(chain):
    resolver, transport = make_resolver(chain, {"vmID": ROLLUP_ADDRESS.lower()})
    assert resolver.rollup_address() == ROLLUP_ADDRESS
    assert resolver.rollup_address() == ROLLUP_ADDRESS
    assert resolver.chain_id() == ROLLUP_CHAIN_ID
    assert transport.methods_called() == ["Validator.GetVMInfo"]


def test_concurrent_callers_issue_one_query(chain):
    gate = threading.Event()
    calls = []

    def vm_info(params):
        calls.append(params)
        gate.wait(5)
        return {"vmID": ROLLUP_ADDRESS}

    resolver, _ = make_resolver(chain, vm_info)
    results = []
    threads = [threading.Thread(target=lambda: results.append(resolver.chain_id())) for _ in range(6)]
    for t in threads:
        t.start()
    threading.Event().wait(0.05)
    gate.set()
    for t in threads:
        t.join(5)

    assert results == [ROLLUP_CHAIN_ID] * 6
    assert len(calls) == 1


def test_failed_lookup_is_not_cached(chain):
    resolver, transport = make_resolver(chain, ValidatorConnectionError("validator down"))
    with pytest.raises(ResolutionError, match="Could not resolve rollup address"):
        resolver.rollup_address()

    transport.responses["Validator.GetVMInfo"] = {"vmID": ROLLUP_ADDRESS}
    assert resolver.rollup_address() == ROLLUP_ADDRESS
    assert transport.methods_called() == ["Validator.GetVMInfo", "Validator.GetVMInfo"]


def test_invalid_vm_id_is_a_resolution_error(chain):
    resolver, _ = make_resolver(chain, {"vmID": "0xnot-an-address"})
    with pytest.raises(ResolutionError, match="invalid rollup address"):
        resolver.rollup_address()


def test_inbox_address_comes_from_rollup_contract(chain):
    resolver, _ = make_resolver(chain, {"vmID": ROLLUP_ADDRESS})
    assert resolver.inbox_address() == INBOX_ADDRESS
    assert resolver.inbox_address() == INBOX_ADDRESS
    assert chain.rollup_contract.functions.globalInbox.return_value.call.call_count == 1
    assert resolver.inbox_contract() is chain.inbox_contract


def test_inbox_lookup_failure(chain):
    chain.rollup_contract.functions.globalInbox.return_value.call.side_effect = ConnectionError("rpc down")
    resolver, _ = make_resolver(chain, {"vmID": ROLLUP_ADDRESS})
    with pytest.raises(ResolutionError, match="Could not resolve inbox address"):
        resolver.inbox_address()


def test_invalid_inbox_address_is_a_resolution_error(chain):
    chain.rollup_contract.functions.globalInbox.return_value.call.return_value = "0xnot-an-address"
    resolver, _ = make_resolver(chain, {"vmID": ROLLUP_ADDRESS})
    with pytest.raises(ResolutionError, match="invalid inbox address"):
        resolver.inbox_address()
