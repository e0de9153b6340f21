"""
Shared builders for the rollup SDK tests.
"""
from .chain import (
    DEST_ADDRESS,
    INBOX_ADDRESS,
    ROLLUP_ADDRESS,
    ROLLUP_CHAIN_ID,
    TEST_AGGREGATOR_URL,
    TEST_PRIV_KEY,
    TEST_RPC_URL,
    TEST_VALIDATOR_URL,
    FakeBaseChain,
    FakeTransport,
    asserted_log,
    build_log,
    by_message_id,
    deposit_result,
    inbox_log,
    make_proof,
    make_provider,
    raw_result_response,
    transaction_result,
)

__all__ = [
    'DEST_ADDRESS', 'INBOX_ADDRESS', 'ROLLUP_ADDRESS', 'ROLLUP_CHAIN_ID', 'TEST_AGGREGATOR_URL',
    'TEST_PRIV_KEY', 'TEST_RPC_URL', 'TEST_VALIDATOR_URL', 'FakeBaseChain', 'FakeTransport',
    'asserted_log', 'build_log', 'by_message_id', 'deposit_result', 'inbox_log', 'make_proof', 'make_provider',
    'raw_result_response', 'transaction_result',
]
