"""
JSON-RPC clients for the rollup validator and the transaction aggregator.
"""
from .transport import JsonRpcTransport, HttpJsonRpcTransport
from .validator import ValidatorClient
from .aggregator import AggregatorClient

__all__ = ['JsonRpcTransport', 'HttpJsonRpcTransport', 'ValidatorClient', 'AggregatorClient']
