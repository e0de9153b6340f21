#!/usr/bin/env python3
"""
Simple example of using the rollup provider SDK.
"""
import os
import logging

from rollup_sdk import ProviderConfig, RollupProvider, RollupSDKError

def main():
    """
    Demonstrate basic usage of the RollupProvider and RollupWallet.

    This example shows how to:
    1. Initialize the provider from environment variables
    2. Query balances through the system-info precompile
    3. Submit a value transfer and wait for its verified receipt
    """
    logging.basicConfig(level=logging.INFO)

    # Read configuration from environment
    RPC_URL = os.environ.get("RPC_URL")
    PRIVATE_KEY = os.environ.get("PRIVATE_KEY")
    RECIPIENT = os.environ.get("RECIPIENT", "0x000000000000000000000000000000000000dEaD")

    # Verify configuration
    if not RPC_URL:
        print("ERROR: RPC_URL environment variable is required")
        return

    if not PRIVATE_KEY:
        print("ERROR: PRIVATE_KEY environment variable is required")
        return

    try:
        config = ProviderConfig.from_env()
    except ValueError as e:
        print(f"ERROR: {e}")
        return

    # Initialize the provider and a wallet bound to it
    provider = RollupProvider.from_config(config, rpc_url=RPC_URL)
    wallet = provider.get_wallet(priv_key=PRIVATE_KEY)

    print(f"Rollup chain: {provider.chain_address()} (chain id {provider.chain_id})")
    print(f"Wallet address: {wallet.address}")
    print(f"Balance: {provider.get_balance(wallet.address)} wei")

    tx = {
        "to": RECIPIENT,
        "value": 10**12,
        "data": "0x",
        # Gas settings are only needed when no aggregator is configured
        "gas": 100000,
        "gasPrice": provider.w3.eth.gas_price,
    }

    try:
        handle = wallet.send_transaction(tx)
        print(f"Submitted via {handle.path.value}: {handle.hash}")
        print(f"Message id: {handle.message_id}")

        receipt = provider.get_transaction_receipt(handle.message_id)
        if receipt is None:
            print("Result not available yet")
            return

        print(f"Status: {'Success' if receipt.status == 1 else 'Failed'}")
        print(f"Confirmations: {receipt.confirmations}")

    except RollupSDKError as e:
        print(f"Error sending transaction: {str(e)}")

if __name__ == "__main__":
    main()
