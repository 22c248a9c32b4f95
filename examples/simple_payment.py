#!/usr/bin/env python3
"""
Simple example of paying for a DirectCryptoPay payment tool.
"""
import asyncio
import logging
import os

import directcryptopay_sdk as dcp
from directcryptopay_sdk import PaymentCallbacks, PaymentState, NetworkConfig

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def main():
    """
    Demonstrate a full payment flow.

    This example shows how to:
    1. Initialize the SDK from DCP_* environment variables
    2. Start a payment and follow it through callbacks
    3. Confirm with the preselected token and wait for the backend
    """
    TOOL_ID = os.environ.get("DCP_TOOL_ID")
    if not TOOL_ID:
        print("ERROR: DCP_TOOL_ID environment variable is required")
        return
    if not os.environ.get("DCP_WALLET_RPC_URL"):
        print("ERROR: DCP_WALLET_RPC_URL must point at your wallet's JSON-RPC endpoint")
        return

    dcp.init(project_id=os.environ.get("DCP_PROJECT_ID", "example-project"), env="test")

    callbacks = PaymentCallbacks(
        on_state_change=lambda s: print(f"-> {s.state.value}"),
        on_tx_submitted=lambda tx_hash: print(f"Transaction broadcast: {tx_hash}"),
        on_success=lambda record: print(f"Payment {record.payment_id} confirmed"),
        on_error=lambda error: print(f"Payment failed: {error}"),
    )

    orchestrator = await dcp.pay(TOOL_ID, callbacks)
    try:
        if orchestrator.state.state is PaymentState.CONNECT_WALLET:
            print("Approve the connection request in your wallet...")
            await orchestrator.connect_wallet()
            while orchestrator.state.state is PaymentState.CONNECT_WALLET:
                await asyncio.sleep(1)

        state = orchestrator.state
        if state.state is not PaymentState.SELECT_TOKEN:
            return

        tool = state.tool
        print(f"\nPaying {tool.amount} {tool.currency_id} for {tool.metadata.name if tool.metadata else tool.id}")
        for token in state.tokens:
            marker = "*" if token == state.selected_token else " "
            print(f" {marker} {token.symbol:8} {token.balance_formatted}")

        await orchestrator.confirm()
        final = await orchestrator.wait_until_settled(timeout=600)

        if final.state is PaymentState.SUCCESS:
            print(f"\nExplorer: {NetworkConfig.explorer_tx_url(tool.chain_id, final.tx_hash)}")
    finally:
        orchestrator.close()
        dcp.reset()


if __name__ == "__main__":
    asyncio.run(main())
