#!/usr/bin/env python3
"""
Risk-gated transfer against a deployed TrueMoneyX contract.

Reads the TRUEMONEYX_* settings and TRUEMONEYX_PRIVATE_KEY from the
environment, then transfers RECIPIENT/AMOUNT through the kernel.
"""
import os

from eth_account import Account

from truemoneyx import ClientSettings, RiskDenied, TrueMoneyClient, TrueMoneyError


def main():
    """
    Demonstrate the authorize-then-transfer flow.

    This example shows how to:
    1. Load settings from the environment
    2. Prepare an intent and obtain its authorization
    3. Submit the authorized transfer on chain
    """
    PRIVATE_KEY = os.environ.get("TRUEMONEYX_PRIVATE_KEY")
    RECIPIENT = os.environ.get("RECIPIENT", "0x4e6f1cb8c7a2e3a2deab69c4e0a9f798d6fcf8b8")
    AMOUNT = os.environ.get("AMOUNT", "0.5")

    if not PRIVATE_KEY:
        print("ERROR: TRUEMONEYX_PRIVATE_KEY environment variable is required")
        return

    try:
        settings = ClientSettings.from_env()
    except TrueMoneyError as e:
        print(f"ERROR: {e}")
        return

    client = TrueMoneyClient(settings, signer=Account.from_key(PRIVATE_KEY))
    print(f"Sender: {client.address}")
    print(f"Balance before: {client.balance_of()}")

    try:
        tx_receipt = client.transfer(RECIPIENT, AMOUNT)
        print("Transfer authorized and confirmed!")
        print(f"Transaction hash: {tx_receipt.tx_hash}")
        print(f"Block number: {tx_receipt.block_number}")
        print(f"Status: {'Success' if tx_receipt.status == 1 else 'Failed'}")
    except RiskDenied as e:
        print(f"Transfer denied by risk assessment: {e.revert_reason}")
    except TrueMoneyError as e:
        print(f"Error sending transfer: {e}")


if __name__ == "__main__":
    main()
