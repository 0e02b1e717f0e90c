#!/usr/bin/env python3
"""
Offline walk-through of the gate with a local kernel.

No network is used: the kernel signs with a throwaway authority key and the
contract is the in-process TrueMoneyGate.
"""
from eth_account import Account

from truemoneyx import (
    AttestationRequestBuilder,
    LocalKernel,
    RiskDenied,
    RiskLevel,
    RiskStatus,
    TrueMoneyGate,
)
from truemoneyx.utils import from_token_units, to_token_units

KERNEL_ID = 1337
RECIPIENT = "0x4e6f1cb8c7a2e3a2deab69c4e0a9f798d6fcf8b8"


def main():
    authority = Account.create()
    sender = Account.create()

    kernel = LocalKernel(authority.key, KERNEL_ID)
    gate = TrueMoneyGate(kernel.authority_address, KERNEL_ID)
    gate.mint(sender.address, to_token_units(100))
    builder = AttestationRequestBuilder(KERNEL_ID)

    # 1. Approved / Low / 15
    prepared = builder.build_transfer(sender.address, RECIPIENT, "10")
    bundle = kernel.submit("local", "", prepared.request, prepared.encoded_params)
    gate.transfer_with_krnl(sender.address, RECIPIENT, prepared.intent.units, bundle)
    print(f"Approved transfer {prepared.external_transaction_id}")
    print(f"  sender balance:    {from_token_units(gate.balance_of(sender.address))}")
    print(f"  recipient balance: {from_token_units(gate.balance_of(RECIPIENT))}")

    # 2. Rejected / High / 85
    kernel.decide = lambda request: kernel.decision_for(
        request, RiskStatus.REJECTED, RiskLevel.HIGH, 85, "Counterparty linked to sanctioned entity"
    )
    prepared = builder.build_transfer(sender.address, RECIPIENT, "10")
    bundle = kernel.submit("local", "", prepared.request, prepared.encoded_params)
    try:
        gate.transfer_with_krnl(sender.address, RECIPIENT, prepared.intent.units, bundle)
    except RiskDenied as e:
        print(f"Denied transfer {prepared.external_transaction_id}: {e}")
    print(f"  sender balance:    {from_token_units(gate.balance_of(sender.address))}")


if __name__ == "__main__":
    main()
