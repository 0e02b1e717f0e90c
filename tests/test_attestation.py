"""
Tests for the attestation request builder.
"""
import re

import pytest
from web3 import Web3

from truemoneyx.attestation import (
    DEMO_CUSTOMER_ID,
    DEMO_TRANSACTION_HASH,
    AttestationRequestBuilder,
)
from truemoneyx.exceptions import ValidationError
from truemoneyx.utils import decode_transfer_params, decode_unstake_params

from tests.test_helpers import FIXED_NOW, KERNEL_ID, RECIPIENT


def test_build_transfer_request_shape(builder, sender_account):
    prepared = builder.build_transfer(sender_account.address, RECIPIENT, "1.5")
    wire = prepared.request.to_wire()

    assert wire["senderAddress"] == sender_account.address
    assert list(wire["kernelPayload"]) == [str(KERNEL_ID)]

    parameters = wire["kernelPayload"][str(KERNEL_ID)]["parameters"]
    assert parameters["query"] == {"waitForWebhook": "true"}
    assert parameters["header"] == {}

    body = parameters["body"]
    assert body["customerId"] == DEMO_CUSTOMER_ID
    assert body["externalTransactionId"] == prepared.external_transaction_id
    assert body["transactionDate"] == "2023-11-14T22:13:20.000Z"
    assert body["transactionType"] == "crypto"
    assert body["transactionSubType"] == "wallet transfer"
    assert body["transactionInfo"]["amount"] == 1.5
    assert body["transactionInfo"]["hash"] == DEMO_TRANSACTION_HASH
    assert body["transactionInfo"]["fees"]["networkFeeCurrencyCode"] == "ETH"
    assert body["originator"]["name"] == "Bob Smith"
    assert "institution" not in body["originator"]
    assert body["beneficiary"]["institution"] == {"name": "Binance", "code": "BINANCE123"}


def test_build_transfer_encodes_recipient_and_units(builder, sender_account):
    prepared = builder.build_transfer(sender_account.address, RECIPIENT, "2")

    assert prepared.intent.units == 2 * 10**18
    assert prepared.intent.recipient == Web3.to_checksum_address(RECIPIENT)
    assert decode_transfer_params(prepared.encoded_params) == (
        Web3.to_checksum_address(RECIPIENT), 2 * 10**18
    )


def test_generated_transaction_id_uses_clock(builder, sender_account):
    prepared = builder.build_transfer(sender_account.address, RECIPIENT, "1")
    assert re.match(rf"^tx-{int(FIXED_NOW * 1000)}-[a-z0-9]{{8}}$", prepared.external_transaction_id)


def test_explicit_transaction_id_is_kept(builder, sender_account):
    prepared = builder.build_transfer(sender_account.address, RECIPIENT, "1", "tx-custom")
    assert prepared.external_transaction_id == "tx-custom"
    assert prepared.request.body_for(KERNEL_ID).external_transaction_id == "tx-custom"


def test_encoded_params_do_not_depend_on_transaction_id(builder, sender_account):
    first = builder.build_transfer(sender_account.address, RECIPIENT, "1", "tx-a")
    second = builder.build_transfer(sender_account.address, RECIPIENT, "1", "tx-b")
    assert first.encoded_params == second.encoded_params


@pytest.mark.parametrize("recipient,amount,message", [
    ("", "1", "recipient address is required"),
    ("0x1234", "1", "Invalid recipient address format"),
    (RECIPIENT, "0", "greater than 0"),
    (RECIPIENT, "-3", "greater than 0"),
])
def test_build_transfer_validates_inputs(builder, sender_account, recipient, amount, message):
    with pytest.raises(ValidationError, match=message):
        builder.build_transfer(sender_account.address, recipient, amount)


def test_blank_transaction_id_is_rejected(builder, sender_account):
    with pytest.raises(ValidationError, match="must not be empty"):
        builder.build_transfer(sender_account.address, RECIPIENT, "1", "   ")


def test_build_unstake_defaults_beneficiary_to_sender(builder, sender_account):
    prepared = builder.build_unstake(sender_account.address, "0.25", external_transaction_id="tx-u")

    assert prepared.intent.recipient == sender_account.address
    assert decode_unstake_params(prepared.encoded_params) == (
        "tx-u", 25 * 10**16, sender_account.address
    )


def test_custom_customer_id(sender_account):
    builder = AttestationRequestBuilder(KERNEL_ID, customer_id="cust-42", clock=lambda: FIXED_NOW)
    prepared = builder.build_transfer(sender_account.address, RECIPIENT, "1")
    assert prepared.request.body_for(KERNEL_ID).customer_id == "cust-42"
