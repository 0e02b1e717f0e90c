"""
Tests for the web3 token relay.
"""
from unittest.mock import MagicMock

import pytest
import requests
from web3 import Web3
from web3.exceptions import ContractLogicError, Web3Exception

from truemoneyx.exceptions import AuthorizationMismatch, ChainSubmissionError, RiskDenied
from truemoneyx.models import AuthorizationBundle
from truemoneyx.relay import DEFAULT_GAS, TokenRelay, classify_revert, revert_reason_of

from tests.test_helpers import RECIPIENT, TEST_CONTRACT, TEST_RPC_URL

SENDER = "0x1111111111111111111111111111111111111111"
TX_HASH = bytes.fromhex("ab" * 32)
BUNDLE = AuthorizationBundle(auth="0x01", kernel_responses="0x02", kernel_params="0x03")


def _receipt(status=1):
    return {
        "transactionHash": TX_HASH,
        "blockNumber": 12345,
        "blockHash": bytes.fromhex("cd" * 32),
        "status": status,
        "gasUsed": 85000,
        "from": SENDER,
        "to": TEST_CONTRACT,
        "logs": [],
    }


@pytest.fixture
def signer():
    signer = MagicMock()
    signer.address = SENDER
    signer.sign_transaction.return_value = MagicMock(raw_transaction=b"signed-raw")
    return signer


@pytest.fixture
def relay(signer):
    relay = TokenRelay(TEST_RPC_URL, TEST_CONTRACT, signer=signer)
    relay.w3 = MagicMock()
    relay.w3.eth.get_transaction_count.return_value = 7
    relay.w3.eth.gas_price = 10**9
    relay.w3.eth.send_raw_transaction.return_value = TX_HASH
    relay.w3.eth.wait_for_transaction_receipt.return_value = _receipt()
    relay.contract = MagicMock()
    return relay


def _contract_fn(relay, name):
    fn = getattr(relay.contract.functions, name).return_value
    fn.estimate_gas.return_value = 100000
    fn.build_transaction.side_effect = lambda params: {**params, "to": TEST_CONTRACT, "data": "0x1234"}
    return fn


def test_transfer_with_krnl_submits_bundle(relay, signer):
    fn = _contract_fn(relay, "transferWithKRNL")

    receipt = relay.transfer_with_krnl(RECIPIENT, 10**18, BUNDLE)

    relay.contract.functions.transferWithKRNL.assert_called_once_with(
        Web3.to_checksum_address(RECIPIENT), 10**18, (b"\x01", b"\x02", b"\x03")
    )
    fn.estimate_gas.assert_called_once_with({"from": SENDER, "value": 0})
    tx = fn.build_transaction.call_args[0][0]
    assert tx["gas"] == 110000
    assert tx["nonce"] == 7
    assert tx["gasPrice"] == 10**9
    signer.sign_transaction.assert_called_once()
    relay.w3.eth.send_raw_transaction.assert_called_once_with(b"signed-raw")

    assert receipt.tx_hash == "0x" + "ab" * 32
    assert receipt.block_hash == "0x" + "cd" * 32
    assert receipt.status == 1
    assert receipt.block_number == 12345


def test_stake_sends_value(relay):
    fn = _contract_fn(relay, "stake")
    relay.stake(5 * 10**18)

    fn.estimate_gas.assert_called_once_with({"from": SENDER, "value": 5 * 10**18})
    assert fn.build_transaction.call_args[0][0]["value"] == 5 * 10**18


def test_unstake_arguments(relay):
    _contract_fn(relay, "unstake")
    relay.unstake(BUNDLE, "tx-1", 42, RECIPIENT)

    relay.contract.functions.unstake.assert_called_once_with(
        (b"\x01", b"\x02", b"\x03"), "tx-1", 42, Web3.to_checksum_address(RECIPIENT)
    )


def test_risk_revert_during_estimation(relay):
    fn = _contract_fn(relay, "transferWithKRNL")
    fn.estimate_gas.side_effect = ContractLogicError(
        "execution reverted: Transfer denied due to risk assessment"
    )

    with pytest.raises(RiskDenied) as excinfo:
        relay.transfer_with_krnl(RECIPIENT, 1, BUNDLE)

    assert excinfo.value.revert_reason == "Transfer denied due to risk assessment"
    relay.w3.eth.send_raw_transaction.assert_not_called()


def test_mined_revert_is_replayed_for_reason(relay):
    fn = _contract_fn(relay, "transferWithKRNL")
    relay.w3.eth.wait_for_transaction_receipt.return_value = _receipt(status=0)
    fn.call.side_effect = ContractLogicError("execution reverted: Invalid signature for function call")

    with pytest.raises(AuthorizationMismatch) as excinfo:
        relay.transfer_with_krnl(RECIPIENT, 1, BUNDLE)

    assert excinfo.value.revert_reason == "Invalid signature for function call"
    assert fn.call.call_args[1]["block_identifier"] == 12345


def test_mined_revert_without_reason(relay):
    fn = _contract_fn(relay, "transferWithKRNL")
    relay.w3.eth.wait_for_transaction_receipt.return_value = _receipt(status=0)
    fn.call.return_value = True

    with pytest.raises(ChainSubmissionError) as excinfo:
        relay.transfer_with_krnl(RECIPIENT, 1, BUNDLE)

    assert not isinstance(excinfo.value, (RiskDenied, AuthorizationMismatch))
    assert excinfo.value.revert_reason is None


def test_gas_estimation_failure_uses_default(relay):
    fn = _contract_fn(relay, "transferWithKRNL")
    fn.estimate_gas.side_effect = ValueError("node does not support estimation")

    relay.transfer_with_krnl(RECIPIENT, 1, BUNDLE)

    assert fn.build_transaction.call_args[0][0]["gas"] == DEFAULT_GAS


def test_signing_failure(relay, signer):
    _contract_fn(relay, "transferWithKRNL")
    signer.sign_transaction.side_effect = RuntimeError("hardware wallet unplugged")

    with pytest.raises(ChainSubmissionError, match="Failed to sign transaction"):
        relay.transfer_with_krnl(RECIPIENT, 1, BUNDLE)


def test_send_failure(relay):
    _contract_fn(relay, "transferWithKRNL")
    relay.w3.eth.send_raw_transaction.side_effect = ValueError("nonce too low")

    with pytest.raises(ChainSubmissionError, match="Failed to send transaction"):
        relay.transfer_with_krnl(RECIPIENT, 1, BUNDLE)


def test_transactions_need_signer():
    relay = TokenRelay(TEST_RPC_URL, TEST_CONTRACT)
    with pytest.raises(ValueError, match="No signer available"):
        relay.stake(1)


def test_queries(relay):
    relay.contract.functions.balanceOf.return_value.call.return_value = 5
    relay.contract.functions.getStakerBalance.return_value.call.return_value = 6
    relay.contract.functions.getContractBalance.return_value.call.return_value = 7

    assert relay.balance_of(RECIPIENT) == 5
    assert relay.get_staker_balance(RECIPIENT) == 6
    assert relay.get_contract_balance() == 7
    relay.contract.functions.balanceOf.assert_called_once_with(Web3.to_checksum_address(RECIPIENT))


def test_get_transfer_assessment_accepts_hex(relay):
    relay.get_transfer_assessment("0x" + "00" * 32)
    relay.contract.functions.getTransferAssessment.assert_called_once_with(b"\x00" * 32)


def test_query_revert_is_chain_error(relay):
    relay.contract.functions.balanceOf.return_value.call.side_effect = ContractLogicError(
        "execution reverted: paused"
    )

    with pytest.raises(ChainSubmissionError) as excinfo:
        relay.balance_of(RECIPIENT)

    assert excinfo.value.revert_reason == "paused"
    assert "balanceOf reverted" in str(excinfo.value)


@pytest.mark.parametrize("error", [
    requests.exceptions.ConnectionError("connection refused"),
    Web3Exception("header not found"),
    ValueError("bad response"),
])
def test_query_transport_failure_is_chain_error(relay, error):
    relay.contract.functions.getContractBalance.return_value.call.side_effect = error

    with pytest.raises(ChainSubmissionError, match="getContractBalance query failed"):
        relay.get_contract_balance()


def test_invalid_contract_address():
    with pytest.raises(ValueError, match="Invalid contract address format"):
        TokenRelay(TEST_RPC_URL, "0x1234")


@pytest.mark.parametrize("reason,kind", [
    ("Transfer denied due to risk assessment", RiskDenied),
    ("Invalid kernel params digest", AuthorizationMismatch),
    ("External transaction id mismatch", AuthorizationMismatch),
    ("ERC20: transfer amount exceeds balance", ChainSubmissionError),
])
def test_classify_revert(reason, kind):
    error = classify_revert(reason)
    assert type(error) is kind
    assert error.revert_reason == reason


def test_revert_reason_of_strips_prefix():
    assert revert_reason_of(ContractLogicError("execution reverted: nope")) == "nope"
    assert revert_reason_of(ValueError("plain")) == "plain"
