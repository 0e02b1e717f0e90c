"""
Tests for the kernel JSON-RPC client.
"""
import logging

import pytest
import requests

from truemoneyx.exceptions import KernelResponseMalformed, KernelUnavailable
from truemoneyx.kernel import KernelClient, validate_endpoint_url
from truemoneyx.models import AuthorizationBundle

from tests.test_helpers import RECIPIENT, TEST_KERNEL_RPC_URL

BUNDLE = {"auth": "0x01", "kernel_responses": "0x02", "kernel_params": "0x03"}


@pytest.fixture
def prepared(builder, sender_account):
    return builder.build_transfer(sender_account.address, RECIPIENT, "10", "tx-kernel-1")


@pytest.fixture
def client():
    return KernelClient(TEST_KERNEL_RPC_URL)


def _submit(client, prepared, token="secret-token"):
    return client.submit("entry-1", token, prepared.request, prepared.encoded_params)


def test_submit_success(requests_mock, client, prepared):
    requests_mock.post(TEST_KERNEL_RPC_URL, json={"jsonrpc": "2.0", "id": 1, "result": BUNDLE})

    bundle = _submit(client, prepared)

    assert isinstance(bundle, AuthorizationBundle)
    assert bundle.auth_bytes == b"\x01"
    assert bundle.kernel_params == "0x03"

    sent = requests_mock.last_request.json()
    assert sent["jsonrpc"] == "2.0"
    assert sent["method"] == "krnl_executeKernels"
    entry_id, token, body, params = sent["params"]
    assert (entry_id, token) == ("entry-1", "secret-token")
    assert body["kernelPayload"]["1337"]["parameters"]["body"]["externalTransactionId"] == "tx-kernel-1"
    assert params == "0x" + prepared.encoded_params.hex()


def test_exactly_one_request_per_submission(requests_mock, client, prepared):
    requests_mock.post(TEST_KERNEL_RPC_URL, json={"result": BUNDLE})
    _submit(client, prepared)
    _submit(client, prepared)

    assert requests_mock.call_count == 2
    ids = [r.json()["id"] for r in requests_mock.request_history]
    assert ids[0] != ids[1]


def test_http_error_is_unavailable(requests_mock, client, prepared):
    requests_mock.post(TEST_KERNEL_RPC_URL, status_code=500, json={"error": "boom"})

    with pytest.raises(KernelUnavailable, match="Kernel request failed"):
        _submit(client, prepared)
    assert requests_mock.call_count == 1


def test_connection_error_is_unavailable(requests_mock, client, prepared):
    requests_mock.post(TEST_KERNEL_RPC_URL, exc=requests.exceptions.ConnectionError("refused"))

    with pytest.raises(KernelUnavailable):
        _submit(client, prepared)


def test_rpc_error_is_unavailable(requests_mock, client, prepared):
    requests_mock.post(
        TEST_KERNEL_RPC_URL,
        json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "entry not found"}},
    )

    with pytest.raises(KernelUnavailable, match="Kernel returned error: entry not found"):
        _submit(client, prepared)


@pytest.mark.parametrize("result", [
    {"auth": "0x01", "kernel_responses": "0x02"},
    {"auth": "", "kernel_responses": "0x02", "kernel_params": "0x03"},
    {},
])
def test_missing_fields_are_malformed(requests_mock, client, prepared, result):
    requests_mock.post(TEST_KERNEL_RPC_URL, json={"result": result})

    with pytest.raises(KernelResponseMalformed, match="missing fields"):
        _submit(client, prepared)


def test_missing_result_is_malformed(requests_mock, client, prepared):
    requests_mock.post(TEST_KERNEL_RPC_URL, json={"jsonrpc": "2.0", "id": 1})

    with pytest.raises(KernelResponseMalformed, match="no result object"):
        _submit(client, prepared)


def test_non_hex_fields_are_malformed(requests_mock, client, prepared):
    requests_mock.post(TEST_KERNEL_RPC_URL, json={"result": {**BUNDLE, "auth": "0xnothex"}})

    with pytest.raises(KernelResponseMalformed, match="Invalid authorization bundle"):
        _submit(client, prepared)


def test_non_json_is_malformed(requests_mock, client, prepared):
    requests_mock.post(TEST_KERNEL_RPC_URL, text="<html>gateway timeout</html>")

    with pytest.raises(KernelResponseMalformed, match="Invalid JSON"):
        _submit(client, prepared)


def test_access_token_is_not_logged(requests_mock, prepared, caplog):
    requests_mock.post(TEST_KERNEL_RPC_URL, json={"result": BUNDLE})
    client = KernelClient(TEST_KERNEL_RPC_URL, logger=logging.getLogger("kernel-test"))

    with caplog.at_level(logging.DEBUG, logger="kernel-test"):
        _submit(client, prepared, token="super-secret-value")

    assert "super-secret-value" not in caplog.text
    assert "REDACTED" in caplog.text


@pytest.mark.parametrize("url", ["https://kernel.example.com", "http://localhost:8545", "http://127.0.0.1"])
def test_endpoint_url_allowed(url):
    validate_endpoint_url("rpc_url", url)


def test_plain_http_endpoint_rejected():
    with pytest.raises(ValueError, match="must use https://"):
        KernelClient("http://kernel.example.com")
