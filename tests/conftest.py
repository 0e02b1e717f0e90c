"""
Pytest fixtures for the TrueMoneyX SDK tests.
"""
import pytest
from eth_account import Account
from web3.providers.rpc import HTTPProvider

from truemoneyx._rate_limited_log import reset_rate_limits
from truemoneyx.attestation import AttestationRequestBuilder
from truemoneyx.gate import TrueMoneyGate
from truemoneyx.simulator import LocalKernel
from truemoneyx.utils import to_token_units

from tests.test_helpers import (
    AUTHORITY_KEY,
    FIXED_NOW,
    KERNEL_ID,
    SENDER_KEY,
)


@pytest.fixture(autouse=True)
def _patch_http_provider(monkeypatch):
    """
    Stub every Web3 HTTP call so no DNS / network traffic is triggered.
    Works for all tests because it is autouse.
    """
    def _dummy(self, method, params=None, _=None):
        if method in {"eth_chainId"}:
            return {"jsonrpc": "2.0", "id": 1, "result": "0x1"}
        if method in {"eth_gasPrice"}:
            return {"jsonrpc": "2.0", "id": 1, "result": "0x3b9aca00"}  # 1 gwei
        return {"jsonrpc": "2.0", "id": 1, "result": "0x0"}

    monkeypatch.setattr(HTTPProvider, "make_request", _dummy, raising=True)


@pytest.fixture(autouse=True)
def _clear_rate_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()


@pytest.fixture
def sender_account():
    return Account.from_key(SENDER_KEY)


@pytest.fixture
def builder():
    """Builder with a frozen clock so request bodies are reproducible."""
    return AttestationRequestBuilder(KERNEL_ID, clock=lambda: FIXED_NOW)


@pytest.fixture
def kernel():
    """Local kernel approving everything (approved / Low / 15)."""
    return LocalKernel(AUTHORITY_KEY, KERNEL_ID, clock=lambda: FIXED_NOW)


@pytest.fixture
def gate(kernel, sender_account):
    """Gate trusting the local kernel, with 100 tokens minted to the sender."""
    gate = TrueMoneyGate(kernel.authority_address, KERNEL_ID, clock=lambda: FIXED_NOW)
    gate.mint(sender_account.address, to_token_units(100))
    return gate
