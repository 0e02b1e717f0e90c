"""
Helpers for the TrueMoneyX SDK tests.
"""
from .client_creator import (
    AUTHORITY_KEY,
    FIXED_NOW,
    KERNEL_ID,
    RECIPIENT,
    SENDER_KEY,
    TEST_CONTRACT,
    TEST_KERNEL_RPC_URL,
    TEST_RPC_URL,
    authorize,
    create_test_client,
    create_test_settings,
)

__all__ = [
    "AUTHORITY_KEY",
    "FIXED_NOW",
    "KERNEL_ID",
    "RECIPIENT",
    "SENDER_KEY",
    "TEST_CONTRACT",
    "TEST_KERNEL_RPC_URL",
    "TEST_RPC_URL",
    "authorize",
    "create_test_client",
    "create_test_settings",
]
