"""
TrueMoneyX SDK - risk-gated token transfers.

Build an attestation request for a transfer, obtain a signed authorization
from the compliance kernel, and present it to the gated token contract.
"""
from .attestation import AttestationRequestBuilder
from .client import TrueMoneyClient
from .config import ClientSettings, ProxySettings
from .exceptions import (
    AuthorizationMismatch,
    ChainSubmissionError,
    ConfigurationError,
    KernelError,
    KernelResponseMalformed,
    KernelUnavailable,
    RiskDenied,
    TrueMoneyError,
    ValidationError,
)
from .gate import TrueMoneyGate
from .kernel import KernelClient, KernelExecutor
from .models import (
    AuthorizationBundle,
    KernelRequest,
    PreparedTransfer,
    RiskDecision,
    RiskLevel,
    RiskStatus,
    TransferIntent,
    TxReceipt,
)
from .relay import TokenRelay
from .simulator import LocalKernel
from .version import __version__

__all__ = [
    "AttestationRequestBuilder",
    "AuthorizationBundle",
    "AuthorizationMismatch",
    "ChainSubmissionError",
    "ClientSettings",
    "ConfigurationError",
    "KernelClient",
    "KernelError",
    "KernelExecutor",
    "KernelRequest",
    "KernelResponseMalformed",
    "KernelUnavailable",
    "LocalKernel",
    "PreparedTransfer",
    "ProxySettings",
    "RiskDecision",
    "RiskDenied",
    "RiskLevel",
    "RiskStatus",
    "TokenRelay",
    "TransferIntent",
    "TrueMoneyClient",
    "TrueMoneyError",
    "TrueMoneyGate",
    "TxReceipt",
    "ValidationError",
    "__version__",
]
