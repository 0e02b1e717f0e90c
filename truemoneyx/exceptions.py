"""
Exceptions for the TrueMoneyX SDK.

Every failure is terminal for the attempt that raised it. Callers that want
to try again must build a new transfer intent (new external transaction id).
"""
from typing import Optional


class TrueMoneyError(Exception):
    """Base exception for all TrueMoneyX errors."""
    pass


class ValidationError(TrueMoneyError, ValueError):
    """Raised before any network call when an input is malformed."""
    pass


class ConfigurationError(TrueMoneyError):
    """Raised at startup when required configuration is missing or invalid."""
    pass


class KernelError(TrueMoneyError):
    """Base exception for off-chain kernel failures."""
    pass


class KernelUnavailable(KernelError):
    """Raised when the kernel endpoint cannot be reached or reports an error."""
    pass


class KernelResponseMalformed(KernelError):
    """Raised when the kernel response does not match the authorization schema."""
    pass


class ChainSubmissionError(TrueMoneyError):
    """
    Raised when a transaction fails on chain.

    Attributes:
        revert_reason: The contract's revert string, when the runtime exposes one
    """

    def __init__(self, message: str, revert_reason: Optional[str] = None):
        self.revert_reason = revert_reason
        super().__init__(message)


class AuthorizationMismatch(ChainSubmissionError):
    """Raised when the authorization bundle does not cover the executed call."""
    pass


class RiskDenied(ChainSubmissionError):
    """Raised when the risk decision does not allow the transfer."""
    pass
