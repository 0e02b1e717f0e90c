"""
Risk-scoring proxy service.

A small HTTP service in front of the third-party risk API: validates wallet
addresses, forwards with the API token, and reduces each answer to
walletAddress, risk, riskReason and status.
"""
from .app import create_app, run
from .service import RiskApiClient, RiskApiError, filter_risk_fields, replace_nulls

__all__ = [
    "create_app",
    "run",
    "RiskApiClient",
    "RiskApiError",
    "filter_risk_fields",
    "replace_nulls",
]
