"""
Configuration for the TrueMoneyX client and the risk proxy.

Settings are read once at startup and passed down explicitly. A missing
variable is a fatal configuration error, never a runtime fallback.
"""
import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, ValidationError as SchemaError, field_validator

from .exceptions import ConfigurationError
from .utils import is_eth_address

CLIENT_ENV = {
    "kernel_rpc_url": "TRUEMONEYX_KERNEL_RPC_URL",
    "entry_id": "TRUEMONEYX_ENTRY_ID",
    "access_token": "TRUEMONEYX_ACCESS_TOKEN",
    "kernel_id": "TRUEMONEYX_KERNEL_ID",
    "contract_address": "TRUEMONEYX_CONTRACT_ADDRESS",
    "rpc_url": "TRUEMONEYX_RPC_URL",
}

PROXY_ENV = {
    "api_base_url": "RISK_API_BASE_URL",
    "api_token": "RISK_API_TOKEN",
    "port": "PORT",
}

DEFAULT_RISK_API_BASE_URL = "https://api.chainalysis.com"


def _read(env: Mapping[str, str], names: Mapping[str, str], optional=()) -> dict:
    values = {field: env.get(var, "").strip() for field, var in names.items()}
    missing = [names[f] for f, v in values.items() if not v and f not in optional]
    if missing:
        raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")
    return {f: v for f, v in values.items() if v}


class ClientSettings(BaseModel):
    """Kernel and chain endpoints for TrueMoneyClient."""
    model_config = ConfigDict(frozen=True)

    kernel_rpc_url: str
    entry_id: str
    access_token: str
    kernel_id: int
    contract_address: str
    rpc_url: str

    @field_validator("contract_address")
    @classmethod
    def check_contract_address(cls, value: str) -> str:
        if not is_eth_address(value):
            raise ValueError(f"invalid contract address: {value!r}")
        return value

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ClientSettings":
        """
        Build settings from environment variables.

        Raises:
            ConfigurationError: If a variable is missing or invalid
        """
        values = _read(os.environ if environ is None else environ, CLIENT_ENV)
        try:
            return cls(**values)
        except SchemaError as e:
            raise ConfigurationError(f"Invalid client configuration: {e}") from e


class ProxySettings(BaseModel):
    """Upstream risk API and listen port for the risk proxy."""
    model_config = ConfigDict(frozen=True)

    api_base_url: str = DEFAULT_RISK_API_BASE_URL
    api_token: str
    port: int = 3000
    batch_size: int = 10
    timeout: int = 30

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ProxySettings":
        """
        Build settings from environment variables.

        Raises:
            ConfigurationError: If RISK_API_TOKEN is missing or a value is invalid
        """
        values = _read(
            os.environ if environ is None else environ,
            PROXY_ENV,
            optional=("api_base_url", "port"),
        )
        try:
            return cls(**values)
        except SchemaError as e:
            raise ConfigurationError(f"Invalid proxy configuration: {e}") from e
