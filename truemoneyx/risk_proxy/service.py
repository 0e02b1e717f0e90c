"""
Client for the third-party risk API and the response shaping the proxy applies.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

import requests

from .._rate_limited_log import rate_limited_log
from ..exceptions import TrueMoneyError

RISK_FIELDS = ("walletAddress", "risk", "riskReason", "status")

DEFAULT_ERROR_MESSAGE = "Failed to process risk assessment"
DEFAULT_BULK_ERROR_MESSAGE = "Failed to fetch risk assessment"


class RiskApiError(TrueMoneyError):
    """Raised when the upstream risk API fails; carries the status to relay."""

    def __init__(
        self, status_code: int, error: str, message: str, upstream_message: Optional[str] = None
    ):
        self.status_code = status_code
        self.error = error
        self.message = message
        self.upstream_message = upstream_message
        super().__init__(f"{status_code} {error}: {message}")


def replace_nulls(value: Any) -> Any:
    """Replace every JSON null, at any depth, with the string "null"."""
    if value is None:
        return "null"
    if isinstance(value, list):
        return [replace_nulls(item) for item in value]
    if isinstance(value, dict):
        return {key: replace_nulls(item) for key, item in value.items()}
    return value


def rename_top_address(data: Any) -> Any:
    """Rename a top-level `address` key to `walletAddress`."""
    if isinstance(data, dict) and "address" in data:
        renamed = {"walletAddress": data["address"]}
        renamed.update((k, v) for k, v in data.items() if k != "address")
        return renamed
    return data


def filter_risk_fields(data: Any) -> Dict[str, Any]:
    """Keep only walletAddress, risk, riskReason and status."""
    renamed = rename_top_address(data)
    if not isinstance(renamed, dict):
        return {}
    return {key: renamed[key] for key in RISK_FIELDS if key in renamed}


class RiskApiClient:
    """
    Forwards entity lookups to the risk API.

    Args:
        base_url: Risk API base URL
        api_token: Token sent in the `Token` header
        timeout: Per-request timeout in seconds
        batch_size: Concurrent lookups per bulk batch
        session: Optional pre-configured requests session
        logger: Optional logger instance
    """

    def __init__(
        self,
        base_url: str,
        api_token: str,
        timeout: int = 30,
        batch_size: int = 10,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.timeout = timeout
        self.batch_size = batch_size
        self.session = session or requests.Session()
        self.logger = logger or logging.getLogger(__name__)

    def fetch_entity(self, address: str) -> Any:
        """
        Fetch the raw risk entity for an address.

        Raises:
            RiskApiError: With the upstream status on HTTP errors, 500 otherwise
        """
        url = f"{self.base_url}/api/risk/v2/entities/{address}"
        self.logger.info(f"Forwarding request to risk API for address: {address}")
        try:
            response = self.session.get(url, headers={"Token": self.api_token}, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.HTTPError as e:
            raise self._upstream_error(e.response) from e
        except (requests.RequestException, ValueError) as e:
            self.logger.debug(f"Error processing risk assessment for {address}: {e}")
            raise RiskApiError(500, "Internal server error", DEFAULT_ERROR_MESSAGE) from e

    def assess(self, address: str) -> Dict[str, Any]:
        """Fetch, null-normalize and filter the risk entity for one address."""
        return filter_risk_fields(replace_nulls(self.fetch_entity(address)))

    def assess_many(self, addresses: List[str]) -> List[Dict[str, Any]]:
        """
        Assess addresses in bounded batches, isolating per-address failures.

        Results keep the input order. A failed lookup yields
        {"walletAddress": address, "error": message} instead of aborting the batch.
        """
        results: List[Dict[str, Any]] = []
        with ThreadPoolExecutor(max_workers=self.batch_size) as executor:
            for start in range(0, len(addresses), self.batch_size):
                batch = addresses[start:start + self.batch_size]
                results.extend(executor.map(self._assess_isolated, batch))
        return results

    def _assess_isolated(self, address: str) -> Dict[str, Any]:
        try:
            return self.assess(address)
        except RiskApiError as e:
            self.logger.debug(f"Error fetching data for address {address}: {e}")
            # Keyed on the failure only, so one outage logs once per interval
            rate_limited_log(
                f"Risk API lookups failing: {e}",
                level="error",
                logger_instance=self.logger,
            )
            return {"walletAddress": address, "error": e.upstream_message or DEFAULT_BULK_ERROR_MESSAGE}

    def _upstream_error(self, response: Optional[requests.Response]) -> RiskApiError:
        status_code = getattr(response, "status_code", None) or 500
        try:
            data = response.json() if response is not None else {}
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        self.logger.debug(f"Risk API returned {status_code}: {data}")
        return RiskApiError(
            status_code,
            data.get("error") or "API Error",
            data.get("message") or DEFAULT_ERROR_MESSAGE,
            upstream_message=data.get("message"),
        )
