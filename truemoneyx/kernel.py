"""
Kernel client for the off-chain execution endpoint.

Submits an attestation request together with the encoded function parameters
and returns the authorization bundle the contract gate expects.
"""
import itertools
import logging
import urllib.parse
from typing import Any, Dict, Optional, Protocol, Union

import requests
from pydantic import ValidationError as SchemaError
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .exceptions import KernelResponseMalformed, KernelUnavailable
from .models import AuthorizationBundle, KernelRequest
from .utils import hex_to_bytes, to_hex

REQUIRED_FIELDS = ("auth", "kernel_responses", "kernel_params")


class KernelExecutor(Protocol):
    """Anything that can turn an attestation request into an authorization bundle."""

    def submit(
        self,
        entry_id: str,
        access_token: str,
        request: KernelRequest,
        encoded_params: bytes,
    ) -> AuthorizationBundle:
        ...


def validate_endpoint_url(url_name: str, url: str) -> None:
    """
    Require https unless the host is loopback.

    Raises:
        ValueError: If the URL is not https and not local
    """
    parsed = urllib.parse.urlparse(url)
    host = parsed.hostname or ""
    is_local = host in ("localhost", "127.0.0.1", "::1")
    if parsed.scheme != "https" and not is_local:
        raise ValueError(f"{url_name} must use https:// for security (got: {parsed.scheme}://)")


class KernelClient:
    """
    JSON-RPC client for `krnl_executeKernels`.

    Exactly one HTTP round trip per submission. There is no retry: a caller
    that wants another attempt must build a new intent with a fresh external
    transaction id, otherwise two attestations exist for the same id.
    """

    RPC_METHOD = "krnl_executeKernels"

    def __init__(
        self,
        rpc_url: str,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the KernelClient

        Args:
            rpc_url: Kernel RPC endpoint URL
            timeout: Timeout for the HTTP request in seconds
            session: Optional pre-configured requests session
            logger: Optional logger instance to use for debug/info logging

        Raises:
            ValueError: If the URL doesn't use https (unless it's localhost/127.0.0.1)
        """
        validate_endpoint_url("rpc_url", rpc_url)
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self._ids = itertools.count(1)

        if session is None:
            session = requests.Session()
            no_retries = Retry(total=0, raise_on_status=False)
            session.mount("http://", HTTPAdapter(max_retries=no_retries))
            session.mount("https://", HTTPAdapter(max_retries=no_retries))
        self.session = session

    def submit(
        self,
        entry_id: str,
        access_token: str,
        request: KernelRequest,
        encoded_params: Union[bytes, str],
    ) -> AuthorizationBundle:
        """
        Execute the kernels for one transfer intent.

        Args:
            entry_id: Registered entry id of the application
            access_token: Access token for the entry
            request: Attestation request built for the intent
            encoded_params: ABI-encoded function parameters to authorize

        Returns:
            AuthorizationBundle to pass unmodified to the contract

        Raises:
            KernelUnavailable: On network failure or an endpoint-reported error
            KernelResponseMalformed: If the response lacks a valid bundle
        """
        params_hex = to_hex(hex_to_bytes(encoded_params))
        rpc_request = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": self.RPC_METHOD,
            "params": [entry_id, access_token, request.to_wire(), params_hex],
        }
        self.logger.debug(f"Submitting kernel request: {self._sanitize(rpc_request)}")

        try:
            response = self.session.post(self.rpc_url, json=rpc_request, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            self.logger.error(f"Kernel request failed: {e}")
            raise KernelUnavailable(f"Kernel request failed: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            self.logger.error(f"Invalid JSON response from kernel: {e}")
            raise KernelResponseMalformed(f"Invalid JSON response from kernel: {e}") from e

        if not isinstance(payload, dict):
            raise KernelResponseMalformed(f"Unexpected kernel response: {payload!r}")

        if payload.get("error") is not None:
            error = payload["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            self.logger.error(f"Kernel returned error: {message}")
            raise KernelUnavailable(f"Kernel returned error: {message}")

        return self._parse_bundle(payload.get("result"))

    def _parse_bundle(self, result: Any) -> AuthorizationBundle:
        if not isinstance(result, dict):
            raise KernelResponseMalformed(f"Kernel response has no result object: {result!r}")

        missing = [field for field in REQUIRED_FIELDS if not result.get(field)]
        if missing:
            raise KernelResponseMalformed(f"Kernel response missing fields: {', '.join(missing)}")

        try:
            bundle = AuthorizationBundle.model_validate(
                {field: result[field] for field in REQUIRED_FIELDS}
            )
        except SchemaError as e:
            raise KernelResponseMalformed(f"Invalid authorization bundle: {e}") from e

        self.logger.info(f"Received authorization bundle ({len(bundle.auth_bytes)} auth bytes)")
        return bundle

    def _sanitize(self, rpc_request: Dict[str, Any]) -> Dict[str, Any]:
        """
        Remove sensitive data from a request for logging

        Args:
            rpc_request: JSON-RPC request about to be sent

        Returns:
            Copy with the access token redacted
        """
        result = rpc_request.copy()
        params = list(result.get("params", []))
        if len(params) > 1:
            params[1] = f"[REDACTED - {len(str(params[1]))} chars]"
        result["params"] = params
        return result
