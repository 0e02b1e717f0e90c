"""
In-process kernel for development and testing.

`LocalKernel` stands in for the external kernel service: it scores the
attestation request, encodes the decision as the compliance kernel response
and signs the bundle with a local authority key. Pair it with
`TrueMoneyGate(authority=kernel.authority_address, ...)` to exercise the whole
authorize-then-transfer flow offline.
"""
import itertools
import logging
import time
from typing import Callable, Optional, Union

from eth_account import Account

from .authority import issue_auth
from .exceptions import KernelUnavailable
from .models import AuthorizationBundle, KernelRequest, RiskDecision, RiskLevel, RiskStatus
from .utils import encode_kernel_responses, hex_to_bytes, to_hex

logger = logging.getLogger(__name__)

Decider = Callable[[KernelRequest], RiskDecision]


class LocalKernel:
    """
    A KernelExecutor that signs its own authorizations.

    Args:
        authority_key: Private key of the attesting authority
        kernel_id: Identifier under which the decision is returned
        decide: Scores a request; defaults to approved / Low / 15
        access_token: When set, submissions with another token are refused
        clock: Returns the current time in seconds
    """

    def __init__(
        self,
        authority_key: Union[str, bytes],
        kernel_id: int,
        decide: Optional[Decider] = None,
        access_token: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.authority_key = authority_key
        self.authority_address = Account.from_key(authority_key).address
        self.kernel_id = int(kernel_id)
        self.decide = decide or self.approve_all
        self.access_token = access_token
        self.clock = clock
        self._nonces = itertools.count(1)

    def approve_all(self, request: KernelRequest) -> RiskDecision:
        return self.decision_for(request, RiskStatus.APPROVED, RiskLevel.LOW, 15)

    def decision_for(
        self,
        request: KernelRequest,
        status: Union[RiskStatus, str],
        level: Union[RiskLevel, str],
        score: int,
        reason: str = "",
    ) -> RiskDecision:
        """Build a decision carrying the request's identifiers."""
        body = request.body_for(self.kernel_id)
        now = int(self.clock())
        return RiskDecision(
            id=f"assessment-{body.external_transaction_id}",
            external_transaction_id=body.external_transaction_id,
            customer_id=body.customer_id,
            status=getattr(status, "value", status),
            risk_level=getattr(level, "value", level),
            risk_score=score,
            reason=reason,
            created_at=now,
            updated_at=now,
        )

    def submit(
        self,
        entry_id: str,
        access_token: str,
        request: KernelRequest,
        encoded_params: Union[bytes, str],
    ) -> AuthorizationBundle:
        if self.access_token is not None and access_token != self.access_token:
            raise KernelUnavailable("Kernel returned error: invalid access token")
        if str(self.kernel_id) not in request.kernel_payload:
            raise KernelUnavailable(f"Kernel returned error: no payload for kernel {self.kernel_id}")

        decision = self.decide(request)
        responses = encode_kernel_responses([(self.kernel_id, decision.encode(), "")])
        kernel_params = request.model_dump_json(by_alias=True).encode("utf-8")
        nonce = next(self._nonces)

        auth = issue_auth(
            self.authority_key,
            sender=request.sender_address,
            function_params=hex_to_bytes(encoded_params),
            kernel_responses=responses,
            kernel_params=kernel_params,
            nonce=nonce,
        )
        logger.debug(
            f"Local kernel {self.kernel_id} issued nonce {nonce} for entry {entry_id}: {decision.status}"
        )
        return AuthorizationBundle(
            auth=to_hex(auth),
            kernel_responses=to_hex(responses),
            kernel_params=to_hex(kernel_params),
        )
