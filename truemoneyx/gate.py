"""
Reference model of the risk-gated token contract.

`TrueMoneyGate` reproduces the contract's authorization and decision logic in
process. Each public call is atomic: state is snapshotted first and restored
if any check fails, the way a reverted transaction leaves the chain untouched.
"""
import copy
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from web3 import Web3

from .authority import (
    data_digest,
    decode_auth,
    kernel_params_digest,
    kernel_responses_digest,
    recover_signer,
)
from .exceptions import AuthorizationMismatch, ChainSubmissionError, RiskDenied
from .models import AuthorizationBundle, RiskDecision, TransferAssessment
from .utils import encode_transfer_params, encode_unstake_params, require_address

logger = logging.getLogger(__name__)

UINT256_MAX = 2**256 - 1
RISK_DENIED_REASON = "Transfer denied due to risk assessment"
AUTHORIZATION_REASONS = (
    "Invalid authorization encoding",
    "Invalid signature for kernel responses",
    "Invalid kernel params digest",
    "Invalid signature for function call",
    "Invalid final opinion",
    "External transaction id mismatch",
    "Authorization already used",
)


@dataclass(frozen=True)
class ContractEvent:
    name: str
    args: Dict[str, Any]


@dataclass
class _State:
    balances: Dict[str, int] = field(default_factory=dict)
    allowances: Dict[Tuple[str, str], int] = field(default_factory=dict)
    staker_balances: Dict[str, int] = field(default_factory=dict)
    contract_balance: int = 0
    payouts: Dict[str, int] = field(default_factory=dict)
    total_supply: int = 0
    assessments: Dict[bytes, TransferAssessment] = field(default_factory=dict)
    used_tokens: Set[bytes] = field(default_factory=set)
    events: List[ContractEvent] = field(default_factory=list)


def assessment_key(sender: str, recipient: str, amount: int, timestamp: int) -> bytes:
    """Lookup key of a stored assessment: keccak(from, to, amount, timestamp)."""
    return bytes(Web3.solidity_keccak(
        ["address", "address", "uint256", "uint256"],
        [sender, recipient, amount, timestamp],
    ))


class TrueMoneyGate:
    """
    In-process TrueMoneyX token with kernel-gated transfers.

    Args:
        authority: Address of the trusted attesting authority
        kernel_id: Identifier of the compliance kernel whose response is decoded
        name: Token name
        symbol: Token symbol
        max_risk_score: Optional upper bound on an approved decision's score
        blocked_risk_levels: Risk levels denied even when approved
        single_use_authorizations: Reject a second use of the same signature token
        clock: Returns the block timestamp in seconds
    """

    decimals = 18

    def __init__(
        self,
        authority: str,
        kernel_id: int,
        name: str = "TrueMoneyX",
        symbol: str = "TMX",
        max_risk_score: Optional[int] = None,
        blocked_risk_levels: Iterable[str] = (),
        single_use_authorizations: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        self.authority = require_address(authority, "authority address")
        self.kernel_id = int(kernel_id)
        self.name = name
        self.symbol = symbol
        self.max_risk_score = max_risk_score
        self.blocked_risk_levels = frozenset(blocked_risk_levels)
        self.single_use_authorizations = single_use_authorizations
        self.clock = clock
        self._state = _State()

    # ------------------------------------------------------------------
    # Views

    @property
    def events(self) -> List[ContractEvent]:
        return list(self._state.events)

    def total_supply(self) -> int:
        return self._state.total_supply

    def balance_of(self, account: str) -> int:
        return self._state.balances.get(require_address(account), 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._state.allowances.get((require_address(owner), require_address(spender)), 0)

    def get_staker_balance(self, account: str) -> int:
        return self._state.staker_balances.get(require_address(account), 0)

    def get_contract_balance(self) -> int:
        return self._state.contract_balance

    def payouts_of(self, account: str) -> int:
        """Native value paid out to `account` by unstaking."""
        return self._state.payouts.get(require_address(account), 0)

    def get_transfer_assessment(self, key: bytes) -> Optional[TransferAssessment]:
        return self._state.assessments.get(bytes(key))

    def check_transfer_allowed(self, decision: RiskDecision) -> bool:
        """Only an approved decision passes; optional thresholds narrow it further."""
        if not decision.is_approved:
            return False
        if self.max_risk_score is not None and decision.risk_score > self.max_risk_score:
            return False
        if decision.risk_level in self.blocked_risk_levels:
            return False
        return True

    # ------------------------------------------------------------------
    # ERC-20 surface

    def mint(self, account: str, amount: int) -> None:
        account = require_address(account)
        self._check_uint256(amount)
        with self._transaction():
            self._state.balances[account] = self._state.balances.get(account, 0) + amount
            self._state.total_supply += amount
            self._emit("Transfer", sender=None, recipient=account, amount=amount)

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        owner, spender = require_address(owner), require_address(spender)
        self._check_uint256(amount)
        with self._transaction():
            self._state.allowances[(owner, spender)] = amount
            self._emit("Approval", owner=owner, spender=spender, amount=amount)
        return True

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        raise ChainSubmissionError(
            "Use transferWithKRNL instead", revert_reason="Use transferWithKRNL instead"
        )

    def transfer_from(self, sender: str, owner: str, to: str, amount: int) -> bool:
        raise ChainSubmissionError(
            "Use transferFromWithKRNL instead", revert_reason="Use transferFromWithKRNL instead"
        )

    # ------------------------------------------------------------------
    # Gated entry points

    def transfer_with_krnl(
        self, sender: str, to: str, amount: int, bundle: AuthorizationBundle
    ) -> bool:
        """
        Transfer `amount` units from `sender` to `to` under a kernel authorization.

        Raises:
            AuthorizationMismatch: If the bundle does not cover (to, amount) for sender
            RiskDenied: If the compliance decision does not allow the transfer
            ChainSubmissionError: If the balance is insufficient
        """
        sender, to = require_address(sender), require_address(to)
        self._check_uint256(amount)
        with self._transaction():
            self._authorize(sender, encode_transfer_params(to, amount), bundle)
            self._assess_and_move(sender, sender, to, amount, bundle)
        return True

    def transfer_from_with_krnl(
        self, sender: str, owner: str, to: str, amount: int, bundle: AuthorizationBundle
    ) -> bool:
        """Like transfer_with_krnl, spending `sender`'s allowance over `owner`'s tokens."""
        sender, owner, to = require_address(sender), require_address(owner), require_address(to)
        self._check_uint256(amount)
        with self._transaction():
            self._authorize(sender, encode_transfer_params(to, amount), bundle)
            allowed = self._state.allowances.get((owner, sender), 0)
            if allowed < amount:
                self._revert("ERC20: insufficient allowance")
            self._state.allowances[(owner, sender)] = allowed - amount
            self._assess_and_move(sender, owner, to, amount, bundle)
        return True

    def stake(self, sender: str, value: int) -> None:
        sender = require_address(sender)
        if value <= 0:
            self._revert("Must stake a positive amount")
        self._check_uint256(value)
        with self._transaction():
            self._state.staker_balances[sender] = self._state.staker_balances.get(sender, 0) + value
            self._state.contract_balance += value
            self._emit("Staked", staker=sender, amount=value)

    def unstake(
        self,
        sender: str,
        bundle: AuthorizationBundle,
        external_transaction_id: str,
        amount: int,
        beneficiary: str,
    ) -> None:
        """
        Pay `amount` of `sender`'s stake to `beneficiary` under a kernel authorization.

        The decision must name the same external transaction id as the call.
        """
        sender, beneficiary = require_address(sender), require_address(beneficiary)
        self._check_uint256(amount)
        with self._transaction():
            self._authorize(
                sender, encode_unstake_params(external_transaction_id, amount, beneficiary), bundle
            )
            decision = self._decision(bundle)
            if decision.external_transaction_id != external_transaction_id:
                raise AuthorizationMismatch(
                    "External transaction id mismatch",
                    revert_reason="External transaction id mismatch",
                )
            if not self.check_transfer_allowed(decision):
                self._deny(decision)

            staked = self._state.staker_balances.get(sender, 0)
            if staked < amount:
                self._revert("Insufficient staked balance")
            self._state.staker_balances[sender] = staked - amount
            self._state.contract_balance -= amount
            self._state.payouts[beneficiary] = self._state.payouts.get(beneficiary, 0) + amount
            self._emit(
                "Unstaked",
                staker=sender,
                beneficiary=beneficiary,
                amount=amount,
                external_transaction_id=external_transaction_id,
                status=decision.status,
            )

    # ------------------------------------------------------------------
    # Internals

    def _authorize(self, sender: str, function_params: bytes, bundle: AuthorizationBundle) -> None:
        """Verify the bundle covers exactly `function_params` called by `sender`."""
        try:
            token = decode_auth(bundle.auth_bytes)
        except ValueError:
            self._mismatch("Invalid authorization encoding")

        try:
            responses_signer = recover_signer(
                kernel_responses_digest(bundle.kernel_responses_bytes, sender),
                token.kernel_response_signature,
            )
        except ValueError:
            responses_signer = None
        if responses_signer != self.authority:
            self._mismatch("Invalid signature for kernel responses")

        params_digest = kernel_params_digest(bundle.kernel_params_bytes, sender)
        if params_digest != token.kernel_params_digest:
            self._mismatch("Invalid kernel params digest")

        try:
            call_signer = recover_signer(
                data_digest(function_params, params_digest, sender, token.nonce, token.final_opinion),
                token.signature_token,
            )
        except ValueError:
            call_signer = None
        if call_signer != self.authority:
            self._mismatch("Invalid signature for function call")

        if not token.final_opinion:
            self._mismatch("Invalid final opinion")

        if self.single_use_authorizations:
            if token.signature_token in self._state.used_tokens:
                self._mismatch("Authorization already used")
            self._state.used_tokens.add(token.signature_token)

    def _decision(self, bundle: AuthorizationBundle) -> RiskDecision:
        try:
            responses = bundle.decoded_responses()
        except ValueError:
            responses = []
        for response in responses:
            if response.kernel_id != self.kernel_id:
                continue
            if response.err:
                logger.warning(f"Compliance kernel reported error: {response.err}")
                break
            try:
                return RiskDecision.decode(response.result)
            except ValueError as e:
                logger.warning(f"Undecodable compliance decision: {e}")
                break
        raise RiskDenied(RISK_DENIED_REASON, revert_reason=RISK_DENIED_REASON)

    def _assess_and_move(
        self, sender: str, owner: str, to: str, amount: int, bundle: AuthorizationBundle
    ) -> None:
        decision = self._decision(bundle)
        allowed = self.check_transfer_allowed(decision)
        if not allowed:
            self._deny(decision)

        balance = self._state.balances.get(owner, 0)
        if balance < amount:
            self._revert("ERC20: transfer amount exceeds balance")
        self._state.balances[owner] = balance - amount
        self._state.balances[to] = self._state.balances.get(to, 0) + amount

        timestamp = int(self.clock())
        self._state.assessments[assessment_key(owner, to, amount, timestamp)] = TransferAssessment(
            sender=owner,
            recipient=to,
            amount=amount,
            decision=decision,
            allowed=True,
            timestamp=timestamp,
        )
        self._emit("Transfer", sender=owner, recipient=to, amount=amount)
        self._emit(
            "TransferAssessed",
            sender=owner,
            recipient=to,
            amount=amount,
            status=decision.status,
            allowed=True,
            timestamp=timestamp,
        )

    def _deny(self, decision: RiskDecision) -> None:
        logger.info(
            f"Transfer denied: status={decision.status} level={decision.risk_level} "
            f"score={decision.risk_score} reason={decision.reason or '-'}"
        )
        raise RiskDenied(
            f"{RISK_DENIED_REASON}: {decision.reason}" if decision.reason else RISK_DENIED_REASON,
            revert_reason=RISK_DENIED_REASON,
        )

    def _mismatch(self, reason: str) -> None:
        raise AuthorizationMismatch(reason, revert_reason=reason)

    def _revert(self, reason: str) -> None:
        raise ChainSubmissionError(reason, revert_reason=reason)

    def _check_uint256(self, amount: int) -> None:
        if not 0 <= amount <= UINT256_MAX:
            self._revert("Amount out of uint256 range")

    def _emit(self, name: str, **args: Any) -> None:
        self._state.events.append(ContractEvent(name=name, args=args))

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        snapshot = copy.deepcopy(self._state)
        try:
            yield
        except Exception:
            self._state = snapshot
            raise
