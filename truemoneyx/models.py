"""
Data models for the TrueMoneyX SDK.

Wire payloads use the camelCase / snake_case names the kernel service and the
contract expect; Python attributes are snake_case throughout.
"""
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .utils import (
    decode_kernel_responses,
    decode_risk_decision,
    encode_risk_decision,
    hex_to_bytes,
    to_hex,
)


class RiskStatus(str, Enum):
    """Verdicts the compliance kernel can return."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    UNDER_REVIEW = "under_review"


class RiskLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class TransferIntent(_WireModel):
    """A proposed transfer, fixed once it is submitted to the kernel."""
    sender: str
    recipient: str
    amount: Decimal
    units: int
    external_transaction_id: str


class TransactionFees(_WireModel):
    network_fee_amount: float = Field(0.002, alias="networkFeeAmount")
    platform_fee_amount: float = Field(0.001, alias="platformFeeAmount")
    network_fee_currency_code: str = Field("ETH", alias="networkFeeCurrencyCode")
    platform_fee_currency_code: str = Field("ETH", alias="platformFeeCurrencyCode")


class TransactionInfo(_WireModel):
    direction: str = "IN"
    currency_code: str = Field("ETH", alias="currencyCode")
    blockchain: str = "eip155"
    chain_id: str = Field("1", alias="chainId")
    hash: str
    amount: float
    fees: TransactionFees = Field(default_factory=TransactionFees)


class TransactionMethod(_WireModel):
    type: str = "crypto"
    account_id: str = Field(..., alias="accountId")


class Institution(_WireModel):
    name: str
    code: str


class Counterparty(_WireModel):
    type: str = "individual"
    name: str
    transaction_method: TransactionMethod = Field(..., alias="transactionMethod")
    institution: Optional[Institution] = None


class AttestationBody(_WireModel):
    """Risk-assessment request body sent to the compliance kernel."""
    customer_id: str = Field(..., alias="customerId")
    external_transaction_id: str = Field(..., alias="externalTransactionId")
    transaction_date: str = Field(..., alias="transactionDate")
    transaction_type: str = Field("crypto", alias="transactionType")
    transaction_sub_type: str = Field("wallet transfer", alias="transactionSubType")
    transaction_info: TransactionInfo = Field(..., alias="transactionInfo")
    originator: Counterparty
    beneficiary: Counterparty


class KernelParameters(_WireModel):
    query: Dict[str, str] = Field(default_factory=lambda: {"waitForWebhook": "true"})
    header: Dict[str, str] = Field(default_factory=dict)
    body: AttestationBody


class KernelInvocation(_WireModel):
    parameters: KernelParameters


class KernelRequest(_WireModel):
    """The `requestBody` argument of executeKernels."""
    sender_address: str = Field(..., alias="senderAddress")
    kernel_payload: Dict[str, KernelInvocation] = Field(..., alias="kernelPayload")

    def body_for(self, kernel_id: int) -> AttestationBody:
        return self.kernel_payload[str(kernel_id)].parameters.body

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class PreparedTransfer(_WireModel):
    """Everything the kernel needs for one intent, built once and reused."""
    intent: TransferIntent
    request: KernelRequest
    encoded_params: bytes

    @property
    def external_transaction_id(self) -> str:
        return self.intent.external_transaction_id


class KernelResponse(_WireModel):
    kernel_id: int
    result: bytes
    err: str = ""


def _require_hex(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return to_hex(value)
    if not isinstance(value, str):
        raise ValueError(f"expected hex string, got {type(value).__name__}")
    return to_hex(hex_to_bytes(value))


class AuthorizationBundle(_WireModel):
    """
    The signed capability returned by the kernel service.

    Opaque to the client: it is passed unmodified to the contract call.
    """
    auth: str
    kernel_responses: str
    kernel_params: str

    @field_validator("auth", "kernel_responses", "kernel_params", mode="before")
    @classmethod
    def check_hex(cls, value: Any) -> str:
        return _require_hex(value)

    @property
    def auth_bytes(self) -> bytes:
        return hex_to_bytes(self.auth)

    @property
    def kernel_responses_bytes(self) -> bytes:
        return hex_to_bytes(self.kernel_responses)

    @property
    def kernel_params_bytes(self) -> bytes:
        return hex_to_bytes(self.kernel_params)

    def decoded_responses(self) -> List[KernelResponse]:
        return [
            KernelResponse(kernel_id=k, result=r, err=e)
            for k, r, e in decode_kernel_responses(self.kernel_responses_bytes)
        ]

    def to_contract_tuple(self) -> Tuple[bytes, bytes, bytes]:
        """Shape expected by the contract's KrnlPayload struct argument."""
        return (self.auth_bytes, self.kernel_responses_bytes, self.kernel_params_bytes)


class RiskDecision(_WireModel):
    """Compliance verdict decoded from the kernel response."""
    id: str = ""
    external_transaction_id: str = ""
    customer_id: str = ""
    status: str
    risk_level: str
    risk_score: int
    reason: str = ""
    created_at: int = 0
    updated_at: int = 0

    @property
    def is_approved(self) -> bool:
        # string-exact, as the contract compares it
        return self.status == RiskStatus.APPROVED.value

    def encode(self) -> bytes:
        return encode_risk_decision(self)

    @classmethod
    def decode(cls, blob: bytes) -> "RiskDecision":
        (id_, ext_id, customer_id, status, level, score,
         reason, created_at, updated_at) = decode_risk_decision(blob)
        return cls(
            id=id_,
            external_transaction_id=ext_id,
            customer_id=customer_id,
            status=status,
            risk_level=level,
            risk_score=score,
            reason=reason,
            created_at=created_at,
            updated_at=updated_at,
        )


class TransferAssessment(_WireModel):
    """Decision stored by the gate, keyed by hash(from, to, amount, timestamp)."""
    sender: str
    recipient: str
    amount: int
    decision: RiskDecision
    allowed: bool
    timestamp: int


class TxReceipt(BaseModel):
    """Transaction receipt from the blockchain"""
    model_config = ConfigDict(populate_by_name=True)

    tx_hash: str = Field(..., alias="transactionHash")
    block_number: int = Field(..., alias="blockNumber")
    block_hash: str = Field(..., alias="blockHash")
    status: int
    gas_used: int = Field(..., alias="gasUsed")
    from_address: str = Field(..., alias="from")
    to_address: Optional[str] = Field(None, alias="to")
    logs: List[Dict[str, Any]] = Field(default_factory=list)
