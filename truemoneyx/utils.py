"""
Utility functions for the TrueMoneyX SDK.

Token amounts, address checks, transaction identifiers and the ABI layouts
shared by the client, the kernel and the contract gate.
"""
import re
import secrets
import string
import time
from decimal import Decimal, InvalidOperation, localcontext
from typing import Any, List, Optional, Tuple, Union

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from web3 import Web3

from .exceptions import ValidationError

TOKEN_DECIMALS = 18
TOKEN_SCALE = Decimal(10) ** TOKEN_DECIMALS

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")

TRANSFER_PARAM_TYPES = ["address", "uint256"]
UNSTAKE_PARAM_TYPES = ["string", "uint256", "address"]
KERNEL_RESPONSES_TYPES = ["(uint256,bytes,string)[]"]
RISK_DECISION_TYPES = [
    "(string,string,string,string,string,uint256,string,uint256,uint256)"
]

_TX_ID_ALPHABET = string.ascii_lowercase + string.digits

Amount = Union[str, int, float, Decimal]


def to_token_units(amount: Amount) -> int:
    """
    Scale a decimal token amount to integer units (18 decimals).

    Args:
        amount: Amount in whole tokens, e.g. "1.5"

    Returns:
        Amount in token units

    Raises:
        ValidationError: If the amount is not a positive number with at most 18 decimals
    """
    if isinstance(amount, bool) or amount is None:
        raise ValidationError(f"Amount must be a number, got {amount!r}")
    try:
        # str() first so floats keep their shortest repr (0.1 -> "0.1")
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Amount must be a number, got {amount!r}")

    if not value.is_finite():
        raise ValidationError(f"Amount must be finite, got {amount!r}")
    if value <= 0:
        raise ValidationError("Amount must be greater than 0")

    with localcontext() as ctx:
        ctx.prec = 100
        scaled = value * TOKEN_SCALE
    if scaled != scaled.to_integral_value():
        raise ValidationError(f"Amount has more than {TOKEN_DECIMALS} decimal places: {amount!r}")
    return int(scaled)


def from_token_units(units: int) -> Decimal:
    """Convert integer token units back to a decimal token amount."""
    with localcontext() as ctx:
        ctx.prec = 100  # uint256 has 78 digits
        value = (Decimal(int(units)) / TOKEN_SCALE).normalize()
        if value.as_tuple().exponent > 0:
            value = value.quantize(Decimal(1))
    return value


def is_eth_address(value: Any) -> bool:
    """Check for the `0x` + 40 hex characters address format."""
    return isinstance(value, str) and bool(ADDRESS_PATTERN.fullmatch(value))


def require_address(value: Any, field: str = "address") -> str:
    """
    Validate an address and return its checksum form.

    Raises:
        ValidationError: If the value is missing or not a valid address
    """
    if not value:
        raise ValidationError(f"{field} is required")
    if not is_eth_address(value):
        raise ValidationError(f"Invalid {field} format: {value!r}")
    return Web3.to_checksum_address(value)


def generate_transaction_id(now_ms: Optional[int] = None) -> str:
    """Generate an external transaction id: ``tx-<millis>-<8 alnum>``."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_TX_ID_ALPHABET) for _ in range(8))
    return f"tx-{now_ms}-{suffix}"


def to_hex(data: bytes) -> str:
    return "0x" + bytes(data).hex()


def hex_to_bytes(value: Union[str, bytes]) -> bytes:
    """
    Convert a hex string (with or without 0x prefix) to bytes.

    Raises:
        ValueError: If the string is not valid hex
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if value.startswith(("0x", "0X")):
        value = value[2:]
    return bytes.fromhex(value)


def encode_transfer_params(recipient: str, units: int) -> bytes:
    """ABI-encode the (recipient, amount) pair a transfer authorization covers."""
    return encode(TRANSFER_PARAM_TYPES, [Web3.to_checksum_address(recipient), int(units)])


def decode_transfer_params(blob: bytes) -> Tuple[str, int]:
    recipient, units = decode(TRANSFER_PARAM_TYPES, blob)
    return Web3.to_checksum_address(recipient), units


def encode_unstake_params(external_transaction_id: str, units: int, beneficiary: str) -> bytes:
    """ABI-encode the (externalTransactionId, amount, beneficiary) triple for unstaking."""
    return encode(
        UNSTAKE_PARAM_TYPES,
        [external_transaction_id, int(units), Web3.to_checksum_address(beneficiary)],
    )


def decode_unstake_params(blob: bytes) -> Tuple[str, int, str]:
    tx_id, units, beneficiary = decode(UNSTAKE_PARAM_TYPES, blob)
    return tx_id, units, Web3.to_checksum_address(beneficiary)


def encode_kernel_responses(responses: List[Tuple[int, bytes, str]]) -> bytes:
    """ABI-encode a list of (kernelId, result, err) kernel responses."""
    return encode(KERNEL_RESPONSES_TYPES, [[(int(k), bytes(r), e) for k, r, e in responses]])


def decode_kernel_responses(blob: bytes) -> List[Tuple[int, bytes, str]]:
    """
    Decode ABI-encoded kernel responses.

    Raises:
        ValueError: If the blob is not a valid (uint256,bytes,string)[] encoding
    """
    try:
        (responses,) = decode(KERNEL_RESPONSES_TYPES, blob)
    except (DecodingError, UnicodeDecodeError) as e:
        raise ValueError(f"Invalid kernel responses encoding: {e}") from e
    return [(k, bytes(r), e) for k, r, e in responses]


def encode_risk_decision(decision: Any) -> bytes:
    """ABI-encode a RiskDecision as the compliance kernel returns it."""
    return encode(RISK_DECISION_TYPES, [(
        decision.id,
        decision.external_transaction_id,
        decision.customer_id,
        decision.status,
        decision.risk_level,
        int(decision.risk_score),
        decision.reason,
        int(decision.created_at),
        int(decision.updated_at),
    )])


def decode_risk_decision(blob: bytes) -> Tuple[Any, ...]:
    """
    Decode a compliance kernel result into its raw tuple.

    Raises:
        ValueError: If the blob is not a valid risk decision encoding
    """
    try:
        (fields,) = decode(RISK_DECISION_TYPES, blob)
    except (DecodingError, UnicodeDecodeError) as e:
        raise ValueError(f"Invalid risk decision encoding: {e}") from e
    return fields
