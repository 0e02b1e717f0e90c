"""
Attestation request builder.

Turns a proposed transfer into the risk-assessment request the compliance
kernel scores, plus the ABI-encoded parameter blob the contract gate will
re-derive from the executed call.
"""
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from .exceptions import ValidationError
from .models import (
    AttestationBody,
    Counterparty,
    Institution,
    KernelInvocation,
    KernelParameters,
    KernelRequest,
    PreparedTransfer,
    TransactionInfo,
    TransactionMethod,
    TransferIntent,
)
from .utils import (
    Amount,
    encode_transfer_params,
    encode_unstake_params,
    from_token_units,
    generate_transaction_id,
    require_address,
    to_token_units,
)

logger = logging.getLogger(__name__)

# Fixed demonstration metadata sent with every assessment
DEMO_CUSTOMER_ID = "78d29773-8aa6-4b33-aa53-2ffca3adbe7e"
DEMO_TRANSACTION_HASH = "0x89c195a8b61fb201ce1fb31c6c5c28d3915d49bbb83b86d634f5646e02d6b323"
DEMO_ORIGINATOR = Counterparty(
    name="Bob Smith",
    transaction_method=TransactionMethod(account_id="0x7B5f55aE4f1Cb8a6bE0a9cD1FeE8F8C4cCfF9a3D"),
)
DEMO_BENEFICIARY = Counterparty(
    name="Alice Carter",
    transaction_method=TransactionMethod(account_id="0x4E6f1cB8C7A2E3A2DeAb69c4e0A9F798D6FcF8B8"),
    institution=Institution(name="Binance", code="BINANCE123"),
)


class AttestationRequestBuilder:
    """
    Builds kernel requests for token transfers and unstaking.

    Construction is pure: the only inputs are the arguments, the clock and the
    random suffix of generated transaction ids. The encoded parameter blob
    depends only on the recipient/beneficiary, the amount and (for unstaking)
    the transaction id, so the gate can re-derive it byte for byte.
    """

    def __init__(
        self,
        kernel_id: int,
        customer_id: str = DEMO_CUSTOMER_ID,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            kernel_id: Identifier of the compliance kernel
            customer_id: Customer id reported to the compliance provider
            clock: Returns the current time in seconds since the epoch
        """
        self.kernel_id = int(kernel_id)
        self.customer_id = customer_id
        self.clock = clock

    def build_transfer(
        self,
        sender: str,
        recipient: str,
        amount: Amount,
        external_transaction_id: Optional[str] = None,
    ) -> PreparedTransfer:
        """
        Build the request for a gated token transfer.

        Args:
            sender: Address submitting the transfer (msg.sender on chain)
            recipient: Address receiving the tokens
            amount: Amount in whole tokens
            external_transaction_id: Reuse an id instead of generating one

        Returns:
            PreparedTransfer whose encoded params are abi.encode(recipient, units)

        Raises:
            ValidationError: If an address is missing/invalid or amount <= 0
        """
        sender = require_address(sender, "sender address")
        recipient = require_address(recipient, "recipient address")
        units = to_token_units(amount)
        intent = self._intent(sender, recipient, units, external_transaction_id)

        encoded = encode_transfer_params(recipient, units)
        logger.debug(f"Prepared transfer {intent.external_transaction_id}: {intent.amount} to {recipient}")
        return PreparedTransfer(intent=intent, request=self._request(intent), encoded_params=encoded)

    def build_unstake(
        self,
        sender: str,
        amount: Amount,
        beneficiary: Optional[str] = None,
        external_transaction_id: Optional[str] = None,
    ) -> PreparedTransfer:
        """
        Build the request for withdrawing staked value.

        The beneficiary defaults to the sender. Encoded params are
        abi.encode(externalTransactionId, units, beneficiary).
        """
        sender = require_address(sender, "sender address")
        beneficiary = require_address(beneficiary or sender, "beneficiary address")
        units = to_token_units(amount)
        intent = self._intent(sender, beneficiary, units, external_transaction_id)

        encoded = encode_unstake_params(intent.external_transaction_id, units, beneficiary)
        logger.debug(f"Prepared unstake {intent.external_transaction_id}: {intent.amount} to {beneficiary}")
        return PreparedTransfer(intent=intent, request=self._request(intent), encoded_params=encoded)

    def _intent(
        self,
        sender: str,
        recipient: str,
        units: int,
        external_transaction_id: Optional[str],
    ) -> TransferIntent:
        if external_transaction_id is not None and not external_transaction_id.strip():
            raise ValidationError("external transaction id must not be empty")
        tx_id = external_transaction_id or generate_transaction_id(int(self.clock() * 1000))
        return TransferIntent(
            sender=sender,
            recipient=recipient,
            amount=from_token_units(units),
            units=units,
            external_transaction_id=tx_id,
        )

    def _request(self, intent: TransferIntent) -> KernelRequest:
        now = datetime.fromtimestamp(self.clock(), tz=timezone.utc)
        body = AttestationBody(
            customer_id=self.customer_id,
            external_transaction_id=intent.external_transaction_id,
            transaction_date=now.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            transaction_info=TransactionInfo(
                hash=DEMO_TRANSACTION_HASH,
                amount=float(intent.amount),
            ),
            originator=DEMO_ORIGINATOR,
            beneficiary=DEMO_BENEFICIARY,
        )
        return KernelRequest(
            sender_address=intent.sender,
            kernel_payload={
                str(self.kernel_id): KernelInvocation(parameters=KernelParameters(body=body)),
            },
        )
