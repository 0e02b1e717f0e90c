"""
TrueMoneyClient - orchestrates the authorize-then-transfer flow.
"""
import logging
from decimal import Decimal
from typing import Optional

from .attestation import AttestationRequestBuilder
from .config import ClientSettings
from .kernel import KernelClient, KernelExecutor
from .models import AuthorizationBundle, PreparedTransfer, TxReceipt
from .relay import Signer, TokenRelay
from .utils import Amount, from_token_units, require_address, to_token_units


class TrueMoneyClient:
    """
    Client for risk-gated TrueMoneyX transfers.

    This client handles:
    1. Building the attestation request for a transfer intent
    2. Obtaining an authorization bundle from the kernel service
    3. Submitting the authorized call and waiting for confirmation

    Each step runs once, in order. Nothing is retried: a failed attempt must
    be repeated by the caller with a new intent.
    """

    def __init__(
        self,
        settings: ClientSettings,
        signer: Optional[Signer] = None,
        kernel: Optional[KernelExecutor] = None,
        relay: Optional[TokenRelay] = None,
        builder: Optional[AttestationRequestBuilder] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the TrueMoneyClient

        Args:
            settings: Kernel and chain configuration
            signer: Account or custom signer (required for transactions)
            kernel: Kernel executor (defaults to a KernelClient on settings.kernel_rpc_url)
            relay: Token relay (defaults to a TokenRelay on settings.rpc_url)
            builder: Attestation request builder (defaults to settings.kernel_id)
            logger: Optional logger instance to use for debug/info logging
        """
        self.settings = settings
        self.signer = signer
        self.logger = logger or logging.getLogger(__name__)
        self.kernel = kernel or KernelClient(settings.kernel_rpc_url, logger=self.logger)
        self.relay = relay or TokenRelay(
            settings.rpc_url, settings.contract_address, signer=signer, logger=self.logger
        )
        self.builder = builder or AttestationRequestBuilder(settings.kernel_id)

    @property
    def address(self) -> str:
        """
        Get the account address

        Raises:
            ValueError: If no signer is available
        """
        if self.signer is None:
            raise ValueError("No signer available")
        return self.signer.address

    def prepare_transfer(
        self,
        recipient: str,
        amount: Amount,
        external_transaction_id: Optional[str] = None,
    ) -> PreparedTransfer:
        return self.builder.build_transfer(self.address, recipient, amount, external_transaction_id)

    def authorize(self, prepared: PreparedTransfer) -> AuthorizationBundle:
        """Submit a prepared intent to the kernel and return its authorization."""
        self.logger.info(f"Requesting authorization for {prepared.external_transaction_id}")
        return self.kernel.submit(
            self.settings.entry_id,
            self.settings.access_token,
            prepared.request,
            prepared.encoded_params,
        )

    def transfer(
        self,
        recipient: str,
        amount: Amount,
        external_transaction_id: Optional[str] = None,
    ) -> TxReceipt:
        """
        Transfer tokens from the signer to `recipient` through the risk gate.

        Raises:
            ValidationError: If the recipient or amount is invalid
            KernelUnavailable: If the kernel cannot be reached
            KernelResponseMalformed: If the kernel response is invalid
            RiskDenied: If the compliance decision denies the transfer
            AuthorizationMismatch: If the contract rejects the authorization
            ChainSubmissionError: For any other transaction failure
        """
        prepared = self.prepare_transfer(recipient, amount, external_transaction_id)
        bundle = self.authorize(prepared)
        receipt = self.relay.transfer_with_krnl(
            prepared.intent.recipient, prepared.intent.units, bundle
        )
        self.logger.info(
            f"Transfer {prepared.external_transaction_id} confirmed in block {receipt.block_number}"
        )
        return receipt

    def transfer_from(
        self,
        owner: str,
        recipient: str,
        amount: Amount,
        external_transaction_id: Optional[str] = None,
    ) -> TxReceipt:
        """Transfer tokens from `owner` (within the signer's allowance) to `recipient`."""
        owner = require_address(owner, "owner address")
        prepared = self.prepare_transfer(recipient, amount, external_transaction_id)
        bundle = self.authorize(prepared)
        receipt = self.relay.transfer_from_with_krnl(
            owner, prepared.intent.recipient, prepared.intent.units, bundle
        )
        self.logger.info(
            f"TransferFrom {prepared.external_transaction_id} confirmed in block {receipt.block_number}"
        )
        return receipt

    def stake(self, amount: Amount) -> TxReceipt:
        return self.relay.stake(to_token_units(amount))

    def unstake(
        self,
        amount: Amount,
        beneficiary: Optional[str] = None,
        external_transaction_id: Optional[str] = None,
    ) -> TxReceipt:
        """Withdraw staked value to `beneficiary` (default: the signer) through the risk gate."""
        prepared = self.builder.build_unstake(
            self.address, amount, beneficiary, external_transaction_id
        )
        bundle = self.authorize(prepared)
        return self.relay.unstake(
            bundle,
            prepared.external_transaction_id,
            prepared.intent.units,
            prepared.intent.recipient,
        )

    def balance_of(self, account: Optional[str] = None) -> Decimal:
        return from_token_units(self.relay.balance_of(account or self.address))

    def staked_balance(self, account: Optional[str] = None) -> Decimal:
        return from_token_units(self.relay.get_staker_balance(account or self.address))

    def contract_balance(self) -> Decimal:
        return from_token_units(self.relay.get_contract_balance())
