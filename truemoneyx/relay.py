"""
Balance and transaction relay for the TrueMoneyX contract.

Thin web3 layer: read-only queries, and submission of already-authorized
calls that blocks until the transaction is mined.
"""
import logging
from typing import Any, Dict, Optional, Protocol, Tuple, Union

import requests
from web3 import Web3
from web3.exceptions import ContractLogicError, Web3Exception
from web3.types import TxReceipt as Web3TxReceipt

from .exceptions import AuthorizationMismatch, ChainSubmissionError, RiskDenied
from .gate import AUTHORIZATION_REASONS, RISK_DENIED_REASON
from .kernel import validate_endpoint_url
from .models import AuthorizationBundle, TxReceipt
from .utils import hex_to_bytes, require_address

DEFAULT_GAS = 300000

_KRNL_PAYLOAD = {
    "components": [
        {"internalType": "bytes", "name": "auth", "type": "bytes"},
        {"internalType": "bytes", "name": "kernelResponses", "type": "bytes"},
        {"internalType": "bytes", "name": "kernelParams", "type": "bytes"},
    ],
    "internalType": "struct KrnlPayload",
    "name": "krnlPayload",
    "type": "tuple",
}


def _fn(name, inputs, outputs=(), mutability="nonpayable"):
    return {
        "inputs": list(inputs),
        "name": name,
        "outputs": list(outputs),
        "stateMutability": mutability,
        "type": "function",
    }


def _arg(name, type_):
    return {"internalType": type_, "name": name, "type": type_}


class Signer(Protocol):
    """Protocol for custom signers"""
    address: str

    def sign_transaction(self, transaction_dict: Dict[str, Any]) -> Any:
        """Sign transaction and return signed tx object"""
        ...


def revert_reason_of(error: Exception) -> str:
    """Extract the contract's revert string from a web3 error."""
    reason = getattr(error, "message", None) or str(error)
    prefix = "execution reverted: "
    if reason.startswith(prefix):
        reason = reason[len(prefix):]
    return reason


def classify_revert(reason: str, context: str = "Transaction reverted") -> ChainSubmissionError:
    """Map a revert string onto the gate's failure kinds."""
    message = f"{context}: {reason}"
    if RISK_DENIED_REASON in reason:
        return RiskDenied(message, revert_reason=reason)
    if any(known in reason for known in AUTHORIZATION_REASONS):
        return AuthorizationMismatch(message, revert_reason=reason)
    return ChainSubmissionError(message, revert_reason=reason)


class TokenRelay:
    """
    Relay for the risk-gated token contract.

    Queries need only an RPC endpoint; transactions also need a signer.
    """

    TOKEN_ABI = [
        _fn("transferWithKRNL", [_arg("to", "address"), _arg("amount", "uint256"), _KRNL_PAYLOAD],
            [_arg("", "bool")]),
        _fn("transferFromWithKRNL",
            [_arg("from", "address"), _arg("to", "address"), _arg("amount", "uint256"), _KRNL_PAYLOAD],
            [_arg("", "bool")]),
        _fn("stake", [], mutability="payable"),
        _fn("unstake", [_KRNL_PAYLOAD, _arg("externalTransactionId", "string"),
                        _arg("amount", "uint256"), _arg("beneficiary", "address")]),
        _fn("getStakerBalance", [_arg("staker", "address")], [_arg("", "uint256")], "view"),
        _fn("getContractBalance", [], [_arg("", "uint256")], "view"),
        _fn("balanceOf", [_arg("account", "address")], [_arg("", "uint256")], "view"),
        _fn("getTransferAssessment", [_arg("assessmentHash", "bytes32")], [
            _arg("from", "address"), _arg("to", "address"), _arg("amount", "uint256"),
            _arg("status", "string"), _arg("riskLevel", "string"), _arg("riskScore", "uint256"),
            _arg("allowed", "bool"), _arg("timestamp", "uint256"),
        ], "view"),
        _fn("transfer", [_arg("to", "address"), _arg("amount", "uint256")], [_arg("", "bool")]),
        _fn("transferFrom", [_arg("from", "address"), _arg("to", "address"), _arg("amount", "uint256")],
            [_arg("", "bool")]),
    ]

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        signer: Optional[Signer] = None,
        timeout: int = 120,
        poll_interval: float = 0.1,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the TokenRelay

        Args:
            rpc_url: Ethereum RPC endpoint URL
            contract_address: TrueMoneyX contract address
            signer: Account or custom signer for transactions (optional for queries)
            timeout: Seconds to wait for a transaction receipt
            poll_interval: How often to poll for the receipt, in seconds
            logger: Optional logger instance to use for debug/info logging

        Raises:
            ValueError: If the RPC URL doesn't use https (unless it's local)
            ValidationError: If the contract address is invalid
        """
        validate_endpoint_url("rpc_url", rpc_url)
        self.rpc_url = rpc_url
        self.contract_address = require_address(contract_address, "contract address")
        self.signer = signer
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.logger = logger or logging.getLogger(__name__)

        self.w3 = Web3(Web3.HTTPProvider(rpc_url))
        self.contract = self.w3.eth.contract(address=self.contract_address, abi=self.TOKEN_ABI)

    @property
    def address(self) -> str:
        """
        Get the signer address

        Raises:
            ValueError: If no signer is available
        """
        if self.signer is None:
            raise ValueError("No signer available")
        return self.signer.address

    # Queries

    def balance_of(self, account: str) -> int:
        fn = self.contract.functions.balanceOf(require_address(account))
        return self._query(fn, "balanceOf")

    def get_staker_balance(self, account: str) -> int:
        fn = self.contract.functions.getStakerBalance(require_address(account))
        return self._query(fn, "getStakerBalance")

    def get_contract_balance(self) -> int:
        return self._query(self.contract.functions.getContractBalance(), "getContractBalance")

    def get_transfer_assessment(self, key: Union[bytes, str]) -> Tuple[Any, ...]:
        fn = self.contract.functions.getTransferAssessment(hex_to_bytes(key))
        return self._query(fn, "getTransferAssessment")

    def _query(self, fn: Any, label: str) -> Any:
        """
        Run a read-only contract call.

        Raises:
            ChainSubmissionError: If the call reverts or the node cannot be reached
        """
        try:
            return fn.call()
        except ContractLogicError as e:
            reason = revert_reason_of(e)
            raise ChainSubmissionError(f"{label} reverted: {reason}", revert_reason=reason) from e
        except (Web3Exception, requests.RequestException, ValueError) as e:
            self.logger.error(f"{label} query failed: {e}")
            raise ChainSubmissionError(f"{label} query failed: {e}") from e

    # Transactions

    def transfer_with_krnl(self, to: str, units: int, bundle: AuthorizationBundle) -> TxReceipt:
        fn = self.contract.functions.transferWithKRNL(
            require_address(to, "recipient address"), units, bundle.to_contract_tuple()
        )
        return self._submit(fn, "transferWithKRNL")

    def transfer_from_with_krnl(
        self, owner: str, to: str, units: int, bundle: AuthorizationBundle
    ) -> TxReceipt:
        fn = self.contract.functions.transferFromWithKRNL(
            require_address(owner, "owner address"),
            require_address(to, "recipient address"),
            units,
            bundle.to_contract_tuple(),
        )
        return self._submit(fn, "transferFromWithKRNL")

    def stake(self, units: int) -> TxReceipt:
        return self._submit(self.contract.functions.stake(), "stake", value=units)

    def unstake(
        self,
        bundle: AuthorizationBundle,
        external_transaction_id: str,
        units: int,
        beneficiary: str,
    ) -> TxReceipt:
        fn = self.contract.functions.unstake(
            bundle.to_contract_tuple(),
            external_transaction_id,
            units,
            require_address(beneficiary, "beneficiary address"),
        )
        return self._submit(fn, "unstake")

    def _submit(
        self,
        fn: Any,
        label: str,
        value: int = 0,
        gas: Optional[int] = None,
        gas_price_override: Optional[int] = None,
    ) -> TxReceipt:
        """
        Build, sign and send a contract call, then wait for one confirmation.

        Raises:
            RiskDenied: If the gate denied the transfer
            AuthorizationMismatch: If the gate rejected the authorization
            ChainSubmissionError: For any other signing, sending or revert failure
        """
        from_address = self.address

        try:
            nonce = self.w3.eth.get_transaction_count(from_address)
            call_params = {"from": from_address, "value": value}

            # 1. Gas estimation; a revert here is final
            if gas is None:
                try:
                    gas = int(fn.estimate_gas(call_params) * 1.1)
                    self.logger.debug(f"Estimated gas for {label}: {gas}")
                except ContractLogicError as e:
                    reason = revert_reason_of(e)
                    self.logger.error(f"{label} would revert: {reason}")
                    raise classify_revert(reason, f"{label} reverted") from e
                except (Web3Exception, ValueError) as e:
                    gas = DEFAULT_GAS
                    self.logger.warning(f"Gas estimation failed, using default: {gas}. Error: {e}")

            # 2. Build transaction
            tx_params = {**call_params, "nonce": nonce, "gas": gas}
            tx_params["gasPrice"] = (
                gas_price_override if gas_price_override is not None else self.w3.eth.gas_price
            )
            tx = fn.build_transaction(tx_params)
        except ChainSubmissionError:
            raise
        except (Web3Exception, ValueError) as e:
            self.logger.error(f"Failed to prepare {label}: {e}")
            raise ChainSubmissionError(f"Failed to prepare {label}: {e}") from e

        # 3. Sign transaction
        try:
            signed_tx = self.signer.sign_transaction(tx)
        except Exception as e:
            self.logger.error(f"Transaction signing failed: {e}")
            raise ChainSubmissionError(f"Failed to sign transaction: {e}") from e

        # 4. Send and wait for one confirmation
        try:
            tx_hash = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
            self.logger.info(f"{label} sent: {Web3.to_hex(tx_hash)}")
            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.timeout, poll_latency=self.poll_interval
            )
        except ContractLogicError as e:
            raise classify_revert(revert_reason_of(e), f"{label} reverted") from e
        except (Web3Exception, ValueError) as e:
            self.logger.error(f"Failed to send {label}: {e}")
            raise ChainSubmissionError(f"Failed to send transaction: {e}") from e

        if receipt["status"] == 0:
            reason = self._replay_revert_reason(fn, call_params, receipt)
            self.logger.error(f"{label} reverted in block {receipt['blockNumber']}: {reason}")
            if reason is None:
                raise ChainSubmissionError(f"{label} reverted: {Web3.to_hex(tx_hash)}")
            raise classify_revert(reason, f"{label} reverted")

        return self._convert_receipt(receipt)

    def _replay_revert_reason(
        self, fn: Any, call_params: Dict[str, Any], receipt: Web3TxReceipt
    ) -> Optional[str]:
        """Re-run a mined, reverted call at its block to recover the revert string."""
        try:
            fn.call(call_params, block_identifier=receipt["blockNumber"])
        except ContractLogicError as e:
            return revert_reason_of(e)
        except (Web3Exception, ValueError) as e:
            self.logger.debug(f"Could not replay reverted call: {e}")
        return None

    def _convert_receipt(self, web3_receipt: Web3TxReceipt) -> TxReceipt:
        """
        Convert Web3 receipt to our TxReceipt model
        """
        receipt_dict = dict(web3_receipt)

        # Convert bytes to hex strings
        for key, value in list(receipt_dict.items()):
            if isinstance(value, bytes):
                receipt_dict[key] = Web3.to_hex(value)
        receipt_dict["logs"] = [dict(log) for log in receipt_dict.get("logs", [])]

        return TxReceipt.model_validate(receipt_dict)
