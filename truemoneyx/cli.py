"""
Command line interface for TrueMoneyX.
"""
import logging
import os
from typing import Callable, Optional, TypeVar

import typer
from eth_account import Account

from .client import TrueMoneyClient
from .config import ClientSettings, ProxySettings
from .exceptions import ConfigurationError, TrueMoneyError
from .models import TxReceipt
from .risk_proxy import run as run_proxy
from .utils import hex_to_bytes

T = TypeVar("T")

PRIVATE_KEY_ENV = "TRUEMONEYX_PRIVATE_KEY"

app = typer.Typer(help="Risk-gated TrueMoneyX token transfers.", no_args_is_help=True)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_client(require_signer: bool = True) -> TrueMoneyClient:
    """Create a client from the environment."""
    settings = ClientSettings.from_env()
    private_key = os.environ.get(PRIVATE_KEY_ENV, "").strip()
    if require_signer and not private_key:
        raise ConfigurationError(f"Missing required environment variables: {PRIVATE_KEY_ENV}")
    signer = Account.from_key(private_key) if private_key else None
    return TrueMoneyClient(settings, signer=signer)


def _run(action: Callable[[], T]) -> T:
    try:
        return action()
    except (TrueMoneyError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


def _report(receipt: TxReceipt) -> None:
    typer.echo(f"Transaction hash: {receipt.tx_hash}")
    typer.echo(f"Block number: {receipt.block_number}")
    typer.echo(f"Status: {'Success' if receipt.status == 1 else 'Failed'}")


@app.command()
def transfer(
    recipient: str,
    amount: str,
    tx_id: Optional[str] = typer.Option(None, "--tx-id", help="External transaction id"),
):
    """Transfer tokens to RECIPIENT after risk authorization."""
    receipt = _run(lambda: build_client().transfer(recipient, amount, tx_id))
    _report(receipt)


@app.command("transfer-from")
def transfer_from(
    owner: str,
    recipient: str,
    amount: str,
    tx_id: Optional[str] = typer.Option(None, "--tx-id", help="External transaction id"),
):
    """Transfer OWNER's tokens to RECIPIENT using the signer's allowance."""
    receipt = _run(lambda: build_client().transfer_from(owner, recipient, amount, tx_id))
    _report(receipt)


@app.command()
def balance(address: Optional[str] = typer.Argument(None, help="Defaults to the signer")):
    """Show token and staked balances."""
    def query():
        client = build_client(require_signer=address is None)
        return client.balance_of(address), client.staked_balance(address)

    tokens, staked = _run(query)
    typer.echo(f"Token balance: {tokens}")
    typer.echo(f"Staked balance: {staked}")


@app.command()
def stake(amount: str):
    """Stake AMOUNT of native value in the contract."""
    _report(_run(lambda: build_client().stake(amount)))


@app.command()
def unstake(
    amount: str,
    beneficiary: Optional[str] = typer.Option(None, "--beneficiary", help="Defaults to the signer"),
    tx_id: Optional[str] = typer.Option(None, "--tx-id", help="External transaction id"),
):
    """Withdraw AMOUNT of stake after risk authorization."""
    _report(_run(lambda: build_client().unstake(amount, beneficiary, tx_id)))


@app.command()
def assessment(key: str):
    """Look up a stored transfer assessment by its hash."""
    fields = _run(lambda: build_client(require_signer=False).relay.get_transfer_assessment(hex_to_bytes(key)))
    sender, recipient, units, status, level, score, allowed, timestamp = fields
    typer.echo(f"From: {sender}")
    typer.echo(f"To: {recipient}")
    typer.echo(f"Amount (units): {units}")
    typer.echo(f"Decision: {status} ({level}, score {score})")
    typer.echo(f"Allowed: {allowed}")
    typer.echo(f"Timestamp: {timestamp}")


@app.command("serve-proxy")
def serve_proxy(host: str = typer.Option("0.0.0.0", help="Interface to bind")):
    """Run the risk-scoring proxy service."""
    settings = _run(ProxySettings.from_env)
    run_proxy(settings, host=host)


if __name__ == "__main__":
    app()
