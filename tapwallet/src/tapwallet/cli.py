"""
Taproot Wallet CLI - Generate keys, check balances and send payments.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import typer
from loguru import logger
from pydantic import ValidationError

from tapwallet.config import Settings, get_settings
from tapwallet.errors import TapWalletError
from tapwallet.wallet.models import SendResult, SendStatus

app = typer.Typer(
    name="tap-wallet",
    help="Single-key Taproot wallet",
    add_completion=False,
)


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def _load_settings(network: str | None, log_level: str | None) -> Settings:
    updates = {}
    if network:
        updates["network"] = network
    if log_level:
        updates["log_level"] = log_level
    try:
        settings = get_settings()
        if updates:
            settings = Settings.model_validate({**settings.model_dump(), **updates})
    except ValidationError as e:
        logger.error(f"Invalid settings: {e}")
        raise typer.Exit(1)
    setup_logging(settings.log_level)
    return settings


@app.command()
def generate(
    network: str = typer.Option(None, "--network", "-n", help="Bitcoin network"),
    save: bool = typer.Option(False, "--save", "-s", help="Save the key to the keys directory"),
    env_file: Path = typer.Option(
        Path(".env"), "--env-file", help=".env file whose PRIVATE_KEY_WIF is updated on --save"
    ),
    log_level: str = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Generate a new Taproot wallet key."""
    from tapwallet.wallet.keys import TaprootKey, save_key_file, update_env_file

    settings = _load_settings(network, log_level)

    key = TaprootKey.generate()
    wif = key.to_wif(settings.network)
    address = key.address(settings.network)

    logger.info("Wallet generated")
    typer.echo(f"\nAddress:           {address}")
    typer.echo(f"Private Key (WIF): {wif}\n")

    if save:
        save_key_file(settings.key_file, wif)
        typer.echo(f"Key saved to: {settings.key_file}")
        if update_env_file(env_file, wif):
            typer.echo(f"Updated PRIVATE_KEY_WIF in {env_file}")
    typer.echo("Store this private key securely. Anyone with it can spend your coins.")


@app.command()
def address(
    network: str = typer.Option(None, "--network", "-n", help="Bitcoin network"),
    log_level: str = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Show the wallet's P2TR address."""
    from tapwallet.wallet.keys import load_key

    settings = _load_settings(network, log_level)
    try:
        key = load_key(settings)
    except TapWalletError as e:
        logger.error(str(e))
        raise typer.Exit(1)

    typer.echo(key.address(settings.network))


@app.command()
def balance(
    network: str = typer.Option(None, "--network", "-n", help="Bitcoin network"),
    log_level: str = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Show the wallet balance."""
    settings = _load_settings(network, log_level)
    try:
        asyncio.run(_show_balance(settings))
    except TapWalletError as e:
        logger.error(f"Failed to fetch balance: {e}")
        raise typer.Exit(1)


async def _show_balance(settings: Settings) -> None:
    from tapwallet.wallet.sender import sats_to_btc
    from tapwallet.wallet.service import WalletService

    wallet = WalletService.from_settings(settings)
    try:
        logger.info(f"Fetching UTXOs for {wallet.address}...")
        total = await wallet.get_balance()
        typer.echo(f"\nAddress: {wallet.address}")
        typer.echo(f"Balance: {total:,} sats ({sats_to_btc(total):.8f} BTC)")
    finally:
        await wallet.close()


@app.command()
def send(
    recipient: str = typer.Option(None, "--to", "-t", help="Recipient address"),
    amount: str = typer.Option(None, "--amount", "-a", help="Amount in BTC"),
    broadcast: bool = typer.Option(
        True, "--broadcast/--no-broadcast", help="Broadcast the signed transaction"
    ),
    network: str = typer.Option(None, "--network", "-n", help="Bitcoin network"),
    log_level: str = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Send BTC from the wallet to an address."""
    from tapwallet.wallet.sender import btc_to_sats

    settings = _load_settings(network, log_level)

    if not recipient:
        recipient = typer.prompt(f"Recipient Address ({settings.network})").strip()
    if not amount:
        amount = typer.prompt("Amount (BTC)").strip()

    try:
        amount_sats = btc_to_sats(amount)
        result = asyncio.run(_send(settings, recipient, amount_sats, broadcast))
    except TapWalletError as e:
        logger.error(f"Send failed: {e}")
        raise typer.Exit(1)

    _print_result(result)
    if not result.ok:
        raise typer.Exit(1)


async def _send(
    settings: Settings, recipient: str, amount_sats: int, broadcast: bool
) -> SendResult:
    from tapwallet.wallet.service import WalletService

    wallet = WalletService.from_settings(settings)
    try:
        return await wallet.send(recipient, amount_sats, broadcast=broadcast)
    finally:
        await wallet.close()


def _print_result(result: SendResult) -> None:
    if result.status == SendStatus.NO_SPENDABLE_UTXOS:
        typer.echo("\nNo confirmed spendable UTXOs found.")
        return
    if result.status == SendStatus.INSUFFICIENT_FUNDS:
        typer.echo(
            f"\nInsufficient funds: need {result.amount:,} + {result.fee:,} fee, "
            f"have {result.total_input:,} sats"
        )
        return

    typer.echo(f"\nAmount: {result.amount:,} sats")
    typer.echo(f"Fee:    {result.fee:,} sats ({result.fee_rate} sat/vB)")
    if result.change:
        typer.echo(f"Change: {result.change:,} sats")

    if result.status == SendStatus.BROADCAST:
        typer.echo("\nTransaction broadcast successfully!")
        typer.echo(f"TXID: {result.txid}")
    else:
        typer.echo("\nTransaction NOT broadcast (--no-broadcast)")
        typer.echo(f"TXID: {result.txid}")
        typer.echo(f"Full hex: {result.tx_hex}")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
