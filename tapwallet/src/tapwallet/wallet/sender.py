"""
Single-recipient payment pipeline.

validate request -> owned UTXOs -> confirmed only -> fee rate (fetched once)
-> two-pass fee -> sufficiency check -> build -> sign -> broadcast

Nothing external is mutated before the final broadcast, so any failure
before that point simply aborts the send.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from loguru import logger

from tapwallet.backends.base import BlockchainBackend
from tapwallet.constants import DUST_THRESHOLD, MINIMUM_FEE_RATE, SATS_PER_BTC
from tapwallet.errors import TransactionBuildError
from tapwallet.wallet.address import address_to_scriptpubkey
from tapwallet.wallet.builder import build_transaction, calculate_change, total_balance
from tapwallet.wallet.fees import estimate_final_fee, fetch_fee_rate, sufficient_funds
from tapwallet.wallet.keys import TaprootKey
from tapwallet.wallet.models import SendResult, SendStatus
from tapwallet.wallet.signing import sign_transaction
from tapwallet.wallet.transaction import Transaction
from tapwallet.wallet.utxo_validator import DEFAULT_CONCURRENCY, UTXOValidator


def btc_to_sats(amount: str | Decimal) -> int:
    """Convert a decimal BTC amount to satoshis, rejecting sub-satoshi precision."""
    try:
        btc = Decimal(str(amount).strip())
    except InvalidOperation as e:
        raise TransactionBuildError(f"Invalid BTC amount: {amount!r}") from e

    if not btc.is_finite():
        raise TransactionBuildError(f"Invalid BTC amount: {amount!r}")

    sats = btc * SATS_PER_BTC
    if sats != sats.to_integral_value():
        raise TransactionBuildError(f"Amount has more than 8 decimal places: {amount}")
    return int(sats)


def sats_to_btc(sats: int) -> Decimal:
    return Decimal(sats) / SATS_PER_BTC


class TransactionSender:
    """
    Builds, signs and broadcasts a payment from a single-key Taproot wallet.

    The network is passed in explicitly and used for every address encode
    and decode.
    """

    def __init__(
        self,
        backend: BlockchainBackend,
        network: str = "mainnet",
        min_fee_rate: int = MINIMUM_FEE_RATE,
        max_concurrency: int = DEFAULT_CONCURRENCY,
    ):
        self.backend = backend
        self.network = network
        self.min_fee_rate = min_fee_rate
        self.validator = UTXOValidator(backend, max_concurrency=max_concurrency)

    def _validate_request(self, recipient_address: str, amount: int) -> None:
        if amount <= 0:
            raise TransactionBuildError(f"Amount must be positive: {amount}")
        if amount < DUST_THRESHOLD:
            raise TransactionBuildError(
                f"Amount {amount} sats is below the dust threshold of {DUST_THRESHOLD} sats"
            )
        try:
            address_to_scriptpubkey(recipient_address, self.network)
        except ValueError as e:
            raise TransactionBuildError(
                f"Invalid recipient address for {self.network}: {e}"
            ) from e

    async def send(
        self,
        key: TaprootKey,
        recipient_address: str,
        amount: int,
        broadcast: bool = True,
    ) -> SendResult:
        """
        Pay amount sats to recipient_address from every confirmed wallet UTXO.

        Returns:
            SendResult; NO_SPENDABLE_UTXOS and INSUFFICIENT_FUNDS are normal outcomes

        Raises:
            TransactionBuildError: Invalid amount or recipient
            NetworkError / ParseError: Explorer failures outside per-UTXO lookups
            StructuralError: Signing failed (nothing is broadcast)
        """
        self._validate_request(recipient_address, amount)

        output_key = key.output_key
        sender_address = key.address(self.network)
        logger.info(f"Sender P2TR address: {sender_address}")

        spendable = await self.validator.fetch_and_filter(sender_address, output_key)
        confirmed = [utxo for utxo in spendable if utxo.confirmed]

        if not confirmed:
            logger.info(f"No confirmed spendable UTXOs found for address {sender_address}")
            return SendResult(status=SendStatus.NO_SPENDABLE_UTXOS, amount=amount)
        logger.info(f"Using {len(confirmed)} confirmed and spendable UTXO(s)")

        total = total_balance(confirmed)
        logger.info(f"Total spendable balance: {total} sats")

        fee_rate = await fetch_fee_rate(self.backend, self.min_fee_rate)
        fee = estimate_final_fee(
            confirmed, sender_address, recipient_address, amount, fee_rate, self.network
        )
        logger.info(f"Estimated final fee: {fee} sats ({fee_rate} sat/vB)")

        if not sufficient_funds(total, amount, fee):
            logger.info(
                f"Insufficient funds. Required: {amount} + fee {fee}. Available: {total}"
            )
            return SendResult(
                status=SendStatus.INSUFFICIENT_FUNDS,
                amount=amount,
                fee=fee,
                fee_rate=fee_rate,
                total_input=total,
            )

        tx = build_transaction(
            confirmed, sender_address, recipient_address, amount, fee, network=self.network
        )
        signed = sign_transaction(tx, confirmed, key, output_key)

        change = calculate_change(confirmed, amount, fee)
        result = SendResult(
            status=SendStatus.SIGNED,
            amount=amount,
            fee=total - signed.output_total,
            fee_rate=fee_rate,
            total_input=total,
            change=change if len(signed.outputs) > 1 else 0,
            txid=signed.txid,
            tx_hex=signed.to_hex(),
        )

        if not broadcast:
            logger.info(f"Transaction signed but not broadcast: {signed.txid}")
            return result

        result.txid = await self.broadcast(signed)
        result.status = SendStatus.BROADCAST
        return result

    async def broadcast(self, tx: Transaction) -> str:
        """
        Submit a signed transaction. Never retried.

        Raises:
            NetworkError: With upstream status code and body when available
        """
        logger.info("Broadcasting transaction...")
        txid = await self.backend.broadcast_transaction(tx.to_hex())

        if txid != tx.txid:
            logger.warning(f"Explorer returned txid {txid}, expected {tx.txid}")
        logger.info(f"Transaction broadcast successful! TXID: {txid}")
        return txid
