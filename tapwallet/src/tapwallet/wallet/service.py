"""
Single-key Taproot wallet service.
"""

from __future__ import annotations

from loguru import logger

from tapwallet.backends.base import BlockchainBackend
from tapwallet.backends.mempool import MempoolBackend
from tapwallet.config import Settings
from tapwallet.wallet.keys import TaprootKey, load_key
from tapwallet.wallet.models import UTXO, SendResult
from tapwallet.wallet.sender import TransactionSender


class WalletService:
    """
    Wallet for one BIP86 key on one network.

    Address: bech32m P2TR address of the key's output key
    """

    def __init__(
        self,
        key: TaprootKey,
        backend: BlockchainBackend,
        network: str = "mainnet",
        min_fee_rate: int = 2,
        utxo_lookup_concurrency: int = 4,
    ):
        self.key = key
        self.backend = backend
        self.network = network
        self.sender = TransactionSender(
            backend,
            network=network,
            min_fee_rate=min_fee_rate,
            max_concurrency=utxo_lookup_concurrency,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> WalletService:
        """Load the key and build a mempool backend from configuration."""
        key = load_key(settings)
        backend = MempoolBackend(base_url=settings.get_api_url(), timeout=settings.http_timeout)
        return cls(
            key=key,
            backend=backend,
            network=settings.network,
            min_fee_rate=settings.min_fee_rate,
            utxo_lookup_concurrency=settings.utxo_lookup_concurrency,
        )

    @property
    def address(self) -> str:
        return self.key.address(self.network)

    async def get_balance(self) -> int:
        """Sum of every UTXO at the wallet address, confirmed or not"""
        balance = await self.backend.get_address_balance(self.address)
        logger.debug(f"Balance for {self.address}: {balance} sats")
        return balance

    async def get_spendable_utxos(self) -> list[UTXO]:
        """Confirmed UTXOs locked to this wallet's output key"""
        owned = await self.sender.validator.fetch_and_filter(self.address, self.key.output_key)
        return [utxo for utxo in owned if utxo.confirmed]

    async def send(self, recipient_address: str, amount: int, broadcast: bool = True) -> SendResult:
        return await self.sender.send(self.key, recipient_address, amount, broadcast=broadcast)

    async def close(self) -> None:
        """Close backend connection"""
        await self.backend.close()
