"""
Base blockchain backend interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from tapwallet.wallet.models import UTXO


class BlockchainBackend(ABC):
    """
    Abstract chain data source for the send pipeline.

    Implementations raise NetworkError on transport failures (timeouts
    included) and ParseError on undecodable responses.
    """

    @abstractmethod
    async def get_address_utxos(self, address: str) -> list[UTXO]:
        """Get unspent outputs for an address"""

    @abstractmethod
    async def get_transaction(self, txid: str) -> dict[str, Any]:
        """Get a transaction as explorer JSON (with a "vout" list)"""

    @abstractmethod
    async def get_recommended_fee_rate(self) -> float | None:
        """Get the fastest recommended fee rate in sat/vB, None if not reported"""

    @abstractmethod
    async def broadcast_transaction(self, tx_hex: str) -> str:
        """Broadcast transaction, returns txid"""

    async def get_address_balance(self, address: str) -> int:
        """Get balance for an address in satoshis"""
        utxos = await self.get_address_utxos(address)
        return sum(utxo.value for utxo in utxos)

    async def close(self) -> None:
        """Close backend connection"""
        pass
