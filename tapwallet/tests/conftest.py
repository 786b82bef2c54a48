"""
Test configuration for tapwallet tests.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from tapwallet.backends.base import BlockchainBackend
from tapwallet.wallet.keys import TaprootKey
from tapwallet.wallet.models import UTXO


@pytest.fixture
def sample_mnemonic() -> str:
    """Test mnemonic (not for production use!)."""
    return (
        "abandon abandon abandon abandon abandon abandon "
        "abandon abandon abandon abandon abandon about"
    )


@pytest.fixture
def wallet_key() -> TaprootKey:
    """Deterministic wallet key."""
    return TaprootKey.from_secret(bytes.fromhex("11" * 32))


@pytest.fixture
def other_key() -> TaprootKey:
    """A key the wallet does not control."""
    return TaprootKey.from_secret(bytes.fromhex("22" * 32))


@pytest.fixture
def recipient_address(other_key: TaprootKey) -> str:
    """Signet P2TR recipient address."""
    return other_key.address("signet")


def _make_txid(n: int) -> str:
    return f"{n:064x}"


def _funding_tx(txid: str, outputs: list[tuple[bytes, int]]) -> dict[str, Any]:
    """Explorer JSON for a transaction with the given (script, value) outputs."""
    return {
        "txid": txid,
        "vout": [{"scriptpubkey": script.hex(), "value": value} for script, value in outputs],
    }


def _owned_utxo(key: TaprootKey, n: int, value: int, vout: int = 0) -> UTXO:
    """A UTXO already annotated as verified for key."""
    return UTXO(
        txid=_make_txid(n),
        vout=vout,
        value=value,
        confirmed=True,
        block_height=100 + n,
        locking_script_bytes=key.script_pubkey,
        verified_output_key=key.output_key,
    )


@pytest.fixture
def make_txid():
    """Build a distinct, well-formed txid from a small integer."""
    return _make_txid


@pytest.fixture
def funding_tx():
    return _funding_tx


@pytest.fixture
def owned_utxo():
    return _owned_utxo


@pytest.fixture
def make_backend():
    """
    Build a mock backend serving the given UTXOs and funding transactions.

    Unknown txids make get_transaction raise KeyError, which tests can
    override with their own side_effect.
    """

    def _make(
        utxos: list[UTXO],
        transactions: dict[str, dict[str, Any]] | None = None,
        fee_rate: float | None = 5.0,
        broadcast_txid: str = "ab" * 32,
    ) -> MagicMock:
        txs = transactions or {}

        async def get_transaction(txid: str) -> dict[str, Any]:
            return txs[txid]

        backend = MagicMock(spec=BlockchainBackend)
        backend.get_address_utxos = AsyncMock(return_value=utxos)
        backend.get_transaction = AsyncMock(side_effect=get_transaction)
        backend.get_recommended_fee_rate = AsyncMock(return_value=fee_rate)
        backend.broadcast_transaction = AsyncMock(return_value=broadcast_txid)
        backend.close = AsyncMock()
        return backend

    return _make
