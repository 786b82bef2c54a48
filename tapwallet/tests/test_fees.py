"""
Tests for fee rate lookup and two-pass fee estimation.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from tapwallet.errors import NetworkError
from tapwallet.wallet.builder import build_transaction
from tapwallet.wallet.fees import (
    calculate_vsize_fee,
    estimate_final_fee,
    fetch_fee_rate,
    sufficient_funds,
)
from tapwallet.wallet.transaction import Transaction


def backend_with_rate(rate):
    backend = MagicMock()
    backend.get_recommended_fee_rate = AsyncMock(return_value=rate)
    return backend


class TestFetchFeeRate:
    @pytest.mark.asyncio
    async def test_uses_recommendation(self) -> None:
        assert await fetch_fee_rate(backend_with_rate(12.0), 2) == 12

    @pytest.mark.asyncio
    async def test_rounds_up_fractional_rate(self) -> None:
        assert await fetch_fee_rate(backend_with_rate(3.2), 2) == 4

    @pytest.mark.asyncio
    async def test_clamps_to_minimum(self) -> None:
        assert await fetch_fee_rate(backend_with_rate(1.0), 2) == 2

    @pytest.mark.asyncio
    async def test_missing_rate_falls_back_to_minimum(self) -> None:
        assert await fetch_fee_rate(backend_with_rate(None), 3) == 3

    @pytest.mark.asyncio
    async def test_network_error_propagates(self) -> None:
        backend = MagicMock()
        backend.get_recommended_fee_rate = AsyncMock(side_effect=NetworkError("timed out"))
        with pytest.raises(NetworkError):
            await fetch_fee_rate(backend, 2)


class TestCalculateVsizeFee:
    def test_empty_transaction(self) -> None:
        assert calculate_vsize_fee(Transaction(), 5) == 0

    def test_non_positive_rate(self, owned_utxo, wallet_key, recipient_address) -> None:
        tx = build_transaction(
            [owned_utxo(wallet_key, 1, 10_000)],
            wallet_key.address("signet"),
            recipient_address,
            1_000,
            0,
            network="signet",
        )
        assert calculate_vsize_fee(tx, 0) == 0

    def test_sizes_with_placeholder_witness(
        self, owned_utxo, wallet_key, recipient_address
    ) -> None:
        """One key-path input, two P2TR outputs is 154 vbytes once signed."""
        tx = build_transaction(
            [owned_utxo(wallet_key, 1, 100_000)],
            wallet_key.address("signet"),
            recipient_address,
            10_000,
            0,
            network="signet",
        )
        assert len(tx.outputs) == 2
        assert calculate_vsize_fee(tx, 1) == 154
        assert calculate_vsize_fee(tx, 10) == 1_540

    def test_does_not_modify_transaction(self, owned_utxo, wallet_key, recipient_address) -> None:
        tx = build_transaction(
            [owned_utxo(wallet_key, 1, 100_000)],
            wallet_key.address("signet"),
            recipient_address,
            10_000,
            0,
            network="signet",
        )
        calculate_vsize_fee(tx, 5)
        assert tx.inputs[0].witness == []


class TestEstimateFinalFee:
    def test_two_inputs_with_change(self, owned_utxo, wallet_key, recipient_address) -> None:
        """
        Pass 1: 2 inputs, 1 output -> 169 vB -> 845 sats at 5 sat/vB.
        Pass 2: change 99,155 is above dust -> 212 vB -> 1,060 sats.
        """
        utxos = [owned_utxo(wallet_key, 1, 50_000), owned_utxo(wallet_key, 2, 150_000)]
        fee = estimate_final_fee(
            utxos, wallet_key.address("signet"), recipient_address, 100_000, 5, "signet"
        )
        assert fee == 1_060

    def test_no_change_when_remainder_is_dust(
        self, owned_utxo, wallet_key, recipient_address
    ) -> None:
        """
        1 input, 1 output is 111 vB -> 222 sats at 2 sat/vB. The remainder
        after pass 1 is 100 sats, so pass 2 builds the same transaction.
        """
        utxos = [owned_utxo(wallet_key, 1, 10_322)]
        fee = estimate_final_fee(
            utxos, wallet_key.address("signet"), recipient_address, 10_000, 2, "signet"
        )
        assert fee == 222

    def test_covers_signed_size(self, owned_utxo, wallet_key, recipient_address) -> None:
        utxos = [owned_utxo(wallet_key, n, 20_000 * n) for n in range(1, 4)]
        rate = 7
        fee = estimate_final_fee(
            utxos, wallet_key.address("signet"), recipient_address, 50_000, rate, "signet"
        )
        tx = build_transaction(
            utxos, wallet_key.address("signet"), recipient_address, 50_000, fee, network="signet"
        )
        for inp in tx.inputs:
            inp.witness = [bytes(64)]
        assert fee >= tx.vsize * rate


class TestSufficientFunds:
    def test_exact(self) -> None:
        assert sufficient_funds(101_060, 100_000, 1_060)

    def test_short_by_one(self) -> None:
        assert not sufficient_funds(101_059, 100_000, 1_060)
