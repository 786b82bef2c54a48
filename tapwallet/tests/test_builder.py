"""
Tests for the payment transaction builder.
"""

import pytest

from tapwallet.constants import DUST_THRESHOLD
from tapwallet.errors import TransactionBuildError
from tapwallet.wallet.builder import build_transaction, calculate_change, total_balance
from tapwallet.wallet.keys import TaprootKey
from tapwallet.wallet.models import UTXO


@pytest.fixture
def sender_address(wallet_key: TaprootKey) -> str:
    return wallet_key.address("signet")


class TestBalance:
    def test_total_and_change(self, owned_utxo, wallet_key: TaprootKey) -> None:
        utxos = [owned_utxo(wallet_key, 1, 50_000), owned_utxo(wallet_key, 2, 150_000)]
        assert total_balance(utxos) == 200_000
        assert calculate_change(utxos, 100_000, 1_060) == 98_940

    def test_empty(self) -> None:
        assert total_balance([]) == 0


class TestBuildTransaction:
    def test_layout(
        self, make_txid, owned_utxo, wallet_key, sender_address, recipient_address, other_key
    ) -> None:
        utxos = [owned_utxo(wallet_key, 1, 50_000), owned_utxo(wallet_key, 2, 150_000, vout=3)]
        tx = build_transaction(
            utxos, sender_address, recipient_address, 100_000, 1_060, network="signet"
        )

        assert [(inp.txid, inp.vout) for inp in tx.inputs] == [(make_txid(1), 0), (make_txid(2), 3)]
        assert all(inp.witness == [] for inp in tx.inputs)
        assert tx.version == 2
        assert tx.locktime == 0

        assert len(tx.outputs) == 2
        assert tx.outputs[0].value == 100_000
        assert tx.outputs[0].script_pubkey == other_key.script_pubkey
        assert tx.outputs[1].value == 98_940
        assert tx.outputs[1].script_pubkey == wallet_key.script_pubkey

    def test_change_at_dust_threshold_is_kept(
        self, owned_utxo, wallet_key, sender_address, recipient_address
    ) -> None:
        utxos = [owned_utxo(wallet_key, 1, 10_000)]
        tx = build_transaction(
            utxos, sender_address, recipient_address, 9_000, 670, network="signet"
        )
        assert len(tx.outputs) == 2
        assert tx.outputs[1].value == DUST_THRESHOLD

    def test_change_below_dust_is_dropped(
        self, owned_utxo, wallet_key, sender_address, recipient_address
    ) -> None:
        utxos = [owned_utxo(wallet_key, 1, 10_000)]
        tx = build_transaction(
            utxos, sender_address, recipient_address, 9_000, 671, network="signet"
        )
        assert len(tx.outputs) == 1
        assert tx.outputs[0].value == 9_000

    def test_without_change(
        self, owned_utxo, wallet_key, sender_address, recipient_address
    ) -> None:
        utxos = [owned_utxo(wallet_key, 1, 1_000_000)]
        tx = build_transaction(
            utxos,
            sender_address,
            recipient_address,
            10_000,
            0,
            include_change=False,
            network="signet",
        )
        assert len(tx.outputs) == 1

    def test_underfunded_has_no_change(
        self, owned_utxo, wallet_key, sender_address, recipient_address
    ) -> None:
        utxos = [owned_utxo(wallet_key, 1, 1_000)]
        tx = build_transaction(
            utxos, sender_address, recipient_address, 5_000, 200, network="signet"
        )
        assert len(tx.outputs) == 1

    def test_p2wpkh_recipient(self, owned_utxo, wallet_key) -> None:
        utxos = [owned_utxo(wallet_key, 1, 100_000)]
        tx = build_transaction(
            utxos,
            wallet_key.address("mainnet"),
            "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4",
            10_000,
            500,
            network="mainnet",
        )
        assert tx.outputs[0].script_pubkey.hex() == "0014751e76e8199196d454941c45d1b3a323f1433bd6"

    def test_negative_amount(
        self, owned_utxo, wallet_key, sender_address, recipient_address
    ) -> None:
        with pytest.raises(TransactionBuildError, match="Amount"):
            build_transaction(
                [owned_utxo(wallet_key, 1, 1_000)], sender_address, recipient_address, -1, 0
            )

    def test_negative_fee(self, owned_utxo, wallet_key, sender_address, recipient_address) -> None:
        with pytest.raises(TransactionBuildError, match="Fee"):
            build_transaction(
                [owned_utxo(wallet_key, 1, 1_000)],
                sender_address,
                recipient_address,
                100,
                -5,
                network="signet",
            )

    def test_bad_txid(self, sender_address, recipient_address) -> None:
        utxo = UTXO(txid="xyz", vout=0, value=1_000, confirmed=True)
        with pytest.raises(TransactionBuildError, match="txid"):
            build_transaction([utxo], sender_address, recipient_address, 100, 0, network="signet")

    def test_txid_with_trailing_newline(self, make_txid, sender_address, recipient_address) -> None:
        utxo = UTXO(txid=make_txid(1) + "\n", vout=0, value=1_000, confirmed=True)
        with pytest.raises(TransactionBuildError, match="txid"):
            build_transaction([utxo], sender_address, recipient_address, 100, 0, network="signet")


    def test_bad_vout(self, make_txid, sender_address, recipient_address) -> None:
        utxo = UTXO(txid=make_txid(1), vout=-1, value=1_000, confirmed=True)
        with pytest.raises(TransactionBuildError, match="vout"):
            build_transaction([utxo], sender_address, recipient_address, 100, 0, network="signet")

    def test_recipient_on_wrong_network(self, owned_utxo, wallet_key, sender_address) -> None:
        with pytest.raises(TransactionBuildError, match="recipient"):
            build_transaction(
                [owned_utxo(wallet_key, 1, 10_000)],
                sender_address,
                wallet_key.address("mainnet"),
                1_000,
                0,
                network="signet",
            )
