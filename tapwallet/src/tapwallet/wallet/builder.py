"""
Transaction builder for single-recipient payments.

Layout:
- Inputs: every given UTXO, in the given order
- Outputs: payment first, then an optional change output back to the sender
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from tapwallet.constants import DUST_THRESHOLD
from tapwallet.errors import TransactionBuildError
from tapwallet.wallet.address import address_to_scriptpubkey
from tapwallet.wallet.models import UTXO
from tapwallet.wallet.transaction import Transaction, TxInput, TxOutput

TXID_PATTERN = re.compile(r"[0-9a-fA-F]{64}")


def total_balance(utxos: Sequence[UTXO]) -> int:
    return sum(utxo.value for utxo in utxos)


def calculate_change(utxos: Sequence[UTXO], amount: int, fee: int) -> int:
    return total_balance(utxos) - amount - fee


def _script_for(address: str, network: str, role: str) -> bytes:
    try:
        return address_to_scriptpubkey(address, network)
    except ValueError as e:
        raise TransactionBuildError(f"Invalid {role} address {address!r}: {e}") from e


def build_transaction(
    utxos: Sequence[UTXO],
    sender_address: str,
    recipient_address: str,
    amount: int,
    fee: int,
    include_change: bool = True,
    network: str = "mainnet",
) -> Transaction:
    """
    Build an unsigned payment transaction.

    A change output to sender_address is added only when include_change is
    set and total_input - amount - fee reaches the dust threshold. Below
    that, the remainder is left to the miner.

    Raises:
        TransactionBuildError: On negative amount/fee, unusable UTXO
            identifiers or undecodable addresses
    """
    if amount < 0:
        raise TransactionBuildError(f"Amount must not be negative: {amount}")
    if fee < 0:
        raise TransactionBuildError(f"Fee must not be negative: {fee}")

    tx = Transaction()

    for index, utxo in enumerate(utxos):
        if not isinstance(utxo.txid, str) or not TXID_PATTERN.fullmatch(utxo.txid):
            raise TransactionBuildError(f"UTXO #{index} has no usable txid: {utxo.txid!r}")
        if not isinstance(utxo.vout, int) or utxo.vout < 0:
            raise TransactionBuildError(f"UTXO #{index} has no usable vout: {utxo.vout!r}")
        tx.inputs.append(TxInput(txid=utxo.txid, vout=utxo.vout))

    tx.outputs.append(
        TxOutput(value=amount, script_pubkey=_script_for(recipient_address, network, "recipient"))
    )

    if include_change:
        change = calculate_change(utxos, amount, fee)
        if change >= DUST_THRESHOLD:
            tx.outputs.append(
                TxOutput(value=change, script_pubkey=_script_for(sender_address, network, "change"))
            )

    return tx
