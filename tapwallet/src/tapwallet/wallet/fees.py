"""
Fee estimation from virtual transaction size.

The size of a transaction depends on whether it has a change output, which
depends on the fee, which depends on the size. This is resolved with two
fixed passes instead of iterating to a fixed point:

1. no change output, fee 0 -> base_fee
2. change output sized with base_fee (if above dust) -> final_fee

final_fee can overshoot the exact requirement by at most one change output's
weight times the rate; that is accepted.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from loguru import logger

from tapwallet.backends.base import BlockchainBackend
from tapwallet.constants import MINIMUM_FEE_RATE, SCHNORR_SIGNATURE_LENGTH
from tapwallet.wallet.builder import build_transaction
from tapwallet.wallet.models import UTXO
from tapwallet.wallet.transaction import Transaction

# Stand-in for the key-path signature when sizing an unsigned transaction
PLACEHOLDER_WITNESS = b"\x00" * SCHNORR_SIGNATURE_LENGTH


async def fetch_fee_rate(backend: BlockchainBackend, minimum: int = MINIMUM_FEE_RATE) -> int:
    """
    Get the fastest recommended fee rate, never below minimum.

    A missing rate falls back to minimum. Transport failures propagate.
    """
    rate = await backend.get_recommended_fee_rate()
    if rate is None:
        logger.warning(f"No fee recommendation available, using minimum {minimum} sat/vB")
        return minimum

    fee_rate = max(math.ceil(rate), minimum)
    logger.debug(f"Fee rate: {fee_rate} sat/vB (recommended {rate})")
    return fee_rate


def calculate_vsize_fee(tx: Transaction, fee_rate: int) -> int:
    """
    Fee for tx at fee_rate, sizing unsigned inputs as key-path spends.

    Returns 0 for a transaction with no inputs or outputs, or a non-positive rate.
    """
    if not tx.inputs or not tx.outputs or fee_rate <= 0:
        return 0

    sized = tx.copy()
    for inp in sized.inputs:
        if not inp.witness:
            inp.witness = [PLACEHOLDER_WITNESS]

    vsize = sized.vsize
    if vsize <= 0:
        return 0
    return math.ceil(vsize * fee_rate)


def estimate_final_fee(
    utxos: Sequence[UTXO],
    sender_address: str,
    recipient_address: str,
    amount: int,
    fee_rate: int,
    network: str = "mainnet",
) -> int:
    """Two-pass fee estimate, see module docstring."""
    tx_no_change = build_transaction(
        utxos, sender_address, recipient_address, amount, 0, include_change=False, network=network
    )
    base_fee = calculate_vsize_fee(tx_no_change, fee_rate)

    tx_with_change = build_transaction(
        utxos,
        sender_address,
        recipient_address,
        amount,
        base_fee,
        include_change=True,
        network=network,
    )
    final_fee = calculate_vsize_fee(tx_with_change, fee_rate)

    logger.debug(
        f"Fee estimate: base {base_fee} sats ({tx_no_change.vsize} vB unsigned), "
        f"final {final_fee} sats ({len(tx_with_change.outputs)} outputs)"
    )
    return final_fee


def sufficient_funds(total: int, amount: int, fee: int) -> bool:
    return total >= amount + fee
