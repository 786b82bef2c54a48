"""
Wallet data models.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass
class UTXO:
    """Unspent output of the wallet address, as reported by the block explorer.

    locking_script_bytes and verified_output_key are filled in by the
    UTXOValidator once the defining transaction has been checked.
    """

    txid: str
    vout: int
    value: int
    confirmed: bool = False
    block_height: int | None = None
    locking_script_bytes: bytes | None = None
    verified_output_key: bytes | None = None

    @property
    def outpoint(self) -> str:
        return f"{self.txid}:{self.vout}"


class SendStatus(str, Enum):
    BROADCAST = "broadcast"
    SIGNED = "signed"
    NO_SPENDABLE_UTXOS = "no_spendable_utxos"
    INSUFFICIENT_FUNDS = "insufficient_funds"


@dataclass
class SendResult:
    """Outcome of a send operation"""

    status: SendStatus
    amount: int
    fee: int = 0
    fee_rate: int = 0
    total_input: int = 0
    change: int = 0
    txid: str | None = None
    tx_hex: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in (SendStatus.BROADCAST, SendStatus.SIGNED)
