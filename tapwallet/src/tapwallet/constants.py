"""
Bitcoin protocol constants for single-key Taproot payments.

The dust threshold follows Bitcoin Core's policy for P2TR outputs: an output
is dust when spending it would cost more than a third of its value at the
default dust relay fee (3 sat/vB * (43 + 67.75) vbytes ~= 330 sats).
"""

from __future__ import annotations

# Minimum economically spendable single-key Taproot output
DUST_THRESHOLD = 330  # satoshis

# Floor applied to the upstream fee recommendation
MINIMUM_FEE_RATE = 2  # sat/vbyte

SATS_PER_BTC = 100_000_000

TX_VERSION = 2
TX_LOCKTIME = 0
DEFAULT_SEQUENCE = 0xFFFFFFFF

# OP_1 PUSH32 <x-only output key>
P2TR_SCRIPT_PREFIX = b"\x51\x20"
P2TR_SCRIPT_LENGTH = 34
XONLY_PUBKEY_LENGTH = 32

SCHNORR_SIGNATURE_LENGTH = 64

# BIP341 SIGHASH_DEFAULT: behaves like SIGHASH_ALL but no type byte is appended
SIGHASH_DEFAULT = 0x00

# Witness weight discount (BIP141)
WITNESS_SCALE_FACTOR = 4
