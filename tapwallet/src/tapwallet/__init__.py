"""
tapwallet - Single-key Taproot wallet backed by a block explorer API

Builds, signs (BIP341/BIP340) and broadcasts single-recipient payments.
"""

__version__ = "0.1.0"

from tapwallet.constants import DUST_THRESHOLD, MINIMUM_FEE_RATE
from tapwallet.errors import (
    CredentialError,
    KeyValidationError,
    NetworkError,
    ParseError,
    StructuralError,
    TapWalletError,
    TransactionBuildError,
    TransactionSigningError,
)

__all__ = [
    "CredentialError",
    "DUST_THRESHOLD",
    "KeyValidationError",
    "MINIMUM_FEE_RATE",
    "NetworkError",
    "ParseError",
    "StructuralError",
    "TapWalletError",
    "TransactionBuildError",
    "TransactionSigningError",
]
