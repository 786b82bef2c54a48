"""
Exception hierarchy for the send pipeline.

Insufficient funds is not represented here: it is a normal outcome reported
through SendResult.
"""

from __future__ import annotations


class TapWalletError(Exception):
    """Base class for all tapwallet errors."""


class CredentialError(TapWalletError):
    """The configured secret is missing or malformed."""


class KeyValidationError(TapWalletError):
    """Key derivation or script-pattern mismatch."""


class NetworkError(TapWalletError):
    """Transport failure talking to the block explorer, including timeouts."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        self.status_code = status_code
        self.body = body
        if status_code is not None:
            message = f"{message} (HTTP {status_code}: {body or ''})"
        super().__init__(message)


class ParseError(TapWalletError):
    """The block explorer returned a payload we could not decode."""


class TransactionBuildError(TapWalletError):
    """Invalid amounts, UTXO identifiers or addresses given to the builder."""


class StructuralError(TapWalletError):
    """Inconsistent pipeline state, such as an input/UTXO count mismatch."""


class TransactionSigningError(StructuralError):
    """Signing failed for a specific input. Nothing was signed."""

    def __init__(self, message: str, input_index: int | None = None):
        self.input_index = input_index
        if input_index is not None:
            message = f"Input #{input_index}: {message}"
        super().__init__(message)
