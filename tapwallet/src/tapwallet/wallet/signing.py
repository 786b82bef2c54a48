"""
Bitcoin transaction signing for single-key Taproot (P2TR key-path) inputs.
"""

from __future__ import annotations

import struct
from collections.abc import Sequence

from loguru import logger

from tapwallet.constants import SCHNORR_SIGNATURE_LENGTH, SIGHASH_DEFAULT
from tapwallet.errors import StructuralError, TransactionSigningError
from tapwallet.wallet.keys import TaprootKey, verify_schnorr
from tapwallet.wallet.models import UTXO
from tapwallet.wallet.transaction import (
    Transaction,
    TxOutput,
    encode_varint,
    serialize_outpoint,
    sha256,
    tagged_hash,
)


def taproot_signature_message(
    tx: Transaction,
    input_index: int,
    prevouts: Sequence[TxOutput],
    sighash_type: int = SIGHASH_DEFAULT,
) -> bytes:
    """Build the BIP341 key-path signature message (SigMsg, without the epoch byte).

    Only SIGHASH_DEFAULT and SIGHASH_ALL are supported; both commit to every
    input's outpoint, amount, scriptPubKey and sequence, and to all outputs.

    Args:
        tx: The transaction being signed
        input_index: Index of the input to sign
        prevouts: The outputs spent by every input, in input order
        sighash_type: 0x00 (default) or 0x01 (all)

    Returns:
        Serialized SigMsg
    """
    try:
        if input_index >= len(tx.inputs):
            raise TransactionSigningError("Input index out of range")
        if len(prevouts) != len(tx.inputs):
            raise TransactionSigningError(
                f"Expected {len(tx.inputs)} prevouts, got {len(prevouts)}"
            )
        if sighash_type not in (0x00, 0x01):
            raise TransactionSigningError(f"Unsupported sighash type: {sighash_type:#x}")

        sha_prevouts = sha256(
            b"".join(serialize_outpoint(inp.txid, inp.vout) for inp in tx.inputs)
        )
        sha_amounts = sha256(b"".join(struct.pack("<Q", prev.value) for prev in prevouts))
        sha_scriptpubkeys = sha256(
            b"".join(
                encode_varint(len(prev.script_pubkey)) + prev.script_pubkey for prev in prevouts
            )
        )
        sha_sequences = sha256(b"".join(struct.pack("<I", inp.sequence) for inp in tx.inputs))
        sha_outputs = sha256(b"".join(out.serialize() for out in tx.outputs))

        # Key path, no annex
        spend_type = 0

        return (
            bytes([sighash_type])
            + struct.pack("<I", tx.version)
            + struct.pack("<I", tx.locktime)
            + sha_prevouts
            + sha_amounts
            + sha_scriptpubkeys
            + sha_sequences
            + sha_outputs
            + bytes([spend_type])
            + struct.pack("<I", input_index)
        )

    except TransactionSigningError as e:
        raise TransactionSigningError(str(e), input_index) from e
    except Exception as e:
        raise TransactionSigningError(f"Failed to compute sighash: {e}", input_index) from e


def compute_sighash_taproot(
    tx: Transaction,
    input_index: int,
    prevouts: Sequence[TxOutput],
    sighash_type: int = SIGHASH_DEFAULT,
) -> bytes:
    """Compute the BIP341 key-path signature hash.

    Returns:
        32-byte TapSighash digest of epoch 0x00 followed by the signature message
    """
    sig_msg = taproot_signature_message(tx, input_index, prevouts, sighash_type)
    return tagged_hash("TapSighash", b"\x00" + sig_msg)


def sign_p2tr_input(
    tx: Transaction,
    input_index: int,
    prevouts: Sequence[TxOutput],
    key: TaprootKey,
) -> bytes:
    """Sign a P2TR key-path input.

    Returns:
        64-byte BIP340 Schnorr signature (SIGHASH_DEFAULT, no type byte)
    """
    sighash = compute_sighash_taproot(tx, input_index, prevouts)
    signature = key.sign_schnorr(sighash)

    if len(signature) != SCHNORR_SIGNATURE_LENGTH:
        raise TransactionSigningError(f"Unexpected signature length {len(signature)}", input_index)
    if not verify_schnorr(key.output_key, sighash, signature):
        raise TransactionSigningError("Produced signature does not verify", input_index)

    return signature


def _check_utxo(tx: Transaction, index: int, utxo: UTXO, expected_output_key: bytes) -> TxOutput:
    if utxo.locking_script_bytes is None or utxo.value is None or utxo.verified_output_key is None:
        raise TransactionSigningError("Missing data for UTXO", index)
    if utxo.verified_output_key != expected_output_key:
        raise TransactionSigningError("Output key mismatch", index)

    inp = tx.inputs[index]
    if inp.txid != utxo.txid or inp.vout != utxo.vout:
        raise TransactionSigningError(
            f"Input spends {inp.txid}:{inp.vout} but UTXO is {utxo.outpoint}", index
        )

    return TxOutput(value=utxo.value, script_pubkey=utxo.locking_script_bytes)


def sign_transaction(
    tx: Transaction,
    utxos: Sequence[UTXO],
    key: TaprootKey,
    expected_output_key: bytes,
) -> Transaction:
    """
    Sign every input of tx and return a new, fully signed transaction.

    All inputs are checked before the first signature is made. tx itself is
    never modified, so no partially signed transaction escapes on failure.

    Raises:
        StructuralError: If the input and UTXO counts differ
        TransactionSigningError: If any input cannot be signed (names the index)
    """
    if len(tx.inputs) != len(utxos):
        raise StructuralError(
            f"Input/UTXO count mismatch: {len(tx.inputs)} inputs, {len(utxos)} UTXOs"
        )

    prevouts = [
        _check_utxo(tx, index, utxo, expected_output_key) for index, utxo in enumerate(utxos)
    ]

    try:
        key_matches = key.output_key == expected_output_key
    except Exception as e:
        raise TransactionSigningError(f"Failed to derive signing key: {e}") from e
    if not key_matches:
        raise TransactionSigningError("Signing key does not match the expected output key")

    signed = tx.copy()
    for index in range(len(signed.inputs)):
        try:
            signature = sign_p2tr_input(tx, index, prevouts, key)
        except TransactionSigningError:
            raise
        except Exception as e:
            raise TransactionSigningError(f"Signing failed: {e}", index) from e

        signed.inputs[index].witness = [signature]
        logger.debug(f"Signed input #{index} ({utxos[index].outpoint})")

    return signed
