"""
UTXO ownership validation.

A UTXO reported for our address is only spendable by us if the output that
created it is a single-key Taproot script committing to our exact output key.
Each candidate's defining transaction is fetched and its script checked.
"""

from __future__ import annotations

import asyncio

from loguru import logger

from tapwallet.backends.base import BlockchainBackend
from tapwallet.errors import NetworkError, ParseError
from tapwallet.wallet.address import extract_p2tr_output_key
from tapwallet.wallet.models import UTXO

DEFAULT_CONCURRENCY = 4


class UTXOValidator:
    """
    Fetches an address's UTXOs and keeps those locked to the expected output key.

    Lookups run concurrently up to max_concurrency; results keep the order
    in which the explorer listed the UTXOs.
    """

    def __init__(self, backend: BlockchainBackend, max_concurrency: int = DEFAULT_CONCURRENCY):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.backend = backend
        self.max_concurrency = max_concurrency

    async def fetch_and_filter(self, address: str, expected_output_key: bytes) -> list[UTXO]:
        """
        Return the address's UTXOs whose locking script is OP_1 <expected_output_key>.

        Raises:
            NetworkError: If the address UTXO list itself cannot be fetched
        """
        logger.info(f"Fetching UTXOs for {address}...")
        candidates = await self.backend.get_address_utxos(address)
        if not candidates:
            return []

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def check(utxo: UTXO) -> bool:
            async with semaphore:
                return await self.verify_ownership(utxo, expected_output_key)

        results = await asyncio.gather(*(check(utxo) for utxo in candidates))
        owned = [utxo for utxo, ok in zip(candidates, results) if ok]

        logger.info(f"{len(owned)} of {len(candidates)} UTXO(s) match the wallet output key")
        return owned

    async def verify_ownership(self, utxo: UTXO, expected_output_key: bytes) -> bool:
        """
        Check a single candidate and annotate it on success.

        Lookup failures are logged and reported as non-matching so that one
        bad candidate never aborts the batch.
        """
        try:
            tx = await self.backend.get_transaction(utxo.txid)
            outputs = tx["vout"]
            if not isinstance(outputs, list):
                raise ParseError("'vout' is not a list")

            if utxo.vout < 0 or utxo.vout >= len(outputs):
                logger.debug(f"{utxo.outpoint}: output index out of range, skipping")
                return False

            script_hex = outputs[utxo.vout].get("scriptpubkey")
            if not script_hex:
                logger.debug(f"{utxo.outpoint}: no scriptpubkey in output, skipping")
                return False

            script = bytes.fromhex(script_hex)

        except (NetworkError, ParseError) as e:
            logger.warning(f"Failed to look up {utxo.outpoint}, skipping: {e}")
            return False
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Malformed transaction data for {utxo.outpoint}, skipping: {e}")
            return False

        output_key = extract_p2tr_output_key(script)
        if output_key is None:
            logger.debug(f"{utxo.outpoint}: not a single-key Taproot output, skipping")
            return False
        if output_key != expected_output_key:
            logger.warning(f"{utxo.outpoint}: Taproot output key does not match wallet key")
            return False

        utxo.locking_script_bytes = script
        utxo.verified_output_key = output_key
        return True
