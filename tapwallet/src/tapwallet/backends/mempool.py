"""
Mempool.space / Esplora REST blockchain backend.

Third-party block explorer, no local node required. Endpoints used:
- GET  address/{address}/utxo
- GET  tx/{txid}
- GET  v1/fees/recommended
- POST tx (raw hex body)
"""

from __future__ import annotations

import math
from typing import Any

import httpx
from loguru import logger

from tapwallet.backends.base import BlockchainBackend
from tapwallet.errors import NetworkError, ParseError
from tapwallet.wallet.models import UTXO

DEFAULT_TIMEOUT = 5.0

DEFAULT_HEADERS = {"Accept": "application/json"}


class MempoolBackend(BlockchainBackend):
    """
    Blockchain backend using a mempool.space compatible REST API.
    """

    def __init__(
        self,
        base_url: str = "https://mempool.space/signet/api",
        timeout: float = DEFAULT_TIMEOUT,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={**DEFAULT_HEADERS, **(headers or {})},
            transport=transport,
        )

    async def _request(
        self, method: str, endpoint: str, content: str | None = None
    ) -> httpx.Response:
        """
        Perform a request and translate transport failures.

        Raises:
            NetworkError: On connection errors, timeouts and non-2xx responses
        """
        try:
            if method == "GET":
                response = await self.client.get(f"/{endpoint}")
            elif method == "POST":
                response = await self.client.post(
                    f"/{endpoint}", content=content, headers={"Content-Type": "text/plain"}
                )
            else:
                raise ValueError(f"Unsupported HTTP method: {method}")

            response.raise_for_status()
            return response

        except httpx.HTTPStatusError as e:
            body = e.response.text.strip()
            logger.error(f"API call failed: {method} {endpoint} - HTTP {e.response.status_code}")
            raise NetworkError(
                f"{method} {endpoint} failed", status_code=e.response.status_code, body=body
            ) from e
        except httpx.TimeoutException as e:
            logger.error(f"API call timed out after {self.timeout}s: {method} {endpoint}")
            raise NetworkError(f"{method} {endpoint} timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            logger.error(f"API call failed: {method} {endpoint} - {e}")
            raise NetworkError(f"{method} {endpoint} failed: {e}") from e

    async def _get_json(self, endpoint: str) -> Any:
        response = await self._request("GET", endpoint)
        try:
            return response.json()
        except ValueError as e:
            raise ParseError(f"Invalid JSON from {endpoint}: {e}") from e

    async def get_address_utxos(self, address: str) -> list[UTXO]:
        data = await self._get_json(f"address/{address}/utxo")
        if not isinstance(data, list):
            raise ParseError(f"Expected a UTXO list for {address}, got {type(data).__name__}")

        utxos: list[UTXO] = []
        for entry in data:
            try:
                status = entry.get("status") or {}
                utxos.append(
                    UTXO(
                        txid=str(entry["txid"]),
                        vout=int(entry["vout"]),
                        value=int(entry["value"]),
                        confirmed=bool(status.get("confirmed", False)),
                        block_height=status.get("block_height"),
                    )
                )
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed UTXO entry {entry!r}: {e}")

        logger.debug(f"Found {len(utxos)} UTXOs for {address}")
        return utxos

    async def get_transaction(self, txid: str) -> dict[str, Any]:
        data = await self._get_json(f"tx/{txid}")
        if not isinstance(data, dict):
            raise ParseError(f"Expected a transaction object for {txid}")
        return data

    async def get_recommended_fee_rate(self) -> float | None:
        data = await self._get_json("v1/fees/recommended")
        if not isinstance(data, dict):
            raise ParseError("Expected a fee recommendation object")

        rate = data.get("fastestFee")
        if rate is None:
            return None
        try:
            value = float(rate)
        except (TypeError, ValueError) as e:
            raise ParseError(f"Invalid fastestFee value: {rate!r}") from e
        if not math.isfinite(value):
            raise ParseError(f"Non-finite fastestFee value: {rate!r}")
        return value

    async def broadcast_transaction(self, tx_hex: str) -> str:
        response = await self._request("POST", "tx", content=tx_hex)
        txid = response.text.strip()
        logger.info(f"Broadcast transaction: {txid}")
        return txid

    async def close(self) -> None:
        await self.client.aclose()
