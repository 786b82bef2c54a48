"""
Configuration management using pydantic-settings.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from tapwallet.constants import MINIMUM_FEE_RATE

MEMPOOL_API_URLS: dict[str, str] = {
    "mainnet": "https://mempool.space/api",
    "testnet": "https://mempool.space/testnet/api",
    "signet": "https://mempool.space/signet/api",
    "regtest": "http://127.0.0.1:3002/api",
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    network: Literal["mainnet", "testnet", "signet", "regtest"] = "signet"

    # Empty = public mempool.space instance for the selected network
    mempool_api_url: str = ""
    http_timeout: float = Field(default=5.0, gt=0)

    private_key_wif: SecretStr | None = None
    mnemonic: SecretStr | None = None
    keys_dir: Path = Path("keys")
    key_file_name: str = "private_key"

    min_fee_rate: int = Field(default=MINIMUM_FEE_RATE, ge=1, description="Floor in sat/vB")
    utxo_lookup_concurrency: int = Field(default=4, ge=1, le=32)

    log_level: str = "INFO"

    def get_api_url(self) -> str:
        if self.mempool_api_url:
            return self.mempool_api_url.rstrip("/")
        return MEMPOOL_API_URLS[self.network]

    @property
    def key_file(self) -> Path:
        return self.keys_dir / self.key_file_name


def get_settings() -> Settings:
    return Settings()
