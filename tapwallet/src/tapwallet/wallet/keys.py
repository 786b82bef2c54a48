"""
Taproot key handling: WIF codec, BIP86 key-path tweak and the key source.

The wallet address commits to the BIP86 output key Q = P + H_TapTweak(P)G,
where P is the even-Y internal key. Signing uses the matching tweaked secret.
"""

from __future__ import annotations

import os
from pathlib import Path

import base58
from coincurve import PrivateKey, PublicKeyXOnly
from loguru import logger

from tapwallet.config import Settings
from tapwallet.constants import XONLY_PUBKEY_LENGTH
from tapwallet.errors import CredentialError, KeyValidationError
from tapwallet.wallet.address import output_key_to_p2tr_address, output_key_to_p2tr_script
from tapwallet.wallet.bip32 import SECP256K1_N, HDKey, bip86_path, mnemonic_to_seed
from tapwallet.wallet.transaction import tagged_hash

WIF_MAINNET_PREFIX = 0x80
WIF_TESTNET_PREFIX = 0xEF


def wif_prefix(network: str) -> int:
    return WIF_MAINNET_PREFIX if network == "mainnet" else WIF_TESTNET_PREFIX


class TaprootKey:
    """
    Single-key Taproot wallet key.

    Wraps a coincurve PrivateKey (the internal key). The output key and
    address are derived on every access rather than cached.
    """

    def __init__(self, private_key: PrivateKey):
        self._private_key = private_key

    @classmethod
    def generate(cls) -> TaprootKey:
        return cls(PrivateKey())

    @classmethod
    def from_secret(cls, secret: bytes) -> TaprootKey:
        if len(secret) != 32:
            raise CredentialError(f"Invalid secret length: {len(secret)}")
        try:
            return cls(PrivateKey(secret))
        except ValueError as e:
            raise CredentialError(f"Invalid secret key: {e}") from e

    @classmethod
    def from_wif(cls, wif: str, network: str | None = None) -> TaprootKey:
        """Load a key from WIF.

        Args:
            wif: Base58check WIF string (compressed or uncompressed form)
            network: If given, the WIF prefix must belong to this network
        """
        try:
            payload = base58.b58decode_check(wif.strip())
        except ValueError as e:
            raise CredentialError(f"Invalid WIF format: {e}") from e

        if len(payload) == 34 and payload[-1] == 0x01:
            secret = payload[1:33]
        elif len(payload) == 33:
            secret = payload[1:]
        else:
            raise CredentialError(f"Invalid WIF payload length: {len(payload)}")

        prefix = payload[0]
        if prefix not in (WIF_MAINNET_PREFIX, WIF_TESTNET_PREFIX):
            raise CredentialError(f"Unknown WIF prefix: {prefix:#x}")
        if network is not None and prefix != wif_prefix(network):
            raise CredentialError(f"WIF key does not belong to {network}")

        return cls.from_secret(secret)

    def to_wif(self, network: str = "mainnet") -> str:
        payload = bytes([wif_prefix(network)]) + self._private_key.secret + b"\x01"
        return base58.b58encode_check(payload).decode("ascii")

    @property
    def internal_key(self) -> bytes:
        """32-byte x-only internal public key"""
        return self._private_key.public_key.format(compressed=True)[1:]

    def _tweak(self) -> int:
        tweak = int.from_bytes(tagged_hash("TapTweak", self.internal_key), "big")
        if tweak >= SECP256K1_N:
            raise KeyValidationError("TapTweak exceeds curve order")
        return tweak

    @property
    def tweaked_private_key(self) -> PrivateKey:
        secret = int.from_bytes(self._private_key.secret, "big")
        # BIP340 keys are implicitly even-Y: negate the secret if P has odd Y
        if self._private_key.public_key.format(compressed=True)[0] == 0x03:
            secret = SECP256K1_N - secret

        tweaked = (secret + self._tweak()) % SECP256K1_N
        if tweaked == 0:
            raise KeyValidationError("Tweaked secret is zero")
        return PrivateKey(tweaked.to_bytes(32, "big"))

    @property
    def output_key(self) -> bytes:
        """32-byte x-only BIP86 output key committed to by the address"""
        output_key = self.tweaked_private_key.public_key.format(compressed=True)[1:]
        if len(output_key) != XONLY_PUBKEY_LENGTH:
            raise KeyValidationError("Failed to derive a 32-byte output key")
        return output_key

    @property
    def script_pubkey(self) -> bytes:
        return output_key_to_p2tr_script(self.output_key)

    def address(self, network: str = "mainnet") -> str:
        return output_key_to_p2tr_address(self.output_key, network)

    def sign_schnorr(self, message: bytes) -> bytes:
        """BIP340 Schnorr signature over a 32-byte digest with the tweaked key."""
        if len(message) != 32:
            raise ValueError(f"Schnorr signing requires a 32-byte digest, got {len(message)}")
        return self.tweaked_private_key.sign_schnorr(message)


def verify_schnorr(output_key: bytes, message: bytes, signature: bytes) -> bool:
    try:
        return PublicKeyXOnly(output_key).verify(signature, message)
    except ValueError:
        return False


def key_from_mnemonic(mnemonic: str, network: str, passphrase: str = "") -> TaprootKey:
    """Derive the first BIP86 receive key from a BIP39 mnemonic."""
    words = mnemonic.split()
    if len(words) not in (12, 15, 18, 21, 24):
        raise CredentialError(f"Invalid mnemonic word count: {len(words)}")

    master = HDKey.from_seed(mnemonic_to_seed(" ".join(words), passphrase))
    return TaprootKey(master.derive(bip86_path(network)).private_key)


def load_key(settings: Settings) -> TaprootKey:
    """
    Load the wallet key from configuration.

    Sources, in order: PRIVATE_KEY_WIF, the generated key file, MNEMONIC.

    Raises:
        CredentialError: If no source is configured or the secret is malformed
    """
    network = settings.network

    if settings.private_key_wif is not None:
        wif = settings.private_key_wif.get_secret_value().strip()
        if wif:
            logger.debug("Loading key from PRIVATE_KEY_WIF")
            return TaprootKey.from_wif(wif, network)

    key_file = settings.key_file
    if key_file.exists():
        logger.debug(f"Loading key from {key_file}")
        return TaprootKey.from_wif(key_file.read_text().strip(), network)

    if settings.mnemonic is not None:
        mnemonic = settings.mnemonic.get_secret_value().strip()
        if mnemonic:
            logger.debug("Deriving key from MNEMONIC (BIP86)")
            return key_from_mnemonic(mnemonic, network)

    raise CredentialError(
        "No wallet key configured. Set PRIVATE_KEY_WIF or MNEMONIC, or run 'generate --save'"
    )


def save_key_file(path: Path, wif: str) -> None:
    """Write a WIF to disk, readable by the owner only."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(wif)
    os.chmod(path, 0o600)


def update_env_file(env_path: Path, wif: str) -> bool:
    """Point PRIVATE_KEY_WIF in an existing .env file at the new key.

    Returns:
        False if the file does not exist (nothing written)
    """
    if not env_path.exists():
        return False

    lines = env_path.read_text().splitlines()
    entry = f"PRIVATE_KEY_WIF='{wif}'"
    updated = [entry if line.startswith("PRIVATE_KEY_WIF=") else line for line in lines]
    if entry not in updated:
        updated.append(entry)

    env_path.write_text("\n".join(updated) + "\n")
    return True
