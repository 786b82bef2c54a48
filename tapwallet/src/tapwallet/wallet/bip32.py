"""
BIP32 HD key derivation, used to derive the BIP86 (single-key Taproot) wallet
key from a BIP39 mnemonic.
"""

from __future__ import annotations

import hashlib
import hmac

from coincurve import PrivateKey, PublicKey

# secp256k1 curve order
SECP256K1_N = int("FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16)

HARDENED_OFFSET = 0x80000000


def bip86_path(network: str, account: int = 0, change: int = 0, index: int = 0) -> str:
    """m/86'/coin'/account'/change/index, coin 0 on mainnet and 1 elsewhere"""
    coin_type = 0 if network == "mainnet" else 1
    return f"m/86'/{coin_type}'/{account}'/{change}/{index}"


def parse_path(path: str) -> list[int]:
    """Parse "m/86'/0'/0'/0/0" into child indexes (' or h marks hardened)."""
    if not path.startswith("m"):
        raise ValueError("Path must start with 'm'")

    indexes = []
    for part in path.split("/")[1:]:
        if not part:
            continue
        hardened = part.endswith(("'", "h"))
        index = int(part.rstrip("'h"))
        if index >= HARDENED_OFFSET:
            raise ValueError(f"Path index out of range: {part}")
        indexes.append(index + HARDENED_OFFSET if hardened else index)
    return indexes


class HDKey:
    """
    Hierarchical Deterministic private key (BIP32).
    """

    def __init__(self, private_key: PrivateKey, chain_code: bytes):
        self._private_key = private_key
        self.chain_code = chain_code

    @property
    def private_key(self) -> PrivateKey:
        return self._private_key

    @property
    def public_key(self) -> PublicKey:
        return self._private_key.public_key

    @classmethod
    def from_seed(cls, seed: bytes) -> HDKey:
        """Create master HD key from seed"""
        digest = hmac.new(b"Bitcoin seed", seed, hashlib.sha512).digest()
        return cls(PrivateKey(digest[:32]), digest[32:])

    def derive(self, path: str) -> HDKey:
        key = self
        for index in parse_path(path):
            key = key.derive_child(index)
        return key

    def derive_child(self, index: int) -> HDKey:
        if index >= HARDENED_OFFSET:
            data = b"\x00" + self._private_key.secret + index.to_bytes(4, "big")
        else:
            data = self.public_key.format(compressed=True) + index.to_bytes(4, "big")

        digest = hmac.new(self.chain_code, data, hashlib.sha512).digest()
        offset = int.from_bytes(digest[:32], "big")
        if offset >= SECP256K1_N:
            raise ValueError("Invalid child key offset")

        child = (int.from_bytes(self._private_key.secret, "big") + offset) % SECP256K1_N
        if child == 0:
            raise ValueError("Invalid child key")

        return HDKey(PrivateKey(child.to_bytes(32, "big")), digest[32:])


def mnemonic_to_seed(mnemonic: str, passphrase: str = "") -> bytes:
    """
    Convert BIP39 mnemonic to seed (PBKDF2-HMAC-SHA512, 2048 rounds).
    The word list checksum is not validated.
    """
    mnemonic_bytes = mnemonic.encode("utf-8")
    salt = ("mnemonic" + passphrase).encode("utf-8")
    return hashlib.pbkdf2_hmac("sha512", mnemonic_bytes, salt, 2048, dklen=64)
