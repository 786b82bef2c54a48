"""
Bitcoin address encoding and decoding.

Segwit addresses use bech32 (BIP173) for witness v0 and bech32m (BIP350)
for witness v1+ (Taproot). Legacy base58check addresses are accepted as
payment destinations only.
"""

from __future__ import annotations

import base58

from tapwallet.constants import P2TR_SCRIPT_LENGTH, P2TR_SCRIPT_PREFIX, XONLY_PUBKEY_LENGTH

CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
BECH32_CONST = 1
BECH32M_CONST = 0x2BC830A3

HRP_BY_NETWORK = {"mainnet": "bc", "testnet": "tb", "signet": "tb", "regtest": "bcrt"}

# (P2PKH, P2SH) base58 version bytes
BASE58_VERSIONS = {
    "mainnet": (0x00, 0x05),
    "testnet": (0x6F, 0xC4),
    "signet": (0x6F, 0xC4),
    "regtest": (0x6F, 0xC4),
}


def network_hrp(network: str) -> str:
    try:
        return HRP_BY_NETWORK[network]
    except KeyError:
        raise ValueError(f"Unknown network: {network}") from None


def bech32_polymod(values: list[int]) -> int:
    """Bech32 checksum polymod"""
    gen = [0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3]
    chk = 1
    for v in values:
        b = chk >> 25
        chk = (chk & 0x1FFFFFF) << 5 ^ v
        for i in range(5):
            chk ^= gen[i] if ((b >> i) & 1) else 0
    return chk


def bech32_hrp_expand(hrp: str) -> list[int]:
    """Expand HRP for bech32"""
    return [ord(x) >> 5 for x in hrp] + [0] + [ord(x) & 31 for x in hrp]


def bech32_create_checksum(hrp: str, data: list[int], const: int) -> list[int]:
    values = bech32_hrp_expand(hrp) + data
    polymod = bech32_polymod(values + [0, 0, 0, 0, 0, 0]) ^ const
    return [(polymod >> 5 * (5 - i)) & 31 for i in range(6)]


def bech32_encode(hrp: str, data: list[int], const: int = BECH32_CONST) -> str:
    combined = data + bech32_create_checksum(hrp, data, const)
    return hrp + "1" + "".join([CHARSET[d] for d in combined])


def bech32_decode(bech: str) -> tuple[str, list[int], int]:
    """Decode a bech32/bech32m string.

    Returns:
        (hrp, data without checksum, checksum constant that matched)
    """
    if any(ord(c) < 33 or ord(c) > 126 for c in bech):
        raise ValueError("Invalid character in address")
    if bech.lower() != bech and bech.upper() != bech:
        raise ValueError("Mixed case address")

    bech = bech.lower()
    pos = bech.rfind("1")
    if pos < 1 or pos + 7 > len(bech) or len(bech) > 90:
        raise ValueError("Invalid bech32 separator position or length")

    hrp = bech[:pos]
    try:
        data = [CHARSET.index(c) for c in bech[pos + 1 :]]
    except ValueError:
        raise ValueError("Invalid bech32 data character") from None

    const = bech32_polymod(bech32_hrp_expand(hrp) + data)
    if const not in (BECH32_CONST, BECH32M_CONST):
        raise ValueError("Invalid bech32 checksum")

    return hrp, data[:-6], const


def convertbits(data: bytes | list[int], frombits: int, tobits: int, pad: bool = True) -> list[int]:
    """Convert between bit groups"""
    acc = 0
    bits = 0
    ret = []
    maxv = (1 << tobits) - 1
    max_acc = (1 << (frombits + tobits - 1)) - 1

    for value in data:
        if value < 0 or (value >> frombits):
            raise ValueError("Invalid data range")
        acc = ((acc << frombits) | value) & max_acc
        bits += frombits
        while bits >= tobits:
            bits -= tobits
            ret.append((acc >> bits) & maxv)

    if pad:
        if bits:
            ret.append((acc << (tobits - bits)) & maxv)
    elif bits >= frombits or ((acc << (tobits - bits)) & maxv):
        raise ValueError("Invalid bits")

    return ret


def encode_segwit_address(hrp: str, witness_version: int, witness_program: bytes) -> str:
    const = BECH32_CONST if witness_version == 0 else BECH32M_CONST
    return bech32_encode(hrp, [witness_version] + convertbits(witness_program, 8, 5), const)


def decode_segwit_address(hrp: str, address: str) -> tuple[int, bytes]:
    """Decode a segwit address, enforcing BIP173/BIP350 rules.

    Returns:
        (witness_version, witness_program)
    """
    decoded_hrp, data, const = bech32_decode(address)
    if decoded_hrp != hrp:
        raise ValueError(f"Address HRP {decoded_hrp!r} does not match network HRP {hrp!r}")
    if not data:
        raise ValueError("Empty witness data")

    witness_version = data[0]
    if witness_version > 16:
        raise ValueError(f"Invalid witness version: {witness_version}")

    program = bytes(convertbits(data[1:], 5, 8, False))
    if len(program) < 2 or len(program) > 40:
        raise ValueError(f"Invalid witness program length: {len(program)}")
    if witness_version == 0 and len(program) not in (20, 32):
        raise ValueError(f"Invalid v0 witness program length: {len(program)}")

    expected_const = BECH32_CONST if witness_version == 0 else BECH32M_CONST
    if const != expected_const:
        raise ValueError("Wrong checksum variant for witness version")

    return witness_version, program


def output_key_to_p2tr_address(output_key: bytes, network: str = "mainnet") -> str:
    """Encode a 32-byte x-only output key as a P2TR (bech32m) address."""
    if len(output_key) != XONLY_PUBKEY_LENGTH:
        raise ValueError(f"Invalid x-only key length: {len(output_key)}")
    return encode_segwit_address(network_hrp(network), 1, output_key)


def output_key_to_p2tr_script(output_key: bytes) -> bytes:
    """Create P2TR scriptPubKey (OP_1 <32-byte-output-key>)"""
    if len(output_key) != XONLY_PUBKEY_LENGTH:
        raise ValueError(f"Invalid x-only key length: {len(output_key)}")
    return P2TR_SCRIPT_PREFIX + output_key


def extract_p2tr_output_key(script: bytes) -> bytes | None:
    """Return the output key of a single-key Taproot script, None for any other template."""
    if len(script) != P2TR_SCRIPT_LENGTH or not script.startswith(P2TR_SCRIPT_PREFIX):
        return None
    return script[len(P2TR_SCRIPT_PREFIX) :]


def address_to_scriptpubkey(address: str, network: str = "mainnet") -> bytes:
    """
    Convert a Bitcoin address to scriptPubKey.

    Supports:
    - P2TR (bc1p..., tb1p..., bcrt1p...)
    - P2WPKH / P2WSH (bc1q...)
    - P2PKH / P2SH (base58check)

    Raises:
        ValueError: If the address is malformed or belongs to another network
    """
    hrp = network_hrp(network)

    if address.lower().startswith(hrp + "1"):
        witness_version, program = decode_segwit_address(hrp, address)
        # OP_0 or OP_1..OP_16, then a direct push of the program
        version_op = 0x00 if witness_version == 0 else 0x50 + witness_version
        return bytes([version_op, len(program)]) + program

    try:
        decoded = base58.b58decode_check(address)
    except ValueError as e:
        raise ValueError(f"Invalid address {address!r}: {e}") from e

    if len(decoded) != 21:
        raise ValueError(f"Invalid base58 payload length: {len(decoded)}")

    version = decoded[0]
    payload = decoded[1:]
    p2pkh_version, p2sh_version = BASE58_VERSIONS[network]

    if version == p2pkh_version:
        # OP_DUP OP_HASH160 <20-byte-pubkeyhash> OP_EQUALVERIFY OP_CHECKSIG
        return bytes([0x76, 0xA9, 0x14]) + payload + bytes([0x88, 0xAC])
    if version == p2sh_version:
        # OP_HASH160 <20-byte-scripthash> OP_EQUAL
        return bytes([0xA9, 0x14]) + payload + bytes([0x87])

    raise ValueError(f"Address version {version} is not valid on {network}")
