"""Bech32 addresses for ed25519 public keys."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

PUBLIC_KEY_LEN = 32

_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_GENERATOR = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)
_CHECKSUM_LEN = 6
_MAX_LEN = 90
_MIN_LEN = 8


class AddressError(ValueError):
    """An address could not be built or parsed."""


def _polymod(values: Iterable[int]) -> int:
    chk = 1
    for value in values:
        top = chk >> 25
        chk = ((chk & 0x1FFFFFF) << 5) ^ value
        for i, gen in enumerate(_GENERATOR):
            if (top >> i) & 1:
                chk ^= gen
    return chk


def _hrp_expand(hrp: str) -> list[int]:
    return [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]


def _create_checksum(hrp: str, data: Sequence[int]) -> list[int]:
    mod = _polymod([*_hrp_expand(hrp), *data, *([0] * _CHECKSUM_LEN)]) ^ 1
    return [(mod >> 5 * (5 - i)) & 31 for i in range(_CHECKSUM_LEN)]


def _convert_bits(data: Iterable[int], from_bits: int, to_bits: int, pad: bool) -> list[int]:
    acc = 0
    bits = 0
    out: list[int] = []
    maxv = (1 << to_bits) - 1
    max_acc = (1 << (from_bits + to_bits - 1)) - 1
    for value in data:
        if value < 0 or value >> from_bits:
            raise AddressError("invalid data range")
        acc = ((acc << from_bits) | value) & max_acc
        bits += from_bits
        while bits >= to_bits:
            bits -= to_bits
            out.append((acc >> bits) & maxv)
    if pad:
        if bits:
            out.append((acc << (to_bits - bits)) & maxv)
    elif bits >= from_bits or (acc << (to_bits - bits)) & maxv:
        raise AddressError("invalid padding")
    return out


def _encode(hrp: str, payload: bytes) -> str:
    if not hrp:
        raise AddressError("empty human-readable part")
    hrp = hrp.lower()
    data = _convert_bits(payload, 8, 5, pad=True)
    combined = data + _create_checksum(hrp, data)
    text = hrp + "1" + "".join(_CHARSET[d] for d in combined)
    if len(text) > _MAX_LEN:
        raise AddressError("address is too long")
    return text


def _decode(text: str) -> tuple[str, list[int]]:
    if not _MIN_LEN <= len(text) <= _MAX_LEN:
        raise AddressError("invalid address length")
    if any(not 33 <= ord(c) <= 126 for c in text):
        raise AddressError("invalid character in address")
    lower = text.lower()
    if text != lower and text != text.upper():
        raise AddressError("mixed case in address")
    pos = lower.rfind("1")
    if pos < 1 or pos + _CHECKSUM_LEN + 1 > len(lower):
        raise AddressError("invalid separator position")
    hrp = lower[:pos]
    data = [_CHARSET.find(c) for c in lower[pos + 1 :]]
    if -1 in data:
        raise AddressError("invalid character in data part")
    if _polymod(_hrp_expand(hrp) + data) != 1:
        raise AddressError("invalid checksum")
    return hrp, data[:-_CHECKSUM_LEN]


def address(public_key: bytes, hrp: str) -> str:
    """Return the bech32 address of a public key under ``hrp``."""
    key = bytes(public_key)
    if len(key) != PUBLIC_KEY_LEN:
        raise AddressError(f"public key must be {PUBLIC_KEY_LEN} bytes")
    return _encode(hrp, key)


def parse_address(text: str, hrp: str) -> bytes:
    """Return the public key encoded in a bech32 address under ``hrp``."""
    found_hrp, data = _decode(text)
    if found_hrp != hrp.lower():
        raise AddressError(f"incorrect hrp: expected {hrp!r}, found {found_hrp!r}")
    payload = bytes(_convert_bits(data, 5, 8, pad=False))
    if len(payload) != PUBLIC_KEY_LEN:
        raise AddressError("invalid public key size")
    return payload