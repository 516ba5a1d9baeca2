"""
distributor.utils.bytes — coercion and fixed-width integer helpers.

Addresses, roots and proof elements are raw `bytes` inside the ledger. Hex
strings (with or without "0x") are accepted at the edges and normalized here;
odd-length or non-hex strings are rejected.
"""

from __future__ import annotations

from typing import Any, Union

from ..errors import ValidationError

BytesLike = Union[bytes, bytearray, memoryview]

U256_MAX = (1 << 256) - 1
HASH_BYTES = 32


def _strip_0x(s: str) -> str:
    return s[2:] if s.startswith(("0x", "0X")) else s


def to_bytes(value: Union[BytesLike, str], *, name: str = "value") -> bytes:
    """
    Coerce `value` to bytes.
    - If str, interpret as hex (with or without '0x').
    - If a bytes-like object, copy to immutable bytes.
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        h = _strip_0x(value.strip())
        if len(h) % 2 != 0:
            raise ValidationError(f"{name}: hex string must have even length", length=len(h))
        try:
            return bytes.fromhex(h)
        except ValueError as e:
            raise ValidationError(f"{name}: invalid hex string", value=value) from e
    raise ValidationError(f"{name}: cannot convert {type(value).__name__} to bytes")


def to_hex(b: BytesLike) -> str:
    """Encode bytes as 0x-prefixed lowercase hex."""
    return "0x" + bytes(b).hex()


def require_uint(value: Any, *, name: str = "value", bits: int = 256) -> int:
    """Return `value` if it is an int in [0, 2**bits - 1]; raise ValidationError otherwise."""
    # bool is an int subclass; it is never a valid amount or index.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be int", py_type=type(value).__name__)
    if value < 0:
        raise ValidationError(f"{name} must be non-negative", value=value)
    if value.bit_length() > bits:
        raise ValidationError(f"{name} exceeds {bits}-bit range", bits=value.bit_length())
    return value


def encode_uint(value: int, *, bits: int = 256) -> bytes:
    """Big-endian, fixed-width unsigned encoding (uint256 → 32 bytes)."""
    require_uint(value, bits=bits)
    return value.to_bytes(bits // 8, "big")


def require_fixed(value: Union[BytesLike, str], length: int, *, name: str = "value") -> bytes:
    """Coerce to bytes and enforce an exact byte length."""
    b = to_bytes(value, name=name)
    if len(b) != length:
        raise ValidationError(f"{name} must be exactly {length} bytes", length=len(b))
    return b


def require_hash(value: Union[BytesLike, str], *, name: str = "hash") -> bytes:
    return require_fixed(value, HASH_BYTES, name=name)


__all__ = [
    "BytesLike",
    "U256_MAX",
    "HASH_BYTES",
    "to_bytes",
    "to_hex",
    "require_uint",
    "encode_uint",
    "require_fixed",
    "require_hash",
]
