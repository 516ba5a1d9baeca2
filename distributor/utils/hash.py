"""
distributor.utils.hash — hashing wrappers used for leaves and inner nodes.

Strictly bytes-in, bytes-out. Keccak-256 (the pre-standard SHA-3 variant used by
Ethereum-style tooling) comes from PyCryptodome; SHA3-256 comes from hashlib.

Provided APIs
-------------
- keccak256(data) -> bytes
- sha3_256(data) -> bytes
- hash_concat(*chunks, hasher=keccak256) -> bytes
- get_hasher(name) -> Callable[[bytes], bytes]
"""

from __future__ import annotations

import hashlib
from typing import Callable, Dict

from Crypto.Hash import keccak as _keccak

from ..errors import ConfigError, ValidationError
from .bytes import BytesLike

Hasher = Callable[[bytes], bytes]


def _ensure_bytes(buf: object, name: str) -> bytes:
    if isinstance(buf, (bytes, bytearray, memoryview)):
        return bytes(buf)
    raise ValidationError(f"{name} must be bytes-like", py_type=type(buf).__name__)


def keccak256(data: BytesLike) -> bytes:
    """Keccak-256 (Ethereum flavour, not FIPS-202 SHA3-256)."""
    h = _keccak.new(digest_bits=256)
    h.update(_ensure_bytes(data, "data"))
    return h.digest()


def sha3_256(data: BytesLike) -> bytes:
    return hashlib.sha3_256(_ensure_bytes(data, "data")).digest()


def hash_concat(*chunks: BytesLike, hasher: Hasher = keccak256) -> bytes:
    """Hash the tight concatenation of `chunks` (no separators, no length prefixes)."""
    return hasher(b"".join(_ensure_bytes(c, f"chunk[{i}]") for i, c in enumerate(chunks)))


HASHERS: Dict[str, Hasher] = {
    "keccak256": keccak256,
    "sha3_256": sha3_256,
}


def get_hasher(name: str) -> Hasher:
    try:
        return HASHERS[name.strip().lower()]
    except KeyError:
        raise ConfigError("unknown hash function", name=name, known=sorted(HASHERS)) from None


def hasher_name(fn: Hasher) -> str:
    for name, candidate in HASHERS.items():
        if candidate is fn:
            return name
    return getattr(fn, "__name__", "custom")


__all__ = [
    "Hasher",
    "keccak256",
    "sha3_256",
    "hash_concat",
    "HASHERS",
    "get_hasher",
    "hasher_name",
]
