"""Byte coercion and hashing helpers shared by the distributor modules."""

from .bytes import (
    HASH_BYTES,
    U256_MAX,
    encode_uint,
    require_fixed,
    require_hash,
    require_uint,
    to_bytes,
    to_hex,
)
from .hash import get_hasher, hash_concat, keccak256, sha3_256

__all__ = [
    "HASH_BYTES",
    "U256_MAX",
    "encode_uint",
    "require_fixed",
    "require_hash",
    "require_uint",
    "to_bytes",
    "to_hex",
    "get_hasher",
    "hash_concat",
    "keccak256",
    "sha3_256",
]
