"""
distributor.config — leaf layout, proof convention, bitmap width and logging defaults.

Configuration precedence:
  1) Environment variables (DISTRIBUTOR_*)
  2) Hardcoded safe defaults below

Key env vars:
  - DISTRIBUTOR_WORD_BITS       (int)   default: 256         claim bitmap word width
  - DISTRIBUTOR_ADDRESS_BYTES   (int)   default: 20          recipient width inside a leaf
  - DISTRIBUTOR_HASH            (str)   default: keccak256   keccak256 | sha3_256
  - DISTRIBUTOR_PAIR_ORDERING   (str)   default: positional  positional | sorted
  - DISTRIBUTOR_LOG_LEVEL       (str)   default: WARNING
  - DISTRIBUTOR_LOG_FORMAT      (str)   default: text        text | json

Numeric values are clamped into their allowed range; unknown names for the
hash, ordering or log format raise ConfigError.

Usage:
    from distributor.config import load_config
    CFG = load_config()
    ledger = DistributionLedger(..., config=CFG)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Any, Dict

from .errors import ConfigError
from .merkle import PairOrdering
from .utils.hash import HASHERS, Hasher, get_hasher

_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")
_LOG_FORMATS = ("text", "json")


# ----------------------------- helpers ---------------------------------------


def _env_int(name: str, default: int, *, min_v: int, max_v: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        v = int(raw, 0)
    except ValueError:
        return default
    if v < min_v:
        return min_v
    if v > max_v:
        return max_v
    return v


def _env_choice(name: str, default: str, choices: tuple) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    val = raw.strip()
    for c in choices:
        if val.lower() == c.lower():
            return c
    raise ConfigError(f"{name} must be one of {', '.join(choices)}", value=raw)


# ------------------------------- config --------------------------------------


@dataclass(frozen=True)
class DistributorConfig:
    # Claim bitmap
    word_bits: int = 256

    # Leaf encoding / proof verification
    address_bytes: int = 20
    hash_name: str = "keccak256"
    pair_ordering: PairOrdering = PairOrdering.POSITIONAL

    # Logging
    log_level: str = "WARNING"
    log_format: str = "text"

    def __post_init__(self) -> None:
        if self.word_bits < 8 or self.word_bits % 8 != 0:
            raise ConfigError("word_bits must be a positive multiple of 8", word_bits=self.word_bits)
        if not 1 <= self.address_bytes <= 64:
            raise ConfigError("address_bytes must be in 1..64", address_bytes=self.address_bytes)
        if self.hash_name not in HASHERS:
            raise ConfigError("unknown hash function", name=self.hash_name)
        object.__setattr__(self, "pair_ordering", PairOrdering(self.pair_ordering))

    @property
    def hasher(self) -> Hasher:
        return get_hasher(self.hash_name)

    def with_overrides(self, **changes: Any) -> "DistributorConfig":
        return replace(self, **changes)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "word_bits": self.word_bits,
            "address_bytes": self.address_bytes,
            "hash_name": self.hash_name,
            "pair_ordering": self.pair_ordering.value,
            "log_level": self.log_level,
            "log_format": self.log_format,
        }


@lru_cache(maxsize=1)
def load_config() -> DistributorConfig:
    """
    Build and cache a DistributorConfig from environment + safe defaults.
    Tests that change the environment call `load_config.cache_clear()`.
    """
    return DistributorConfig(
        # 8 bits minimum keeps word addressing byte-aligned; 4096 bounds a single word.
        word_bits=_env_int("DISTRIBUTOR_WORD_BITS", 256, min_v=8, max_v=4096) // 8 * 8,
        address_bytes=_env_int("DISTRIBUTOR_ADDRESS_BYTES", 20, min_v=1, max_v=64),
        hash_name=_env_choice("DISTRIBUTOR_HASH", "keccak256", tuple(HASHERS)),
        pair_ordering=PairOrdering(
            _env_choice("DISTRIBUTOR_PAIR_ORDERING", "positional", tuple(o.value for o in PairOrdering))
        ),
        log_level=_env_choice("DISTRIBUTOR_LOG_LEVEL", "WARNING", _LOG_LEVELS),
        log_format=_env_choice("DISTRIBUTOR_LOG_FORMAT", "text", _LOG_FORMATS),
    )


__all__ = ["DistributorConfig", "load_config"]
