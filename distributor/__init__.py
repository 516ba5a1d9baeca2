"""
Epoch-based Merkle distribution ledger.

An administrator funds a pool and publishes a Merkle root per funding round
(epoch); holders of an inclusion proof for `(index, recipient, amount)` under
the current root redeem it exactly once. Creating a new epoch refunds the
leftover balance and cancels the previous one.

Public surface:

- DistributionLedger      create_epoch / claim / claimed / pause / transfer_admin
- ClaimTree, Claim        off-chain tree builder and proof generator
- claim_leaf, verify      leaf hashing and proof verification
- ClaimBitmap             sparse per-epoch claim record
- InMemoryToken           simulation token implementing FundingDelegate
- DistributorConfig       env-driven configuration (`load_config()`)
"""

from __future__ import annotations

from .bitmap import ClaimBitmap
from .config import DistributorConfig, load_config
from .delegate import FundingDelegate, Journaled
from .errors import (
    AlreadyClaimed,
    ConfigError,
    DistributorError,
    DistributorErrorCode,
    EpochCancelled,
    InvalidProof,
    Paused,
    TransferFailed,
    Unauthorized,
    UnknownEpoch,
    ValidationError,
)
from .ledger import DistributionLedger, Epoch
from .merkle import Claim, ClaimTree, PairOrdering, claim_leaf, verify
from .token import InMemoryToken, TokenHandle
from .version import __version__


def get_version() -> str:
    """Return the semantic version string for this package."""
    return __version__


__all__ = [
    "__version__",
    "get_version",
    "DistributionLedger",
    "Epoch",
    "Claim",
    "ClaimTree",
    "PairOrdering",
    "claim_leaf",
    "verify",
    "ClaimBitmap",
    "FundingDelegate",
    "Journaled",
    "InMemoryToken",
    "TokenHandle",
    "DistributorConfig",
    "load_config",
    "DistributorError",
    "DistributorErrorCode",
    "Unauthorized",
    "Paused",
    "AlreadyClaimed",
    "EpochCancelled",
    "InvalidProof",
    "TransferFailed",
    "UnknownEpoch",
    "ValidationError",
    "ConfigError",
]
