"""
distributor.tests.conftest
==========================

Shared fixtures for the distributor test-suite.

- Stable, human-labelled 20-byte addresses derived via SHA3 (no `random`).
- A fresh in-memory token and a ledger factory wired to it.
- Small claim trees for both pair orderings.
- Environment isolation: DISTRIBUTOR_* variables are cleared and the cached
  config reset for every test; root logging handlers installed through
  `distributor.logging.configure` are removed again afterwards.
"""
from __future__ import annotations

import hashlib
import logging
import os
from typing import Callable, Dict, Optional

import pytest

from distributor.config import DistributorConfig, load_config
from distributor.ledger import DistributionLedger
from distributor.logging import JSONFormatter, TextFormatter, clear_context
from distributor.merkle import Claim, ClaimTree, PairOrdering
from distributor.token import InMemoryToken

ZERO_ROOT = b"\x00" * 32


def addr(label: str, n: int = 20) -> bytes:
    """Deterministic address for `label`."""
    return hashlib.sha3_256(b"distributor-tests|" + label.encode("utf-8")).digest()[:n]


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch):
    for k in list(os.environ):
        if k.startswith("DISTRIBUTOR_"):
            monkeypatch.delenv(k, raising=False)
    load_config.cache_clear()
    root = logging.getLogger()
    level = root.level
    yield
    load_config.cache_clear()
    clear_context()
    for h in list(root.handlers):
        if isinstance(h.formatter, (JSONFormatter, TextFormatter)):
            root.removeHandler(h)
    root.setLevel(level)


@pytest.fixture
def accounts() -> Dict[str, bytes]:
    return {name: addr(name) for name in ("admin", "funder", "treasury", "ledger", "alice", "bob", "carol", "dave", "mallory")}


@pytest.fixture
def cfg() -> DistributorConfig:
    return DistributorConfig()


@pytest.fixture
def token(accounts) -> InMemoryToken:
    t = InMemoryToken(addr("token"), symbol="DROP")
    t.mint(accounts["funder"], 10_000)
    t.approve(accounts["funder"], accounts["ledger"], 10_000)
    return t


def make_claims(accounts: Dict[str, bytes], n: int = 8) -> list:
    names = ["alice", "bob", "carol", "dave"]
    return [Claim(i, accounts[names[i % len(names)]], 10 * (i + 1)) for i in range(n)]


@pytest.fixture
def tree(accounts) -> ClaimTree:
    # Six claims: an odd layer appears one level up.
    return ClaimTree(make_claims(accounts, 6))


@pytest.fixture
def sorted_tree(accounts) -> ClaimTree:
    return ClaimTree(make_claims(accounts, 5), ordering=PairOrdering.SORTED)


@pytest.fixture
def make_ledger(accounts, token, cfg) -> Callable[..., DistributionLedger]:
    def _make(
        root: bytes = ZERO_ROOT,
        *,
        delegate=None,
        config: Optional[DistributorConfig] = None,
        paused: bool = False,
    ) -> DistributionLedger:
        return DistributionLedger(
            delegate if delegate is not None else token.bind(accounts["ledger"]),
            root,
            admin=accounts["admin"],
            address=accounts["ledger"],
            paused=paused,
            config=config or cfg,
        )

    return _make


@pytest.fixture
def funded(make_ledger, accounts, tree):
    """Ledger whose epoch 1 carries `tree`, funded with 1000 units."""
    ledger = make_ledger()
    ledger.create_epoch(accounts["admin"], accounts["funder"], accounts["treasury"], 1000, tree.root)
    return ledger
