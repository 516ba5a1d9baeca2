"""
distributor.delegate — the funding delegate seam.

The ledger never moves value itself. It calls a *funding delegate* (an
ERC-20-like token handle acting on the ledger's behalf) and treats every call
as an untrusted callback: the delegate may fail, return False, or call back
into the ledger before returning.

Delegate API
------------
- balance_of(account: bytes) -> int
- transfer(to: bytes, amount: int) -> bool              # from the ledger's account
- transfer_from(sender: bytes, to: bytes, amount: int) -> bool

Optional journaling (used by the ledger's all-or-nothing scope):
- checkpoint() -> Any
- revert(checkpoint: Any) -> None

The `read_balance` / `safe_transfer` / `safe_transfer_from` wrappers map a
False return *or* any raised exception to TransferFailed. A None return counts
as success, matching tokens that return nothing.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol, runtime_checkable

from .errors import TransferFailed
from .utils.bytes import to_hex

log = logging.getLogger(__name__)


@runtime_checkable
class FundingDelegate(Protocol):
    def balance_of(self, account: bytes) -> int: ...
    def transfer(self, to: bytes, amount: int) -> bool: ...
    def transfer_from(self, sender: bytes, to: bytes, amount: int) -> bool: ...


@runtime_checkable
class Journaled(Protocol):
    def checkpoint(self) -> Any: ...
    def revert(self, checkpoint: Any) -> None: ...


def _check_result(ok: Optional[bool], operation: str, amount: int, **data: Any) -> None:
    if ok is not None and not ok:
        log.debug("delegate rejected %s", operation, extra={"amount": amount, **data})
        raise TransferFailed(operation, amount, **data)


def read_balance(delegate: FundingDelegate, account: bytes) -> int:
    try:
        bal = delegate.balance_of(account)
    except Exception as exc:
        raise TransferFailed("balance_of", 0, reason="raised", cause=exc, account=to_hex(account)).with_context(
            error=repr(exc)
        ) from exc
    if isinstance(bal, bool) or not isinstance(bal, int) or bal < 0:
        raise TransferFailed("balance_of", 0, reason="returned an invalid balance", account=to_hex(account))
    return bal


def safe_transfer(delegate: FundingDelegate, to: bytes, amount: int) -> None:
    try:
        ok = delegate.transfer(to, amount)
    except Exception as exc:
        raise TransferFailed("transfer", amount, reason="raised", cause=exc, to=to_hex(to)).with_context(
            error=repr(exc)
        ) from exc
    _check_result(ok, "transfer", amount, to=to_hex(to))


def safe_transfer_from(delegate: FundingDelegate, sender: bytes, to: bytes, amount: int) -> None:
    try:
        ok = delegate.transfer_from(sender, to, amount)
    except Exception as exc:
        raise TransferFailed("transfer_from", amount, reason="raised", cause=exc, sender=to_hex(sender), to=to_hex(to)).with_context(
            error=repr(exc)
        ) from exc
    _check_result(ok, "transfer_from", amount, sender=to_hex(sender), to=to_hex(to))


__all__ = [
    "FundingDelegate",
    "Journaled",
    "read_balance",
    "safe_transfer",
    "safe_transfer_from",
]
