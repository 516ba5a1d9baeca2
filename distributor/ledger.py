"""
distributor.ledger — epoch-based Merkle distribution ledger.

An administrator funds a pool and publishes a Merkle root per funding round
("epoch"). Anyone holding an inclusion proof for `(index, recipient, amount)`
under the *current* epoch's root can redeem it once.

Operations
----------
- create_epoch(caller, funding_source, refund_target, amount, new_root) -> True
- claim(index, recipient, amount, proof) -> True
- claimed(index, epoch_id) -> bool
- pause(caller, flag) -> True
- transfer_admin(caller, new_admin) -> True

State
-----
All mutable state (epoch table, per-epoch claim bitmaps, admin, pause flag)
lives in one `LedgerState` owned by the ledger instance. The epoch table is
append-only: roots never change and `cancelled` only goes from False to True.
Only the last epoch is current; older bitmaps stay readable but no operation
writes to them again.

Atomicity
---------
Each mutating operation holds the ledger's re-entrant lock and runs inside an
all-or-nothing scope. If anything raises, the ledger state and event log are
restored to their values at operation start, and so is the funding delegate
when it supports `checkpoint()` / `revert()`. The exception then propagates.
Bitmap writes are journaled one word at a time; a savepoint holds no bitmap
copies.

Delegate calls hand control to external code. `claim` sets the bitmap bit
before paying out, so a delegate that re-enters `claim` for the same index hits
AlreadyClaimed. `create_epoch` pays out before mutating epochs; it is admin
only, and a reentrant call from the delegate would need the admin identity.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from .access import AccessGate
from .bitmap import ClaimBitmap
from .config import DistributorConfig, load_config
from .delegate import FundingDelegate, Journaled, read_balance, safe_transfer, safe_transfer_from
from .errors import (
    AlreadyClaimed,
    EpochCancelled,
    InvalidProof,
    Paused,
    UnknownEpoch,
    ValidationError,
)
from .events import (
    EV_ADMIN_TRANSFERRED,
    EV_CLAIMED,
    EV_DISTRIBUTION_CREATED,
    EV_PAUSE_CHANGED,
    EventLog,
)
from .merkle import claim_leaf, verify
from .utils.bytes import require_hash, require_uint, to_bytes, to_hex

log = logging.getLogger(__name__)

AddressLike = Union[bytes, str]


@dataclass(frozen=True)
class Epoch:
    epoch_id: int
    merkle_root: bytes
    cancelled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"epoch_id": self.epoch_id, "merkle_root": to_hex(self.merkle_root), "cancelled": self.cancelled}


@dataclass(frozen=True)
class Savepoint:
    admin: bytes
    paused: bool
    epoch_count: int
    current: Epoch
    journal_len: int


@dataclass
class LedgerState:
    gate: AccessGate
    paused: bool
    epochs: List[Epoch] = field(default_factory=list)
    bitmaps: Dict[int, ClaimBitmap] = field(default_factory=dict)
    # (epoch_id, word_index, previous word) for every bitmap write in the
    # outermost open operation.
    journal: List[Tuple[int, int, int]] = field(default_factory=list)

    @property
    def current(self) -> Epoch:
        return self.epochs[-1]

    def cancel_current(self) -> Epoch:
        epoch = replace(self.current, cancelled=True)
        self.epochs[-1] = epoch
        return epoch

    def open_epoch(self, root: bytes, word_bits: int) -> Epoch:
        epoch = Epoch(self.current.epoch_id + 1, root)
        self.epochs.append(epoch)
        self.bitmaps[epoch.epoch_id] = ClaimBitmap(word_bits)
        return epoch

    def mark(self, epoch_id: int, index: int) -> None:
        bitmap = self.bitmaps[epoch_id]
        word_index, _ = bitmap.locate(index)
        self.journal.append((epoch_id, word_index, bitmap.word(word_index)))
        bitmap.mark(index)

    def savepoint(self) -> Savepoint:
        return Savepoint(
            admin=self.gate.admin,
            paused=self.paused,
            epoch_count=len(self.epochs),
            current=self.current,
            journal_len=len(self.journal),
        )

    def rollback(self, sp: Savepoint) -> None:
        # In place, so references to this LedgerState held by an outer
        # operation stay valid after a nested operation rolls back.
        while len(self.journal) > sp.journal_len:
            epoch_id, word_index, word = self.journal.pop()
            self.bitmaps[epoch_id].set_word(word_index, word)
        for epoch in self.epochs[sp.epoch_count:]:
            del self.bitmaps[epoch.epoch_id]
        del self.epochs[sp.epoch_count:]
        self.epochs[-1] = sp.current
        self.paused = sp.paused
        if self.gate.admin != sp.admin:
            self.gate = AccessGate(sp.admin)


class DistributionLedger:
    def __init__(
        self,
        token: FundingDelegate,
        initial_root: Union[bytes, str],
        *,
        admin: AddressLike,
        address: AddressLike,
        paused: bool = False,
        config: Optional[DistributorConfig] = None,
    ) -> None:
        if not isinstance(token, FundingDelegate):
            raise ValidationError("token must implement balance_of/transfer/transfer_from")
        self._config = config or load_config()
        self._token = token
        self._address = to_bytes(address, name="address")
        self._hasher = self._config.hasher
        self._state = LedgerState(
            gate=AccessGate(admin),
            paused=bool(paused),
            epochs=[Epoch(0, require_hash(initial_root, name="initial_root"))],
            bitmaps={0: ClaimBitmap(self._config.word_bits)},
        )
        self._events = EventLog()
        self._lock = threading.RLock()
        self._depth = 0
        log.info(
            "ledger constructed",
            extra={"ledger": to_hex(self._address), "root": to_hex(self._state.current.merkle_root), "paused": bool(paused)},
        )

    # ------------------------------------------------------------------ #
    # All-or-nothing scope
    # ------------------------------------------------------------------ #

    @contextmanager
    def _atomic(self, action: str) -> Iterator[LedgerState]:
        with self._lock:
            saved = self._state.savepoint()
            mark = len(self._events)
            cp = self._token.checkpoint() if isinstance(self._token, Journaled) else None
            self._depth += 1
            try:
                yield self._state
            except BaseException as exc:
                self._state.rollback(saved)
                self._events.truncate(mark)
                if cp is not None:
                    self._token.revert(cp)
                log.debug("%s rolled back", action, extra={"error": type(exc).__name__})
                raise
            finally:
                self._depth -= 1
                if self._depth == 0:
                    self._state.journal.clear()

    # ------------------------------------------------------------------ #
    # Privileged operations
    # ------------------------------------------------------------------ #

    def create_epoch(
        self,
        caller: AddressLike,
        funding_source: AddressLike,
        refund_target: AddressLike,
        amount: int,
        new_root: Union[bytes, str],
    ) -> bool:
        """
        Refund the whole current balance to `refund_target`, pull `amount` from
        `funding_source`, cancel the current epoch and install `new_root` as the
        next one. Clears the pause flag.
        """
        with self._atomic("create_epoch") as st:
            st.gate.require_admin(caller, "create_epoch")
            source = to_bytes(funding_source, name="funding_source")
            refund = to_bytes(refund_target, name="refund_target")
            require_uint(amount, name="amount")
            root = require_hash(new_root, name="new_root")

            leftover = read_balance(self._token, self._address)
            safe_transfer(self._token, refund, leftover)
            safe_transfer_from(self._token, source, self._address, amount)

            st.cancel_current()
            epoch = st.open_epoch(root, self._config.word_bits)
            st.paused = False

            self._events.emit(EV_DISTRIBUTION_CREATED, {"root": root, "epoch_id": epoch.epoch_id})

        log.info(
            "epoch created",
            extra={"epoch_id": epoch.epoch_id, "root": to_hex(root), "amount": amount, "refunded": leftover},
        )
        return True

    def pause(self, caller: AddressLike, flag: bool) -> bool:
        """Admin-only: block (True) or re-allow (False) every claim."""
        with self._atomic("pause") as st:
            st.gate.require_admin(caller, "pause")
            st.paused = bool(flag)
            self._events.emit(EV_PAUSE_CHANGED, {"paused": st.paused})
        log.info("pause changed", extra={"paused": bool(flag)})
        return True

    def transfer_admin(self, caller: AddressLike, new_admin: AddressLike) -> bool:
        """Admin-only: hand the admin role to `new_admin` (not validated)."""
        with self._atomic("transfer_admin") as st:
            previous = st.gate.transfer(caller, new_admin)
            self._events.emit(EV_ADMIN_TRANSFERRED, {"previous": previous, "new": st.gate.admin})
        log.info("admin transferred", extra={"previous": to_hex(previous), "new": to_hex(st.gate.admin)})
        return True

    # ------------------------------------------------------------------ #
    # Redemption
    # ------------------------------------------------------------------ #

    def claim(
        self,
        index: int,
        recipient: AddressLike,
        amount: int,
        proof: Sequence[Union[bytes, str]],
    ) -> bool:
        """Redeem `amount` for `recipient` under the current epoch's root."""
        require_uint(index, name="index")
        with self._atomic("claim") as st:
            current = st.current
            if st.paused:
                raise Paused(current.epoch_id)
            bitmap = st.bitmaps[current.epoch_id]
            if bitmap.is_set(index):
                raise AlreadyClaimed(current.epoch_id, index)
            if current.cancelled:
                raise EpochCancelled(current.epoch_id)

            to = to_bytes(recipient, name="recipient")
            leaf = claim_leaf(
                index,
                to,
                amount,
                address_bytes=self._config.address_bytes,
                hasher=self._hasher,
            )
            siblings = [to_bytes(p, name=f"proof[{i}]") for i, p in enumerate(proof)]
            if not verify(
                siblings,
                current.merkle_root,
                leaf,
                index=index,
                ordering=self._config.pair_ordering,
                hasher=self._hasher,
            ):
                raise InvalidProof(current.epoch_id, index)

            # Effects before the external call.
            st.mark(current.epoch_id, index)
            safe_transfer(self._token, to, amount)

            self._events.emit(EV_CLAIMED, {"index": index, "recipient": to, "amount": amount})

        log.debug("claimed", extra={"epoch_id": current.epoch_id, "index": index, "recipient": to_hex(to), "amount": amount})
        return True

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def claimed(self, index: int, epoch_id: int) -> bool:
        """True once `index` was redeemed in `epoch_id`; epochs never created read as unclaimed."""
        require_uint(index, name="index")
        if isinstance(epoch_id, bool) or not isinstance(epoch_id, int):
            raise ValidationError("epoch_id must be int", py_type=type(epoch_id).__name__)
        with self._lock:
            bitmap = self._state.bitmaps.get(epoch_id)
            return bitmap.is_set(index) if bitmap is not None else False

    def _epoch(self, epoch_id: int) -> Epoch:
        epochs = self._state.epochs
        if isinstance(epoch_id, bool) or not isinstance(epoch_id, int) or not 0 <= epoch_id < len(epochs):
            raise UnknownEpoch(epoch_id, epochs[-1].epoch_id)
        return epochs[epoch_id]

    def merkle_root(self, epoch_id: int) -> bytes:
        with self._lock:
            return self._epoch(epoch_id).merkle_root

    def is_cancelled(self, epoch_id: int) -> bool:
        with self._lock:
            return self._epoch(epoch_id).cancelled

    def bitmap(self, epoch_id: int) -> ClaimBitmap:
        """Copy of an epoch's claim bitmap, for audit."""
        with self._lock:
            self._epoch(epoch_id)
            return self._state.bitmaps[epoch_id].copy()

    def epochs(self) -> Tuple[Epoch, ...]:
        with self._lock:
            return tuple(self._state.epochs)

    @property
    def epoch_id(self) -> int:
        return self._state.current.epoch_id

    @property
    def distribution(self) -> Epoch:
        """The current epoch record."""
        return self._state.current

    @property
    def admin(self) -> bytes:
        return self._state.gate.admin

    @property
    def paused(self) -> bool:
        return self._state.paused

    @property
    def token(self) -> FundingDelegate:
        return self._token

    @property
    def address(self) -> bytes:
        return self._address

    @property
    def config(self) -> DistributorConfig:
        return self._config

    @property
    def events(self) -> EventLog:
        return self._events

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            st = self._state
            return {
                "address": to_hex(self._address),
                "admin": to_hex(st.gate.admin),
                "paused": st.paused,
                "epoch_id": st.current.epoch_id,
                "epochs": [
                    {**e.to_dict(), "claimed": st.bitmaps[e.epoch_id].count()}
                    for e in st.epochs
                ],
            }

    def __repr__(self) -> str:
        return (
            f"DistributionLedger(address={to_hex(self._address)}, epoch={self.epoch_id}, "
            f"paused={self.paused})"
        )


__all__ = ["Epoch", "Savepoint", "LedgerState", "DistributionLedger"]
