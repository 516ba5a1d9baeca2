"""
distributor.token — minimal in-memory fungible token for simulations and tests.

This is a simulation-only ledger of balances and allowances with ERC-20
semantics: transfers return False (rather than raising) on insufficient
balance or allowance, and malformed input raises ValidationError.

`bind(holder)` returns a `TokenHandle`, a FundingDelegate that acts on behalf
of `holder` (typically the distribution ledger's own address):

    token = InMemoryToken(b"\\x01" * 20, symbol="DROP")
    token.mint(funder, 1_000)
    token.approve(funder, ledger_addr, 1_000)
    ledger = DistributionLedger(token.bind(ledger_addr), root, admin=admin, address=ledger_addr)

Checkpoints capture the full balance/allowance state so a caller can undo
everything done since, including transfers made by nested calls.
"""

from __future__ import annotations

import threading
from typing import Dict, Tuple, Union

from .errors import ValidationError
from .utils.bytes import require_uint, to_bytes, to_hex

_Checkpoint = Tuple[Dict[bytes, int], Dict[Tuple[bytes, bytes], int], int]


class InMemoryToken:
    def __init__(self, address: Union[bytes, str], *, symbol: str = "TKN", decimals: int = 18) -> None:
        self.address = to_bytes(address, name="address")
        self.symbol = symbol
        self.decimals = decimals
        self._balances: Dict[bytes, int] = {}
        self._allowances: Dict[Tuple[bytes, bytes], int] = {}
        self._supply = 0
        self._lock = threading.RLock()

    # ------------------------------ reads ------------------------------ #

    def balance_of(self, account: Union[bytes, str]) -> int:
        with self._lock:
            return self._balances.get(to_bytes(account, name="account"), 0)

    def allowance(self, owner: Union[bytes, str], spender: Union[bytes, str]) -> int:
        key = (to_bytes(owner, name="owner"), to_bytes(spender, name="spender"))
        with self._lock:
            return self._allowances.get(key, 0)

    @property
    def total_supply(self) -> int:
        return self._supply

    # ----------------------------- writes ------------------------------ #

    def mint(self, to: Union[bytes, str], amount: int) -> None:
        """Host helper: create `amount` new units for `to`."""
        bto = to_bytes(to, name="to")
        require_uint(amount, name="amount")
        with self._lock:
            self._balances[bto] = self._balances.get(bto, 0) + amount
            self._supply += amount

    def approve(self, owner: Union[bytes, str], spender: Union[bytes, str], amount: int) -> bool:
        key = (to_bytes(owner, name="owner"), to_bytes(spender, name="spender"))
        require_uint(amount, name="amount")
        with self._lock:
            self._allowances[key] = amount
        return True

    def transfer(self, sender: Union[bytes, str], to: Union[bytes, str], amount: int) -> bool:
        bfrom = to_bytes(sender, name="sender")
        bto = to_bytes(to, name="to")
        require_uint(amount, name="amount")
        with self._lock:
            return self._move(bfrom, bto, amount)

    def transfer_from(
        self,
        spender: Union[bytes, str],
        owner: Union[bytes, str],
        to: Union[bytes, str],
        amount: int,
    ) -> bool:
        bspender = to_bytes(spender, name="spender")
        bowner = to_bytes(owner, name="owner")
        bto = to_bytes(to, name="to")
        require_uint(amount, name="amount")
        with self._lock:
            allowed = self._allowances.get((bowner, bspender), 0)
            if allowed < amount:
                return False
            if not self._move(bowner, bto, amount):
                return False
            self._allowances[(bowner, bspender)] = allowed - amount
            return True

    def _move(self, frm: bytes, to: bytes, amount: int) -> bool:
        cur = self._balances.get(frm, 0)
        if amount > cur:
            return False
        self._balances[frm] = cur - amount
        self._balances[to] = self._balances.get(to, 0) + amount
        return True

    # ---------------------------- journaling ---------------------------- #

    def checkpoint(self) -> _Checkpoint:
        with self._lock:
            return dict(self._balances), dict(self._allowances), self._supply

    def revert(self, checkpoint: _Checkpoint) -> None:
        balances, allowances, supply = checkpoint
        with self._lock:
            self._balances = dict(balances)
            self._allowances = dict(allowances)
            self._supply = supply

    def bind(self, holder: Union[bytes, str]) -> "TokenHandle":
        return TokenHandle(self, to_bytes(holder, name="holder"))

    def __repr__(self) -> str:
        return f"InMemoryToken({self.symbol} @ {to_hex(self.address)}, supply={self._supply})"


class TokenHandle:
    """FundingDelegate view of an InMemoryToken acting as `holder`."""

    def __init__(self, token: InMemoryToken, holder: bytes) -> None:
        self.token = token
        self.holder = holder

    @property
    def address(self) -> bytes:
        return self.token.address

    def balance_of(self, account: bytes) -> int:
        return self.token.balance_of(account)

    def transfer(self, to: bytes, amount: int) -> bool:
        return self.token.transfer(self.holder, to, amount)

    def transfer_from(self, sender: bytes, to: bytes, amount: int) -> bool:
        return self.token.transfer_from(self.holder, sender, to, amount)

    def checkpoint(self) -> _Checkpoint:
        return self.token.checkpoint()

    def revert(self, checkpoint: _Checkpoint) -> None:
        self.token.revert(checkpoint)


__all__ = ["InMemoryToken", "TokenHandle"]
