"""
distributor.access
==================

Single-administrator gate shared by every privileged ledger operation.

- read the current admin (`admin`)
- check that a caller is the admin (`require_admin`)
- hand the role to another account (`transfer`)

Addresses are raw `bytes`. `transfer` does not validate the new identifier:
an empty or unreachable admin is accepted and locks the ledger's privileged
surface for good. Guarding against that is the administrator's job.
"""
from __future__ import annotations

from typing import Union

from .errors import Unauthorized
from .utils.bytes import to_bytes


class AccessGate:
    __slots__ = ("_admin",)

    def __init__(self, admin: Union[bytes, str]) -> None:
        self._admin = to_bytes(admin, name="admin")

    @property
    def admin(self) -> bytes:
        return self._admin

    def is_admin(self, caller: Union[bytes, str]) -> bool:
        return to_bytes(caller, name="caller") == self._admin

    def require_admin(self, caller: Union[bytes, str], action: str = "") -> None:
        """Raise Unauthorized unless `caller` equals the current admin."""
        if not self.is_admin(caller):
            raise Unauthorized(to_bytes(caller, name="caller"), action)

    def transfer(self, caller: Union[bytes, str], new_admin: Union[bytes, str]) -> bytes:
        """Admin-only: replace the admin. Returns the previous admin."""
        self.require_admin(caller, "transfer_admin")
        previous = self._admin
        self._admin = to_bytes(new_admin, name="new_admin")
        return previous

    def __repr__(self) -> str:
        return f"AccessGate(admin=0x{self._admin.hex()})"


__all__ = ["AccessGate"]
