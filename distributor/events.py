from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping

from .errors import ValidationError

# Event names
EV_DISTRIBUTION_CREATED = b"DistributionCreated"
EV_CLAIMED = b"Claimed"
EV_ADMIN_TRANSFERRED = b"AdminTransferred"
EV_PAUSE_CHANGED = b"PauseChanged"

MAX_EVENT_NAME_BYTES = 64
MAX_KEY_LEN = 64
MAX_BYTES_LEN = 4096
MAX_INT_BITS = 256

# Keys must be identifier-like: letters/underscore, then letters/digits/underscore.
_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class Event:
    """One emitted notification."""

    name: bytes
    args: Dict[str, Any]

    def __getitem__(self, key: str) -> Any:
        return self.args[key]


class EventLog:
    """
    Ordered, append-only record of notifications emitted by one ledger.

    `truncate` exists only so the ledger can discard the events of an
    operation that failed part-way.
    """

    def __init__(self) -> None:
        self._events: List[Event] = []

    # --- validation ---------------------------------------------------------

    @staticmethod
    def _check_name(name: Any) -> bytes:
        if not isinstance(name, (bytes, bytearray)) or not name:
            raise ValidationError("event name must be non-empty bytes")
        if len(name) > MAX_EVENT_NAME_BYTES:
            raise ValidationError("event name too long", length=len(name))
        return bytes(name)

    @staticmethod
    def _check_value(key: str, value: Any) -> Any:
        if isinstance(value, (bytes, bytearray)):
            if len(value) > MAX_BYTES_LEN:
                raise ValidationError("event bytes arg too long", key=key, length=len(value))
            return bytes(value)
        if isinstance(value, bool):
            # bool is a subclass of int, so check it before int.
            return value
        if isinstance(value, int):
            if value < 0 or value.bit_length() > MAX_INT_BITS:
                raise ValidationError("event int arg out of range", key=key)
            return value
        raise ValidationError("unsupported event arg type", key=key, py_type=type(value).__name__)

    # --- core operations ----------------------------------------------------

    def emit(self, name: bytes, args: Mapping[str, Any]) -> Event:
        bname = self._check_name(name)
        checked: Dict[str, Any] = {}
        for k, v in args.items():
            if not isinstance(k, str) or len(k) > MAX_KEY_LEN or not _KEY_RE.match(k):
                raise ValidationError("event key has invalid characters", key=str(k))
            checked[k] = self._check_value(k, v)
        ev = Event(bname, checked)
        self._events.append(ev)
        return ev

    def truncate(self, length: int) -> None:
        del self._events[length:]

    def named(self, name: bytes) -> List[Event]:
        return [e for e in self._events if e.name == name]

    def last(self) -> Event:
        if not self._events:
            raise IndexError("no events emitted")
        return self._events[-1]

    def for_receipt(self) -> List[Dict[str, Any]]:
        """
        Canonical JSON-safe view: name as text, bytes args as 0x-hex,
        ints and bools unchanged.
        """
        out: List[Dict[str, Any]] = []
        for ev in self._events:
            args = {
                k: ("0x" + v.hex()) if isinstance(v, bytes) else v
                for k, v in ev.args.items()
            }
            out.append({"name": ev.name.decode("ascii", "replace"), "args": args})
        return out

    def __iter__(self) -> Iterator[Event]:
        return iter(tuple(self._events))

    def __len__(self) -> int:
        return len(self._events)


__all__ = [
    "EV_DISTRIBUTION_CREATED",
    "EV_CLAIMED",
    "EV_ADMIN_TRANSFERRED",
    "EV_PAUSE_CHANGED",
    "Event",
    "EventLog",
]
