"""
distributor.errors
------------------

Structured errors for the distribution ledger.

Design goals
------------
- One root `DistributorError` with a machine-friendly `code` and optional `data`.
- One concrete subclass per failure kind the ledger can surface to a caller
  (authorization, pause, replay, cancellation, proof, transfer), plus input
  validation and configuration errors.
- Safe JSON representation (`to_dict`) suitable for logs and bridges.

Every failure is deterministic given ledger state and input, so none of these
errors are retryable without changing the input or the state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class DistributorErrorCode(str, Enum):
    # Ledger operation failures
    UNAUTHORIZED = "DIST/UNAUTHORIZED"
    PAUSED = "DIST/PAUSED"
    ALREADY_CLAIMED = "DIST/ALREADY_CLAIMED"
    EPOCH_CANCELLED = "DIST/EPOCH_CANCELLED"
    INVALID_PROOF = "DIST/INVALID_PROOF"
    TRANSFER_FAILED = "DIST/TRANSFER_FAILED"

    # Queries / inputs / environment
    UNKNOWN_EPOCH = "DIST/UNKNOWN_EPOCH"
    VALIDATION = "DIST/VALIDATION"
    CONFIG = "DIST/CONFIG"


@dataclass(eq=False)
class DistributorError(Exception):
    """
    Root error for the distributor package.

    Attributes
    ----------
    code: str
        Machine-stable error code (see DistributorErrorCode).
    message: str
        Human hint suitable for logs.
    data: dict
        Optional machine data (indices, epoch ids, hex addresses). JSON-serializable.
    cause: Optional[BaseException]
        Wrapped original exception; not included in `to_dict()` unless asked.
    """

    code: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    cause: Optional[BaseException] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        super().__init__(f"{_code_str(self.code)}: {self.message}")

    def with_context(self, **ctx: Any) -> "DistributorError":
        """Return a *new* error with extra context merged (does not mutate)."""
        d = dict(self.data)
        d.update(_jsonmap(ctx))
        err = DistributorError(code=self.code, message=self.message, data=d, cause=self.cause)
        err.__class__ = type(self)
        return err

    def to_dict(self, include_cause: bool = False) -> Dict[str, Any]:
        """JSON-safe shape suitable for logs and CLI output."""
        out: Dict[str, Any] = {
            "code": _code_str(self.code),
            "message": self.message,
            "data": _jsonmap(self.data),
        }
        if include_cause and self.cause is not None:
            out["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause),
            }
        return out

    def __str__(self) -> str:
        parts = [f"{_code_str(self.code)}: {self.message}"]
        if self.data:
            preview = ", ".join(f"{k}={_preview(v)}" for k, v in self.data.items())
            parts.append(f"[{preview}]")
        return " ".join(parts)


class Unauthorized(DistributorError):
    def __init__(self, caller: bytes, action: str = "") -> None:
        super().__init__(
            code=DistributorErrorCode.UNAUTHORIZED,
            message="caller is not the admin",
            data=_jsonmap({"caller": caller, "action": action}),
        )


class Paused(DistributorError):
    def __init__(self, epoch_id: int) -> None:
        super().__init__(
            code=DistributorErrorCode.PAUSED,
            message="claims are paused",
            data={"epoch_id": epoch_id},
        )


class AlreadyClaimed(DistributorError):
    def __init__(self, epoch_id: int, index: int) -> None:
        super().__init__(
            code=DistributorErrorCode.ALREADY_CLAIMED,
            message="index already claimed",
            data={"epoch_id": epoch_id, "index": index},
        )


class EpochCancelled(DistributorError):
    def __init__(self, epoch_id: int) -> None:
        super().__init__(
            code=DistributorErrorCode.EPOCH_CANCELLED,
            message="epoch is cancelled",
            data={"epoch_id": epoch_id},
        )


class InvalidProof(DistributorError):
    def __init__(self, epoch_id: int, index: int) -> None:
        super().__init__(
            code=DistributorErrorCode.INVALID_PROOF,
            message="merkle proof does not match the epoch root",
            data={"epoch_id": epoch_id, "index": index},
        )


class TransferFailed(DistributorError):
    def __init__(
        self,
        operation: str,
        amount: int,
        reason: str = "rejected",
        *,
        cause: Optional[BaseException] = None,
        **data: Any,
    ) -> None:
        super().__init__(
            code=DistributorErrorCode.TRANSFER_FAILED,
            message=f"{operation} {reason}",
            data=_jsonmap({"operation": operation, "amount": amount, **data}),
            cause=cause,
        )


class UnknownEpoch(DistributorError):
    def __init__(self, epoch_id: int, latest: int) -> None:
        super().__init__(
            code=DistributorErrorCode.UNKNOWN_EPOCH,
            message="epoch does not exist",
            data={"epoch_id": epoch_id, "latest": latest},
        )


class ValidationError(DistributorError):
    def __init__(self, message: str = "invalid input", **data: Any) -> None:
        super().__init__(
            code=DistributorErrorCode.VALIDATION,
            message=message,
            data=_jsonmap(data),
        )


class ConfigError(DistributorError):
    def __init__(self, message: str = "invalid configuration", **data: Any) -> None:
        super().__init__(
            code=DistributorErrorCode.CONFIG,
            message=message,
            data=_jsonmap(data),
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _code_str(code: Any) -> str:
    return code.value if isinstance(code, Enum) else str(code)


def _jsonmap(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: _coerce_json(v) for k, v in data.items()}


def _coerce_json(v: Any) -> Any:
    # Keep JSON primitives; hex-encode bytes; stringify the rest.
    if v is None or isinstance(v, (bool, int, float, str, list, dict)):
        return v
    if isinstance(v, (bytes, bytearray)):
        return "0x" + bytes(v).hex()
    return str(v)


def _preview(v: Any, limit: int = 96) -> str:
    s = str(_coerce_json(v))
    return s if len(s) <= limit else s[:limit] + "…"


__all__ = [
    "DistributorErrorCode",
    "DistributorError",
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
