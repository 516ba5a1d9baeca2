"""
distributor.merkle — claim leaves, inclusion proofs and the off-chain tree builder

A claim `(index, recipient, amount)` commits to a 32-byte leaf:

    leaf = H( uint256(index) || recipient || uint256(amount) )

where uint256 values are 32-byte big-endian and `recipient` is a fixed-width
address (20 bytes by default). Fields are packed tightly with no padding.

Pair ordering
-------------
A proof is an ordered list of sibling hashes from the leaf layer upward. Two
conventions decide which operand the running hash takes at each level:

• POSITIONAL (default): the running hash is the left operand when bit k of
  the leaf position is 0 and the right operand when it is 1. Siblings are
  never reordered. The leaf position is the claim index, so a positional tree
  holds claims 0..n-1 at leaves 0..n-1.
• SORTED: every pair is hashed as H(min(a, b) || max(a, b)), independent of
  position.

A proof produced under one convention does not verify under the other, so the
builder and the verifier must be given the same PairOrdering.

Odd layers duplicate their last node (H(x || x)).

Key functions
-------------
- encode_claim(index, recipient, amount)
- claim_leaf(index, recipient, amount)
- verify(proof, root, leaf, index=...)
- merkle_root(leaves)
- build_proof(leaves, position)
- ClaimTree(claims)  → root / proof(index) / to_dict() / from_dict()
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple, Union

from .errors import ValidationError
from .utils.bytes import HASH_BYTES, encode_uint, require_fixed, require_uint, to_bytes, to_hex
from .utils.hash import Hasher, get_hasher, hasher_name, keccak256

Hash = bytes


class PairOrdering(str, Enum):
    POSITIONAL = "positional"
    SORTED = "sorted"


# --------------------------------------------------------------------------- #
# Leaves
# --------------------------------------------------------------------------- #


def encode_claim(index: int, recipient: Union[bytes, str], amount: int, *, address_bytes: int = 20) -> bytes:
    """Tight encoding: uint256 index || recipient (address_bytes) || uint256 amount."""
    return (
        encode_uint(require_uint(index, name="index"))
        + require_fixed(recipient, address_bytes, name="recipient")
        + encode_uint(require_uint(amount, name="amount"))
    )


def claim_leaf(
    index: int,
    recipient: Union[bytes, str],
    amount: int,
    *,
    address_bytes: int = 20,
    hasher: Hasher = keccak256,
) -> Hash:
    return hasher(encode_claim(index, recipient, amount, address_bytes=address_bytes))


# --------------------------------------------------------------------------- #
# Inner nodes and verification
# --------------------------------------------------------------------------- #


def hash_pair(left: Hash, right: Hash, *, ordering: PairOrdering = PairOrdering.POSITIONAL, hasher: Hasher = keccak256) -> Hash:
    if ordering is PairOrdering.SORTED and right < left:
        left, right = right, left
    return hasher(left + right)


def verify(
    proof: Sequence[Hash],
    root: Hash,
    leaf: Hash,
    *,
    index: int = 0,
    ordering: PairOrdering = PairOrdering.POSITIONAL,
    hasher: Hasher = keccak256,
) -> bool:
    """
    Recompute the hash chain from `leaf` through `proof` and compare with `root`.

    `index` is the leaf position; it only matters for POSITIONAL ordering.
    Malformed siblings (not 32 bytes) make the proof fail rather than raise.
    """
    acc = bytes(leaf)
    pos = index
    for sibling in proof:
        if not isinstance(sibling, (bytes, bytearray)) or len(sibling) != HASH_BYTES:
            return False
        sib = bytes(sibling)
        if pos & 1 == 0:
            acc = hash_pair(acc, sib, ordering=ordering, hasher=hasher)
        else:
            acc = hash_pair(sib, acc, ordering=ordering, hasher=hasher)
        pos >>= 1
    return acc == bytes(root)


# --------------------------------------------------------------------------- #
# Root / proof building
# --------------------------------------------------------------------------- #


def _next_layer(layer: Sequence[Hash], ordering: PairOrdering, hasher: Hasher) -> List[Hash]:
    out: List[Hash] = []
    n = len(layer)
    for i in range(0, n, 2):
        left = layer[i]
        right = layer[i + 1] if i + 1 < n else left
        out.append(hash_pair(left, right, ordering=ordering, hasher=hasher))
    return out


def merkle_root(
    leaves: Sequence[Hash],
    *,
    ordering: PairOrdering = PairOrdering.POSITIONAL,
    hasher: Hasher = keccak256,
) -> Hash:
    """Compute the root over pre-hashed leaves (len >= 1)."""
    if not leaves:
        raise ValidationError("cannot compute root over empty leaf set")
    layer: List[Hash] = list(leaves)
    while len(layer) > 1:
        layer = _next_layer(layer, ordering, hasher)
    return layer[0]


def build_proof(
    leaves: Sequence[Hash],
    position: int,
    *,
    ordering: PairOrdering = PairOrdering.POSITIONAL,
    hasher: Hasher = keccak256,
) -> List[Hash]:
    """Sibling list for `leaves[position]`, leaf layer first, root excluded."""
    n = len(leaves)
    if n == 0:
        raise ValidationError("cannot build proof over empty leaf set")
    if not 0 <= position < n:
        raise ValidationError("leaf position out of range", position=position, leaves=n)

    layer: List[Hash] = list(leaves)
    idx = position
    proof: List[Hash] = []
    while len(layer) > 1:
        sib = idx ^ 1
        # Odd layer: the last node is its own sibling.
        proof.append(layer[sib] if sib < len(layer) else layer[idx])
        layer = _next_layer(layer, ordering, hasher)
        idx //= 2
    return proof


# --------------------------------------------------------------------------- #
# Claims and the claim tree
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class Claim:
    """One allotment: `amount` units redeemable by `recipient` under `index`."""

    index: int
    recipient: bytes
    amount: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "index", require_uint(self.index, name="index"))
        object.__setattr__(self, "recipient", to_bytes(self.recipient, name="recipient"))
        object.__setattr__(self, "amount", require_uint(self.amount, name="amount"))

    def encode(self, *, address_bytes: int = 20) -> bytes:
        return encode_claim(self.index, self.recipient, self.amount, address_bytes=address_bytes)

    def leaf(self, *, address_bytes: int = 20, hasher: Hasher = keccak256) -> Hash:
        return hasher(self.encode(address_bytes=address_bytes))

    def to_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "account": to_hex(self.recipient), "amount": str(self.amount)}

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Claim":
        if not isinstance(d, Mapping):
            raise ValidationError("claim entry must be an object", py_type=type(d).__name__)
        try:
            return cls(
                index=_parse_int(d["index"], "index"),
                recipient=to_bytes(d["account"], name="account"),
                amount=_parse_int(d["amount"], "amount"),
            )
        except KeyError as e:
            raise ValidationError("claim entry is missing a field", field=str(e.args[0])) from e


def _parse_int(v: Any, name: str) -> int:
    # Amounts travel as decimal or 0x-hex strings in JSON to survive JS number limits.
    if isinstance(v, str):
        try:
            v = int(v, 0)
        except ValueError as e:
            raise ValidationError(f"{name} is not an integer", value=v) from e
    return require_uint(v, name=name)


def read_encoding(d: Any) -> Tuple[PairOrdering, str, int]:
    """(ordering, hash name, address width) recorded in a distribution document."""
    if not isinstance(d, Mapping):
        raise ValidationError("distribution must be a JSON object", py_type=type(d).__name__)
    raw = d.get("ordering", PairOrdering.POSITIONAL.value)
    try:
        ordering = PairOrdering(raw)
    except ValueError as e:
        raise ValidationError("unknown pair ordering", ordering=str(raw)) from e
    hash_name = d.get("hash", "keccak256")
    if not isinstance(hash_name, str):
        raise ValidationError("hash must be a string", py_type=type(hash_name).__name__)
    width = _parse_int(d.get("addressBytes", 20), "addressBytes")
    if not 1 <= width <= 64:
        raise ValidationError("addressBytes must be in 1..64", addressBytes=width)
    return ordering, hash_name, width


class ClaimTree:
    """
    Merkle tree over a set of claims, with proof generation.

    Claims are laid out by ascending index. With POSITIONAL ordering the
    indices must be exactly 0..n-1, since verification derives left/right
    from the index bits.
    """

    def __init__(
        self,
        claims: Iterable[Claim],
        *,
        ordering: PairOrdering = PairOrdering.POSITIONAL,
        hasher: Hasher = keccak256,
        address_bytes: int = 20,
    ) -> None:
        ordered = sorted(claims, key=lambda c: c.index)
        if not ordered:
            raise ValidationError("claim set is empty")

        seen: Dict[int, int] = {}
        for pos, c in enumerate(ordered):
            if c.index in seen:
                raise ValidationError("duplicate claim index", index=c.index)
            seen[c.index] = pos

        ordering = PairOrdering(ordering)
        if ordering is PairOrdering.POSITIONAL and ordered[-1].index != len(ordered) - 1:
            raise ValidationError(
                "positional trees need contiguous indices starting at 0",
                claims=len(ordered),
                max_index=ordered[-1].index,
            )

        self._claims: Tuple[Claim, ...] = tuple(ordered)
        self._position = seen
        self._ordering = ordering
        self._hasher = hasher
        self._address_bytes = address_bytes
        self._leaves: List[Hash] = [c.leaf(address_bytes=address_bytes, hasher=hasher) for c in ordered]
        self._root = merkle_root(self._leaves, ordering=ordering, hasher=hasher)

    @classmethod
    def from_balances(cls, balances: Mapping[Union[bytes, str], int], **kwargs: Any) -> "ClaimTree":
        """Build from an {account: amount} map; indices follow sorted account order."""
        accounts = sorted((to_bytes(a, name="account"), amt) for a, amt in balances.items())
        claims = [Claim(i, acct, _parse_int(amt, "amount")) for i, (acct, amt) in enumerate(accounts)]
        return cls(claims, **kwargs)

    # ---- views ---- #

    @property
    def root(self) -> Hash:
        return self._root

    @property
    def ordering(self) -> PairOrdering:
        return self._ordering

    @property
    def claims(self) -> Tuple[Claim, ...]:
        return self._claims

    @property
    def total(self) -> int:
        return sum(c.amount for c in self._claims)

    def __len__(self) -> int:
        return len(self._claims)

    def claim(self, index: int) -> Claim:
        return self._claims[self._pos(index)]

    def leaf(self, index: int) -> Hash:
        return self._leaves[self._pos(index)]

    def proof(self, index: int) -> List[Hash]:
        return build_proof(self._leaves, self._pos(index), ordering=self._ordering, hasher=self._hasher)

    def verify(self, index: int, proof: Sequence[Hash]) -> bool:
        pos = self._pos(index)
        return verify(proof, self._root, self._leaves[pos], index=pos, ordering=self._ordering, hasher=self._hasher)

    def _pos(self, index: int) -> int:
        try:
            return self._position[index]
        except KeyError:
            raise ValidationError("index not in claim tree", index=index) from None

    # ---- serialization ---- #

    def to_dict(self) -> Dict[str, Any]:
        claims = []
        for c, leaf in zip(self._claims, self._leaves):
            entry = c.to_dict()
            entry["leaf"] = to_hex(leaf)
            entry["proof"] = [to_hex(p) for p in self.proof(c.index)]
            claims.append(entry)
        return {
            "merkleRoot": to_hex(self._root),
            "hash": hasher_name(self._hasher),
            "ordering": self._ordering.value,
            "addressBytes": self._address_bytes,
            "tokenTotal": str(self.total),
            "claims": claims,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "ClaimTree":
        """Rebuild from `to_dict()` output; the recomputed root must match `merkleRoot`."""
        ordering, hash_name, address_bytes = read_encoding(d)
        claims = d.get("claims", [])
        if not isinstance(claims, list):
            raise ValidationError("claims must be a list", py_type=type(claims).__name__)
        tree = cls(
            [Claim.from_dict(c) for c in claims],
            ordering=ordering,
            hasher=get_hasher(hash_name),
            address_bytes=address_bytes,
        )
        if "merkleRoot" in d and to_bytes(d["merkleRoot"], name="merkleRoot") != tree.root:
            raise ValidationError(
                "merkleRoot does not match the claims",
                expected=d["merkleRoot"],
                got=to_hex(tree.root),
            )
        return tree


__all__ = [
    "Hash",
    "PairOrdering",
    "encode_claim",
    "claim_leaf",
    "hash_pair",
    "verify",
    "merkle_root",
    "build_proof",
    "read_encoding",
    "Claim",
    "ClaimTree",
]
