from __future__ import annotations

import pytest

from distributor.errors import ValidationError
from distributor.merkle import (
    Claim,
    ClaimTree,
    PairOrdering,
    build_proof,
    claim_leaf,
    encode_claim,
    hash_pair,
    merkle_root,
    read_encoding,
    verify,
)
from distributor.tests.conftest import make_claims
from distributor.utils.hash import keccak256, sha3_256

RECIPIENT = bytes(range(1, 21))


def _leaves(n: int):
    return [keccak256(bytes([i])) for i in range(n)]


# --- leaves -------------------------------------------------------------------


def test_leaf_encoding_layout():
    enc = encode_claim(5, RECIPIENT, 10)
    assert len(enc) == 32 + 20 + 32
    assert enc[:32] == (5).to_bytes(32, "big")
    assert enc[32:52] == RECIPIENT
    assert enc[52:] == (10).to_bytes(32, "big")
    assert claim_leaf(5, RECIPIENT, 10) == keccak256(enc)


def test_leaf_address_width_is_enforced():
    with pytest.raises(ValidationError):
        claim_leaf(0, RECIPIENT[:19], 1)
    assert len(encode_claim(0, b"\x01" * 32, 1, address_bytes=32)) == 96


def test_leaf_rejects_negative_or_oversized_ints():
    with pytest.raises(ValidationError):
        claim_leaf(-1, RECIPIENT, 1)
    with pytest.raises(ValidationError):
        claim_leaf(0, RECIPIENT, 1 << 256)


# --- roots and proofs ---------------------------------------------------------


def test_single_leaf_root_is_the_leaf():
    leaf = keccak256(b"only")
    assert merkle_root([leaf]) == leaf
    assert build_proof([leaf], 0) == []
    assert verify([], leaf, leaf)


def test_odd_layer_duplicates_last_node():
    l0, l1, l2 = _leaves(3)
    expected = keccak256(keccak256(l0 + l1) + keccak256(l2 + l2))
    assert merkle_root([l0, l1, l2]) == expected


def test_positional_combination_follows_index_bits():
    l0, l1, l2, l3 = _leaves(4)
    root = keccak256(keccak256(l0 + l1) + keccak256(l2 + l3))
    # Leaf 2: bit0 = 0 → (acc, l3); bit1 = 1 → (n01, acc)
    proof = build_proof([l0, l1, l2, l3], 2)
    assert proof == [l3, keccak256(l0 + l1)]
    assert verify(proof, root, l2, index=2)
    assert not verify(proof, root, l2, index=3)


def test_sorted_pairs_are_order_independent():
    a, b = _leaves(2)
    assert hash_pair(a, b, ordering=PairOrdering.SORTED) == hash_pair(b, a, ordering=PairOrdering.SORTED)
    assert hash_pair(a, b) != hash_pair(b, a)


@pytest.mark.parametrize("n", [1, 2, 3, 5, 8, 13])
@pytest.mark.parametrize("ordering", list(PairOrdering))
def test_every_proof_verifies(n, ordering):
    leaves = _leaves(n)
    root = merkle_root(leaves, ordering=ordering)
    for i, leaf in enumerate(leaves):
        assert verify(build_proof(leaves, i, ordering=ordering), root, leaf, index=i, ordering=ordering)


def test_conventions_do_not_mix():
    leaves = _leaves(6)
    pos_root = merkle_root(leaves, ordering=PairOrdering.POSITIONAL)
    sorted_root = merkle_root(leaves, ordering=PairOrdering.SORTED)
    assert pos_root != sorted_root
    results = [
        verify(build_proof(leaves, i), pos_root, leaves[i], index=i, ordering=PairOrdering.SORTED)
        for i in range(len(leaves))
    ]
    assert not all(results)


def test_verify_fails_on_tampering():
    leaves = _leaves(4)
    root = merkle_root(leaves)
    proof = build_proof(leaves, 1)
    assert verify(proof, root, leaves[1], index=1)
    assert not verify(proof, root, keccak256(b"other"), index=1)
    assert not verify(proof[:-1], root, leaves[1], index=1)
    assert not verify([proof[0], keccak256(b"x")], root, leaves[1], index=1)


def test_malformed_sibling_fails_without_raising():
    leaves = _leaves(2)
    root = merkle_root(leaves)
    assert not verify([leaves[1][:31]], root, leaves[0])
    assert not verify(["not-bytes"], root, leaves[0])  # type: ignore[list-item]


def test_empty_leaf_set_rejected():
    with pytest.raises(ValidationError):
        merkle_root([])
    with pytest.raises(ValidationError):
        build_proof([], 0)
    with pytest.raises(ValidationError):
        build_proof(_leaves(2), 2)


# --- Claim ---------------------------------------------------------------------


def test_claim_from_dict_parses_strings():
    c = Claim.from_dict({"index": "3", "account": "0x" + RECIPIENT.hex(), "amount": "0x10"})
    assert (c.index, c.recipient, c.amount) == (3, RECIPIENT, 16)
    assert c.to_dict() == {"index": 3, "account": "0x" + RECIPIENT.hex(), "amount": "16"}


@pytest.mark.parametrize(
    "entry",
    [
        {"index": 0, "account": "0x01"},
        {"index": -1, "account": "0x01", "amount": 1},
        {"index": 0, "account": "0x01", "amount": "ten"},
        {"index": 0, "account": "0x01", "amount": "-5"},
    ],
)
def test_claim_from_dict_rejects_bad_entries(entry):
    with pytest.raises(ValidationError):
        Claim.from_dict(entry)


# --- ClaimTree -----------------------------------------------------------------


def test_tree_proofs_verify(tree):
    assert len(tree) == 6
    for c in tree.claims:
        proof = tree.proof(c.index)
        assert len(proof) == 3
        assert tree.verify(c.index, proof)
        assert verify(proof, tree.root, c.leaf(), index=c.index)


def test_tree_total(tree):
    assert tree.total == sum(10 * (i + 1) for i in range(6))


def test_sorted_tree_allows_sparse_indices(accounts):
    claims = [Claim(3, accounts["alice"], 1), Claim(1000, accounts["bob"], 2), Claim(7, accounts["carol"], 3)]
    t = ClaimTree(claims, ordering=PairOrdering.SORTED)
    assert [c.index for c in t.claims] == [3, 7, 1000]
    for c in claims:
        assert verify(t.proof(c.index), t.root, c.leaf(), ordering=PairOrdering.SORTED)


def test_positional_tree_requires_contiguous_indices(accounts):
    with pytest.raises(ValidationError):
        ClaimTree([Claim(0, accounts["alice"], 1), Claim(2, accounts["bob"], 1)])
    with pytest.raises(ValidationError):
        ClaimTree([Claim(1, accounts["alice"], 1)])


def test_tree_rejects_duplicates_and_empty(accounts):
    with pytest.raises(ValidationError):
        ClaimTree([Claim(0, accounts["alice"], 1), Claim(0, accounts["bob"], 2)])
    with pytest.raises(ValidationError):
        ClaimTree([])


def test_tree_unknown_index(tree):
    with pytest.raises(ValidationError):
        tree.proof(99)


def test_tree_dict_roundtrip(tree):
    doc = tree.to_dict()
    assert doc["merkleRoot"] == "0x" + tree.root.hex()
    assert doc["ordering"] == "positional"
    assert doc["hash"] == "keccak256"
    assert doc["claims"][2]["proof"] == ["0x" + p.hex() for p in tree.proof(2)]
    assert ClaimTree.from_dict(doc).root == tree.root


def test_tree_from_dict_detects_root_mismatch(tree):
    doc = tree.to_dict()
    doc["claims"][0]["amount"] = "999"
    with pytest.raises(ValidationError):
        ClaimTree.from_dict(doc)


def test_tree_with_sha3(accounts):
    claims = make_claims(accounts, 3)
    t = ClaimTree(claims, hasher=sha3_256)
    assert t.root != ClaimTree(claims).root
    assert t.to_dict()["hash"] == "sha3_256"
    assert ClaimTree.from_dict(t.to_dict()).root == t.root


def test_from_balances_orders_by_account(accounts):
    balances = {accounts["bob"]: 5, "0x" + accounts["alice"].hex(): "7"}
    t = ClaimTree.from_balances(balances)
    expected = sorted([accounts["alice"], accounts["bob"]])
    assert [c.recipient for c in t.claims] == expected
    assert t.total == 12


def test_read_encoding_defaults():
    assert read_encoding({}) == (PairOrdering.POSITIONAL, "keccak256", 20)
    assert read_encoding({"ordering": "sorted", "hash": "sha3_256", "addressBytes": "32"}) == (
        PairOrdering.SORTED,
        "sha3_256",
        32,
    )


@pytest.mark.parametrize(
    "doc",
    [[], {"ordering": "bogus"}, {"addressBytes": "wide"}, {"addressBytes": 65}, {"hash": None}],
)
def test_read_encoding_rejects_bad_documents(doc):
    with pytest.raises(ValidationError):
        read_encoding(doc)


def test_tree_from_dict_rejects_non_object_claims(tree):
    d = tree.to_dict()
    d["claims"][0] = "junk"
    with pytest.raises(ValidationError, match="must be an object"):
        ClaimTree.from_dict(d)
