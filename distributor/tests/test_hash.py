from __future__ import annotations

import pytest

from distributor.errors import ConfigError, ValidationError
from distributor.utils.bytes import encode_uint, require_fixed, require_uint, to_bytes, to_hex
from distributor.utils.hash import get_hasher, hash_concat, hasher_name, keccak256, sha3_256


def test_keccak256_empty_vector():
    assert keccak256(b"").hex() == "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"


def test_sha3_256_empty_vector():
    assert sha3_256(b"").hex() == "a7ffc6f8bf1ed76651c14756a061d662f580ff4de43b49fa82d80a4b80f8434a"


def test_keccak_and_sha3_differ():
    assert keccak256(b"abc") != sha3_256(b"abc")


def test_hash_concat_is_tight_concatenation():
    assert hash_concat(b"ab", b"", b"cd") == keccak256(b"abcd")
    assert hash_concat(b"ab", b"cd", hasher=sha3_256) == sha3_256(b"abcd")


def test_hash_rejects_non_bytes():
    with pytest.raises(ValidationError):
        keccak256("abc")  # type: ignore[arg-type]


def test_get_hasher_by_name():
    assert get_hasher("keccak256") is keccak256
    assert get_hasher(" SHA3_256 ") is sha3_256
    assert hasher_name(sha3_256) == "sha3_256"
    with pytest.raises(ConfigError):
        get_hasher("md5")


def test_to_bytes_accepts_hex_and_bytes():
    assert to_bytes("0x0a0B") == b"\x0a\x0b"
    assert to_bytes("ff") == b"\xff"
    assert to_bytes(bytearray(b"\x01")) == b"\x01"
    assert to_hex(b"\x00\x01") == "0x0001"


@pytest.mark.parametrize("bad", ["0x123", "zz", 12])
def test_to_bytes_rejects_malformed(bad):
    with pytest.raises(ValidationError):
        to_bytes(bad)


def test_require_uint_bounds():
    assert require_uint(0) == 0
    assert require_uint((1 << 256) - 1) == (1 << 256) - 1
    for bad in (-1, 1 << 256, True, 1.0, "1"):
        with pytest.raises(ValidationError):
            require_uint(bad)


def test_encode_uint_is_big_endian_fixed_width():
    assert encode_uint(1) == b"\x00" * 31 + b"\x01"
    assert len(encode_uint(0)) == 32


def test_require_fixed_length():
    assert require_fixed(b"\x01" * 20, 20) == b"\x01" * 20
    with pytest.raises(ValidationError):
        require_fixed(b"\x01" * 19, 20)
