from __future__ import annotations

import pytest

from distributor.config import DistributorConfig, load_config
from distributor.errors import ConfigError
from distributor.merkle import PairOrdering
from distributor.utils.hash import keccak256, sha3_256


def test_defaults():
    cfg = load_config()
    assert cfg == DistributorConfig()
    assert cfg.word_bits == 256
    assert cfg.address_bytes == 20
    assert cfg.pair_ordering is PairOrdering.POSITIONAL
    assert cfg.hasher is keccak256
    assert cfg.log_level == "WARNING"
    assert cfg.as_dict()["pair_ordering"] == "positional"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("DISTRIBUTOR_WORD_BITS", "64")
    monkeypatch.setenv("DISTRIBUTOR_ADDRESS_BYTES", "32")
    monkeypatch.setenv("DISTRIBUTOR_HASH", "SHA3_256")
    monkeypatch.setenv("DISTRIBUTOR_PAIR_ORDERING", "sorted")
    monkeypatch.setenv("DISTRIBUTOR_LOG_LEVEL", "debug")
    monkeypatch.setenv("DISTRIBUTOR_LOG_FORMAT", "json")
    load_config.cache_clear()
    cfg = load_config()
    assert cfg.word_bits == 64
    assert cfg.address_bytes == 32
    assert cfg.hasher is sha3_256
    assert cfg.pair_ordering is PairOrdering.SORTED
    assert cfg.log_level == "DEBUG"
    assert cfg.log_format == "json"


def test_numeric_values_are_clamped(monkeypatch):
    monkeypatch.setenv("DISTRIBUTOR_WORD_BITS", "1")
    monkeypatch.setenv("DISTRIBUTOR_ADDRESS_BYTES", "1000")
    load_config.cache_clear()
    cfg = load_config()
    assert cfg.word_bits == 8
    assert cfg.address_bytes == 64


def test_unparseable_number_falls_back_to_default(monkeypatch):
    monkeypatch.setenv("DISTRIBUTOR_WORD_BITS", "lots")
    load_config.cache_clear()
    assert load_config().word_bits == 256


@pytest.mark.parametrize(
    "var,value",
    [
        ("DISTRIBUTOR_HASH", "md5"),
        ("DISTRIBUTOR_PAIR_ORDERING", "random"),
        ("DISTRIBUTOR_LOG_FORMAT", "xml"),
    ],
)
def test_unknown_choices_raise(monkeypatch, var, value):
    monkeypatch.setenv(var, value)
    load_config.cache_clear()
    with pytest.raises(ConfigError):
        load_config()


def test_direct_construction_validates():
    with pytest.raises(ConfigError):
        DistributorConfig(word_bits=12)
    with pytest.raises(ConfigError):
        DistributorConfig(address_bytes=0)
    with pytest.raises(ConfigError):
        DistributorConfig(hash_name="blake3")
    assert DistributorConfig(pair_ordering="sorted").pair_ordering is PairOrdering.SORTED  # type: ignore[arg-type]


def test_with_overrides_returns_new_instance():
    base = DistributorConfig()
    other = base.with_overrides(word_bits=8)
    assert other.word_bits == 8
    assert base.word_bits == 256
