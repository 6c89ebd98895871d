"""Tests for the contract cache store."""

from __future__ import annotations

from pathlib import Path

from stampgraph.stores import ContractCache
from stampgraph.stores.contract_cache import CACHE_RELATIVE_PATH, cache_signature
from tests._fixtures.contracts import make_contract


def test_contract_cache_round_trip(tmp_path: Path) -> None:
    cache_path = tmp_path / "cache.json"
    cache = ContractCache(cache_path)
    contract = make_contract("src/App.tsx", components=["Button"], hooks=["useState"])
    cache.store(contract, signature="sig-1")
    cache.persist()

    loaded = ContractCache(cache_path)
    reuse = loaded.get("src/App.tsx", signature="sig-1", fingerprint=contract.file_hash)

    assert reuse == contract


def test_contract_cache_invalidates_on_signature_or_fingerprint_change(tmp_path: Path) -> None:
    cache = ContractCache(tmp_path / "cache.json")
    contract = make_contract("src/App.tsx")
    cache.store(contract, signature="sig-1")

    assert cache.get("src/App.tsx", signature="sig-1", fingerprint=contract.file_hash) is not None
    assert cache.get("src/App.tsx", signature="sig-2", fingerprint=contract.file_hash) is None
    assert cache.get("src/App.tsx", signature="sig-1", fingerprint="uif:changed") is None


def test_contract_cache_prune_removes_unused(tmp_path: Path) -> None:
    cache = ContractCache(tmp_path / "cache.json")
    first = make_contract("src/a.ts")
    second = make_contract("src/b.ts")
    cache.store(first, signature="s")
    cache.store(second, signature="s")

    cache.prune(["src/a.ts"])
    cache.persist()

    reloaded = ContractCache(tmp_path / "cache.json")
    assert len(reloaded) == 1
    assert reloaded.get("src/b.ts", signature="s", fingerprint=second.file_hash) is None


def test_contract_cache_ignores_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    path.write_text("{broken", encoding="utf-8")

    cache = ContractCache(path)

    assert len(cache) == 0


def test_in_memory_cache_never_writes(tmp_path: Path) -> None:
    cache = ContractCache(None)
    cache.store(make_contract("src/a.ts"), signature="s")
    cache.persist()

    assert len(cache) == 1
    assert not any(tmp_path.iterdir())


def test_cache_location_and_signature(tmp_path: Path) -> None:
    cache = ContractCache.for_root(tmp_path)
    cache.store(make_contract("src/a.ts"), signature=cache_signature("none"))
    cache.persist()

    assert (tmp_path / CACHE_RELATIVE_PATH).is_file()
    assert cache_signature("none") != cache_signature("submit-only")
