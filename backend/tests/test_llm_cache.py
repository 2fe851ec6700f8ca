"""Tests for llm_cache: disk-based model response cache.

Covers cache miss/hit, disabled mode, corrupt entries and key hashing.
"""

from unittest.mock import patch

import pytest

from siterecap.config import settings
from siterecap.utils import llm_cache


@pytest.fixture(autouse=True)
def _enable_cache(tmp_path, monkeypatch):
    """Point LLM_CACHE_DIR at a temp directory for every test."""
    monkeypatch.setattr(settings, "llm_cache_dir", str(tmp_path))
    return tmp_path


class TestCacheKey:
    def test_same_parts_same_key(self):
        assert llm_cache.cache_key("model", "prompt") == llm_cache.cache_key("model", "prompt")

    def test_parts_are_delimited(self):
        """("ab", "c") and ("a", "bc") must not collide."""
        assert llm_cache.cache_key("ab", "c") != llm_cache.cache_key("a", "bc")

    def test_accepts_bytes(self):
        key = llm_cache.cache_key("model", b"\xff\xd8\xff")
        assert len(key) == 24

    def test_str_and_bytes_agree(self):
        assert llm_cache.cache_key("abc") == llm_cache.cache_key(b"abc")


class TestCachePath:
    def test_returns_path_when_enabled(self, tmp_path):
        path = llm_cache._cache_path("ns", "k")
        assert path == tmp_path / "ns" / "k.json"

    def test_creates_namespace_directory(self, tmp_path):
        llm_cache._cache_path("stage_a", "k")
        assert (tmp_path / "stage_a").is_dir()

    def test_returns_none_when_disabled(self, monkeypatch):
        monkeypatch.setattr(settings, "llm_cache_dir", "")
        assert llm_cache._cache_path("ns", "k") is None


class TestGetSetCached:
    def test_miss_returns_none(self):
        assert llm_cache.get_cached("ns", "no-such-key") is None

    def test_round_trip(self):
        data = {"space": "Kitchen", "tasks": [{"name": "tile", "confidence": 0.9}]}
        llm_cache.set_cached("stage_a", "k1", data)
        assert llm_cache.get_cached("stage_a", "k1") == data

    def test_namespaces_are_isolated(self):
        llm_cache.set_cached("stage_a", "k", "a")
        llm_cache.set_cached("stage_b", "k", "b")
        assert llm_cache.get_cached("stage_a", "k") == "a"
        assert llm_cache.get_cached("stage_b", "k") == "b"

    def test_disabled_cache_is_noop(self, monkeypatch, tmp_path):
        monkeypatch.setattr(settings, "llm_cache_dir", "")
        llm_cache.set_cached("ns", "k", {"x": 1})
        assert llm_cache.get_cached("ns", "k") is None
        assert list(tmp_path.iterdir()) == []

    def test_corrupt_entry_is_a_miss(self, tmp_path):
        (tmp_path / "ns").mkdir()
        (tmp_path / "ns" / "bad.json").write_text("{not json")
        assert llm_cache.get_cached("ns", "bad") is None

    def test_unserializable_value_is_not_written(self, tmp_path):
        llm_cache.set_cached("ns", "obj", {"when": object()})
        assert llm_cache.get_cached("ns", "obj") is None

    def test_write_error_is_swallowed(self):
        with patch("pathlib.Path.write_text", side_effect=OSError("disk full")):
            llm_cache.set_cached("ns", "k", {"x": 1})
        assert llm_cache.get_cached("ns", "k") is None
