import re

import pytest

from statcounters.regex_cache import CachedKeyMap, RegexMatchCache


def _cache_with(*strings):
    cache = RegexMatchCache()
    for s in strings:
        cache.add_string(s)
    return cache


def test_find_matches_returns_full_matches_only():
    cache = _cache_with("matchingCounter1", "matchingCounter2", "counter1")
    assert cache.find_matches("matching.*", now=1.0) == [
        "matchingCounter1",
        "matchingCounter2",
    ]
    # full match: a prefix pattern without wildcard does not match longer keys
    assert cache.find_matches("counter", now=1.0) == []
    assert cache.find_matches("counter1", now=1.0) == ["counter1"]


def test_cached_regex_follows_additions_and_erasures():
    cache = _cache_with("a1", "b1")
    assert cache.find_matches("a.*", now=1.0) == ["a1"]
    cache.add_string("a2")
    assert cache.find_matches("a.*", now=2.0) == ["a1", "a2"]
    cache.erase_string("a1")
    assert cache.find_matches("a.*", now=3.0) == ["a2"]


def test_has_string_and_clear():
    cache = _cache_with("x")
    assert cache.has_string("x")
    assert not cache.has_string("y")
    cache.find_matches(".*", now=1.0)
    cache.clear()
    assert not cache.has_string("x")
    assert cache.find_matches(".*", now=2.0) == []
    assert not cache.has_items_to_purge(100.0) or cache.find_matches(".*", now=2.0) == []


def test_purge_by_last_access():
    cache = _cache_with("a1")
    cache.find_matches("a.*", now=10.0)
    assert not cache.has_items_to_purge(5.0)
    assert cache.has_items_to_purge(20.0)
    cache.find_matches("a.*", now=30.0)
    assert not cache.has_items_to_purge(20.0)
    cache.purge(40.0)
    assert not cache.has_items_to_purge(40.0)
    assert cache.find_matches("a.*", now=50.0) == ["a1"]


def test_invalid_regex_raises():
    cache = _cache_with("a")
    with pytest.raises(re.error):
        cache.find_matches("(", now=1.0)


def test_cached_key_map_add_replace_erase():
    cmap = CachedKeyMap()
    assert cmap.add("k1", 1) is True
    assert cmap.add("k1", 2) is False
    assert cmap["k1"] == 2
    assert len(cmap) == 1
    assert cmap.erase("k1") == 2
    assert "k1" not in cmap
    with pytest.raises(KeyError):
        cmap.erase("k1")


def test_cached_key_map_find_matches_tracks_keys():
    cmap = CachedKeyMap()
    for name in ("counter_add_1", "counter_add_2", "other"):
        cmap.add(name, name)
    assert cmap.find_matches("counter.*", now=1.0) == ["counter_add_1", "counter_add_2"]
    cmap.erase("counter_add_1")
    cmap.add("counter", "counter")
    assert cmap.find_matches("counter.*", now=2.0) == ["counter", "counter_add_2"]
    cmap.clear()
    assert len(cmap) == 0
    assert cmap.find_matches("counter.*", now=3.0) == []


def test_cached_key_map_trim_stale_keeps_results_correct():
    cmap = CachedKeyMap()
    cmap.add("abc", 0)
    assert cmap.find_matches("a.*", now=1.0) == ["abc"]
    cmap.trim_stale(5.0)
    cmap.add("abd", 1)
    assert cmap.find_matches("a.*", now=6.0) == ["abc", "abd"]
    assert sorted(cmap) == ["abc", "abd"]