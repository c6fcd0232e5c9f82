import time

import pytest

from app.cms.cache import TTLCache, get_or_load


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return TTLCache(clock=clock)


def test_unset_key_is_absent(cache):
    assert cache.get("never-set") is None
    assert cache.get("never-set", "dflt") == "dflt"


def test_set_then_get_returns_value(cache):
    cache.set("k", {"a": 1}, ttl=30)
    assert cache.get("k") == {"a": 1}


def test_entry_expires_after_ttl(cache, clock):
    cache.set("k", "v", ttl=5)
    clock.advance(4.999)
    assert cache.get("k") == "v"
    clock.advance(0.002)
    assert cache.get("k") is None
    # lazily evicted on the miss
    assert len(cache) == 0


def test_overwrite_last_write_wins(cache):
    cache.set("k", "v1")
    cache.set("k", "v2")
    assert cache.get("k") == "v2"


def test_overwrite_restarts_expiry(cache, clock):
    cache.set("k", "v1", ttl=10)
    clock.advance(8)
    cache.set("k", "v2", ttl=10)
    clock.advance(8)
    assert cache.get("k") == "v2"


def test_delete_and_delete_absent(cache):
    cache.set("k", "v")
    cache.delete("k")
    assert cache.get("k") is None
    cache.delete("k")
    cache.delete("never-set")


def test_flush_clears_everything_regardless_of_ttl(cache):
    cache.set("short", 1, ttl=1)
    cache.set("long", 2, ttl=10_000)
    cache.set("default", 3)
    cache.flush()
    for k in ("short", "long", "default"):
        assert cache.get(k) is None
    assert len(cache) == 0


def test_post_detail_scenario(cache, clock):
    post = {"title": "Hello World", "views": 0}
    cache.set("post_hello-world", post)
    got = cache.get("post_hello-world")
    assert got == {"title": "Hello World", "views": 0}
    assert got is post
    clock.advance(601)
    assert cache.get("post_hello-world") is None


def test_targeted_invalidation_scenario(cache):
    cache.set("comments_post_7", ["c9"])
    cache.set("comments_post_42", ["c1", "c2"])
    cache.delete("comments_post_42")
    assert cache.get("comments_post_42") is None
    assert cache.get("comments_post_7") == ["c9"]


def test_broad_invalidation_scenario(cache):
    cache.set("all_system_comments", [1, 2, 3], ttl=300)
    cache.set("comments_post_1", [1])
    cache.set("comments_post_2", [2, 3])
    cache.flush()
    assert cache.get("all_system_comments") is None
    assert cache.get("comments_post_1") is None
    assert cache.get("comments_post_2") is None


def test_default_and_custom_ttl_do_not_interfere(cache, clock):
    cache.set("dflt", "a")
    cache.set("custom", "b", 300)
    clock.advance(299)
    assert cache.get("custom") == "b"
    clock.advance(2)
    assert cache.get("custom") is None
    assert cache.get("dflt") == "a"
    clock.advance(300)
    assert cache.get("dflt") is None


def test_non_positive_ttl_uses_default(cache, clock):
    cache.set("zero", 1, ttl=0)
    cache.set("neg", 2, ttl=-5)
    clock.advance(599)
    assert cache.get("zero") == 1
    assert cache.get("neg") == 2


def test_falsy_values_are_hits(cache):
    cache.set("empty", [])
    cache.set("zero", 0)
    assert cache.get("empty", "miss") == []
    assert cache.get("zero", "miss") == 0


@pytest.mark.parametrize("ttl", [0, -1, "600", None])
def test_invalid_default_ttl_fails_fast(ttl):
    with pytest.raises(ValueError):
        TTLCache(default_ttl=ttl)


def test_invalid_check_period_fails_fast():
    with pytest.raises(ValueError):
        TTLCache(default_ttl=10, check_period=0)


def test_check_period_defaults_to_fifth_of_ttl():
    assert TTLCache(default_ttl=600).check_period == 120


def test_purge_expired_counts_removed(cache, clock):
    cache.set("a", 1, ttl=5)
    cache.set("b", 2, ttl=5)
    cache.set("c", 3, ttl=50)
    clock.advance(10)
    assert cache.purge_expired() == 2
    assert len(cache) == 1
    assert cache.get("c") == 3


def test_stats_counts_hits_and_misses(cache):
    cache.set("a", 1)
    cache.get("a")
    cache.get("a")
    cache.get("b")
    s = cache.stats()
    assert s["keys"] == 1
    assert s["hits"] == 2
    assert s["misses"] == 1
    assert s["backend"] == "memory"


def test_sweeper_evicts_in_background(clock):
    cache = TTLCache(default_ttl=10, check_period=0.01, clock=clock)
    cache.set("a", 1)
    clock.advance(11)
    cache.start_sweeper()
    try:
        deadline = time.monotonic() + 2
        while len(cache) and time.monotonic() < deadline:
            time.sleep(0.01)
        assert len(cache) == 0
    finally:
        cache.close()


def test_get_or_load_reads_through_once(cache):
    calls = []

    def loader():
        calls.append(1)
        return [{"id": 1}]

    assert get_or_load(cache, "k", loader) == [{"id": 1}]
    assert get_or_load(cache, "k", loader) == [{"id": 1}]
    assert len(calls) == 1


def test_get_or_load_caches_empty_list(cache):
    calls = []

    def loader():
        calls.append(1)
        return []

    get_or_load(cache, "k", loader)
    get_or_load(cache, "k", loader)
    assert len(calls) == 1


def test_get_or_load_does_not_cache_none(cache):
    calls = []

    def loader():
        calls.append(1)
        return None

    assert get_or_load(cache, "k", loader) is None
    assert get_or_load(cache, "k", loader) is None
    assert len(calls) == 2


def test_get_or_load_honours_ttl(cache, clock):
    get_or_load(cache, "k", lambda: "v", ttl=300)
    clock.advance(301)
    assert cache.get("k") is None


def test_get_or_load_propagates_loader_errors(cache):
    def loader():
        raise RuntimeError("db down")

    with pytest.raises(RuntimeError):
        get_or_load(cache, "k", loader)
    assert cache.get("k") is None
