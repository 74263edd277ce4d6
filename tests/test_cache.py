from analytics_api.services.cache import ResponseCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_hit_within_ttl():
    clock = FakeClock()
    cache = ResponseCache(clock=clock)
    cache.set("/api/x?a=1", {"status": "success"}, ttl=300)

    clock.now += 299

    assert cache.get("/api/x?a=1") == {"status": "success"}
    assert cache.hits == 1


def test_expires_after_ttl():
    clock = FakeClock()
    cache = ResponseCache(clock=clock)
    cache.set("key", "value", ttl=300)

    clock.now += 300

    assert cache.get("key") is None
    assert len(cache) == 0
    assert cache.misses == 1


def test_default_ttl():
    clock = FakeClock()
    cache = ResponseCache(default_ttl=900, clock=clock)
    cache.set("key", "value")

    clock.now += 899
    assert cache.get("key") == "value"
    clock.now += 1
    assert cache.get("key") is None


def test_delete_and_flush():
    cache = ResponseCache()
    cache.set("a", 1)
    cache.set("b", 2)

    assert cache.delete("a") is True
    assert cache.delete("a") is False
    cache.flush_all()

    assert len(cache) == 0


def test_stats():
    cache = ResponseCache()
    cache.set("a", 1)
    cache.get("a")
    cache.get("missing")

    assert cache.stats() == {"keys": 1, "hits": 1, "misses": 1}


def test_expired_entries_are_reclaimed():
    clock = FakeClock()
    cache = ResponseCache(clock=clock)
    for n in range(1000):
        cache.set(f"/api/x?startDate={n}", n, ttl=300)

    clock.now += 3600
    cache.set("/api/x?fresh", "value", ttl=300)

    assert len(cache) == 1
    assert cache.get("/api/x?fresh") == "value"


def test_size_is_bounded():
    cache = ResponseCache(maxsize=3)
    for n in range(5):
        cache.set(f"key-{n}", n)

    assert len(cache) == 3
    assert cache.get("key-0") is None
    assert cache.get("key-4") == 4


def test_zero_ttl_is_not_stored():
    cache = ResponseCache()
    cache.set("key", "value", ttl=0)

    assert cache.get("key") is None


def test_empty_cache_is_usable_before_first_write():
    cache = ResponseCache()

    assert len(cache) == 0
    assert cache.stats() == {"keys": 0, "hits": 0, "misses": 0}
