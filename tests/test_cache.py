import threading

import pytest

from placefinder import config
from placefinder.cache import ResultCache, make_fingerprint
from placefinder.models import FilterSpec, Location


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


BASE = dict(
    mood=40,
    category="food",
    budget="PP",
    social_context="solo",
    time_of_day="morning",
    distance_range=20,
    min_results=5,
)


def test_fingerprint_is_deterministic():
    assert make_fingerprint(FilterSpec(**BASE)) == make_fingerprint(FilterSpec(**dict(BASE)))
    assert make_fingerprint(FilterSpec(**BASE)) == make_fingerprint(FilterSpec.from_dict(
        {
            "mood": 40,
            "category": "food",
            "budget": "PP",
            "socialContext": "solo",
            "timeOfDay": "morning",
            "distanceRange": 20,
        }
    ))


@pytest.mark.parametrize(
    "field, value",
    [
        ("mood", 41),
        ("category", "activity"),
        ("budget", "P"),
        ("social_context", "barkada"),
        ("time_of_day", "night"),
        ("distance_range", 21),
        ("min_results", 6),
        ("budget", None),
    ],
)
def test_fingerprint_changes_with_each_filter(field, value):
    changed = dict(BASE)
    changed[field] = value
    assert make_fingerprint(FilterSpec(**changed)) != make_fingerprint(FilterSpec(**BASE))


def test_fingerprint_buckets_location():
    near_a = FilterSpec(user_location=Location(14.5501, 121.0501), **BASE)
    near_b = FilterSpec(user_location=Location(14.5549, 121.0549), **BASE)
    far = FilterSpec(user_location=Location(14.6501, 121.0501), **BASE)
    assert make_fingerprint(near_a) == make_fingerprint(near_b)
    assert make_fingerprint(near_a) != make_fingerprint(far)
    assert make_fingerprint(near_a, location_grid=None) == make_fingerprint(far, location_grid=None)


def test_unset_location_uses_default_center(monkeypatch):
    default = FilterSpec(**BASE)
    monkeypatch.setattr(config, "DEFAULT_CENTER", (10.0, 120.0))
    assert make_fingerprint(default) != make_fingerprint(FilterSpec(**BASE), location_grid=None)
    assert make_fingerprint(default) == make_fingerprint(FilterSpec(user_location=Location(10.0, 120.0), **BASE))


def test_get_set_and_ttl_expiry():
    clock = FakeClock()
    cache = ResultCache(max_entries=10, default_ttl=600, clock=clock)
    cache.set("k", {"places": ["a"]})

    clock.now += 599
    assert cache.get("k") == {"places": ["a"]}

    clock.now += 2
    assert cache.get("k") is None
    assert len(cache) == 0

    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["total_requests"] == 2
    assert stats["hit_rate"] == 0.5


def test_per_entry_ttl_override():
    clock = FakeClock()
    cache = ResultCache(default_ttl=600, clock=clock)
    cache.set("short", "x", ttl=60)
    cache.set("long", "y")
    clock.now += 61
    assert cache.get("short") is None
    assert cache.get("long") == "y"


def test_capacity_evicts_exactly_the_oldest_entry():
    clock = FakeClock()
    cache = ResultCache(max_entries=3, clock=clock)
    for key in ("a", "b", "c"):
        cache.set(key, key)
        clock.now += 1

    cache.set("b", "b2")
    assert len(cache) == 3

    cache.set("d", "d")
    assert len(cache) == 3
    assert cache.get("a") is None
    assert cache.get("b") == "b2"
    assert cache.get("c") == "c"
    assert cache.get("d") == "d"


def test_entries_are_copied_on_write_and_read():
    cache = ResultCache()
    value = {"places": [{"id": "a"}]}
    cache.set("k", value)
    value["places"].append({"id": "mutated"})

    first = cache.get("k")
    first["places"].append({"id": "also-mutated"})
    assert cache.get("k") == {"places": [{"id": "a"}]}


def test_clear_resets_entries_and_counters():
    cache = ResultCache()
    cache.set("k", 1)
    cache.get("k")
    cache.get("missing")
    cache.clear()
    assert len(cache) == 0
    assert cache.stats() == {"hits": 0, "misses": 0, "total_requests": 0, "hit_rate": 0.0, "size": 0}


def test_concurrent_reads_and_writes_stay_consistent():
    cache = ResultCache(max_entries=6)
    threads_n = 8
    rounds = 200
    errors = []

    def worker(n):
        for i in range(rounds):
            key = f"shared-{i % 4}" if i % 2 else f"own-{n}-{i % 10}"
            cache.set(key, {"key": key, "writer": n})
            got = cache.get(key)
            if got is not None and got["key"] != key:
                errors.append((key, got))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(threads_n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(10)

    stats = cache.stats()
    assert errors == []
    assert len(cache) <= 6
    assert stats["size"] <= 6
    assert stats["hits"] + stats["misses"] == stats["total_requests"] == threads_n * rounds
