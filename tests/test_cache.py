import unittest

from mapstudio.cache import TTLCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TTLCacheTests(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()

    def test_entries_expire_after_ttl(self):
        cache = TTLCache(max_entries=4, ttl_s=10, clock=self.clock)
        cache.set("k", 1)
        self.clock.now = 9.5
        self.assertEqual(cache.get("k"), 1)
        self.clock.now = 10.0
        self.assertIsNone(cache.get("k"))
        self.assertEqual(len(cache), 0)

    def test_least_recently_used_is_evicted(self):
        cache = TTLCache(max_entries=2, ttl_s=100, clock=self.clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)
        self.assertIn("a", cache)
        self.assertNotIn("b", cache)
        self.assertIn("c", cache)

    def test_get_or_compute_runs_once(self):
        cache = TTLCache(clock=self.clock)
        calls = []

        def compute():
            calls.append(1)
            return "value"

        self.assertEqual(cache.get_or_compute(("x", 1), compute), "value")
        self.assertEqual(cache.get_or_compute(("x", 1), compute), "value")
        self.assertEqual(len(calls), 1)
        self.assertEqual((cache.hits, cache.misses), (1, 1))

    def test_invalidate_and_clear(self):
        cache = TTLCache(clock=self.clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.invalidate("a")
        self.assertNotIn("a", cache)
        cache.clear()
        self.assertEqual(len(cache), 0)

    def test_invalid_arguments(self):
        with self.assertRaises(ValueError):
            TTLCache(max_entries=0)
        with self.assertRaises(ValueError):
            TTLCache(ttl_s=0)

    def test_caches_are_independent(self):
        first = TTLCache(clock=self.clock)
        second = TTLCache(clock=self.clock)
        first.set("k", 1)
        self.assertNotIn("k", second)


if __name__ == "__main__":
    unittest.main()
