"""Tests for utils/cache.py -- the in-memory layer of the obligation cache."""
import sys
import threading
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from utils.cache import TTLCache


class TestTTLCache:
    def test_fiscal_year_keys(self):
        cache = TTLCache()
        cache.set(2024, {"CA": 1.5e11})
        assert cache.get(2024) == {"CA": 1.5e11}
        assert cache.get("2024") is None

    def test_miss_returns_none(self):
        assert TTLCache().get(2019) is None

    def test_ttl_expiry(self):
        cache = TTLCache(ttl_seconds=0.05)
        cache.set(2020, {"TX": 1.0})
        assert cache.get(2020) == {"TX": 1.0}
        time.sleep(0.1)
        assert cache.get(2020) is None

    def test_ttl_property(self):
        assert TTLCache(ttl_seconds=86400).ttl_seconds == 86400

    def test_stats(self):
        cache = TTLCache()
        cache.set(2021, {})
        cache.get(2021)
        cache.get(2022)
        assert cache.stats() == {"hits": 1, "misses": 1, "size": 1}

    def test_clear_resets_stats(self):
        cache = TTLCache()
        cache.set(2021, {})
        cache.get(2021)
        cache.clear()
        assert cache.stats() == {"hits": 0, "misses": 0, "size": 0}

    def test_maxsize_eviction(self):
        cache = TTLCache(maxsize=2)
        for fy in (2017, 2018, 2019):
            cache.set(fy, {"CA": float(fy)})
        present = [fy for fy in (2017, 2018, 2019) if cache.get(fy) is not None]
        assert len(present) == 2
        assert 2019 in present

    def test_overwrite(self):
        cache = TTLCache()
        cache.set(2020, {"CA": 1.0})
        cache.set(2020, {"CA": 2.0})
        assert cache.get(2020) == {"CA": 2.0}

    def test_concurrent_fetch_workers(self):
        cache = TTLCache(maxsize=100)
        errors = []

        def worker(offset):
            try:
                for fy in range(2000, 2040):
                    cache.set(fy, {"CA": float(fy + offset)})
                    cache.get(fy)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert not errors
        assert cache.stats()["size"] == 40
