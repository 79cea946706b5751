import pytest

from utils.cache import BoundedCache


class FakeTimer:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def timer():
    return FakeTimer()


def test_evicts_oldest_insert_and_hits_do_not_reorder(timer):
    cache = BoundedCache("test", maxsize=2, ttl=60, timer=timer)
    cache.set('A', 1)
    cache.set('B', 2)
    cache.set('C', 3)
    assert cache.keys() == ['B', 'C']

    assert cache.get('B') == 2
    cache.set('D', 4)
    assert cache.keys() == ['C', 'D']
    assert 'B' not in cache


def test_never_exceeds_max_size(timer):
    cache = BoundedCache("test", maxsize=3, ttl=60, timer=timer)
    for i in range(10):
        cache.set(i, i * 10)
    assert len(cache) == 3
    assert cache.keys() == [7, 8, 9]


def test_resetting_a_key_moves_it_to_newest(timer):
    cache = BoundedCache("test", maxsize=2, ttl=60, timer=timer)
    cache.set('A', 1)
    cache.set('B', 2)
    cache.set('A', 10)
    cache.set('C', 3)
    assert cache.keys() == ['A', 'C']
    assert cache.get('A') == 10


def test_entries_expire_at_deadline(timer):
    cache = BoundedCache("test", maxsize=5, ttl=10, timer=timer)
    cache.set('A', 1)
    timer.now = 9.9
    assert cache.get('A') == 1
    timer.now = 10.0
    assert cache.get('A') is None
    assert cache.get('A', 'missing') == 'missing'


def test_hit_does_not_extend_deadline(timer):
    cache = BoundedCache("test", maxsize=5, ttl=10, timer=timer)
    cache.set('A', 1)
    timer.now = 8
    assert cache.get('A') == 1
    timer.now = 12
    assert 'A' not in cache


def test_expired_entries_are_swept_before_eviction(timer):
    cache = BoundedCache("test", maxsize=2, ttl=10, timer=timer)
    cache.set('A', 1)
    timer.now = 5
    cache.set('B', 2)
    timer.now = 11
    cache.set('C', 3)
    assert cache.keys() == ['B', 'C']


def test_get_or_fetch_only_fetches_on_miss(timer):
    cache = BoundedCache("test", maxsize=2, ttl=10, timer=timer)
    calls = []

    def fetch():
        calls.append(1)
        return 'value'

    assert cache.get_or_fetch('k', fetch) == 'value'
    assert cache.get_or_fetch('k', fetch) == 'value'
    assert len(calls) == 1

    timer.now = 20
    assert cache.get_or_fetch('k', fetch) == 'value'
    assert len(calls) == 2


def test_failed_fetch_leaves_cache_unchanged(timer):
    cache = BoundedCache("test", maxsize=2, ttl=10, timer=timer)
    cache.set('A', 1)
    cache.set('B', 2)

    def fetch():
        raise RuntimeError("upstream down")

    with pytest.raises(RuntimeError):
        cache.get_or_fetch('C', fetch)
    assert cache.keys() == ['A', 'B']


def test_clear_and_stats(timer):
    cache = BoundedCache("zones", maxsize=4, ttl=30, timer=timer)
    cache.set('A', 1)
    assert cache.stats() == {'name': 'zones', 'size': 1, 'max_size': 4, 'ttl_seconds': 30}

    result = cache.clear()
    assert result['cleared'] is True
    assert 'timestamp' in result
    assert len(cache) == 0


def test_rejects_zero_capacity():
    with pytest.raises(ValueError):
        BoundedCache("test", maxsize=0, ttl=10)
