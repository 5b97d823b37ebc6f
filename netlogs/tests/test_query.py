from datetime import datetime, timezone

import pytest

from netlogs.core.context import RequestContext
from netlogs.core.errors import InvalidQueryError
from netlogs.services.persistence import PersistenceCoordinator
from netlogs.services.query_cache import QueryCache
from netlogs.services.query_service import QueryService, parse_hours, parse_limit
from netlogs.services.validation import validate_entry
from netlogs.tests.factories import minimal_entry

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def store(session_factory, ctx, *timestamps):
    batch = [validate_entry(minimal_entry(ts), now=NOW) for ts in timestamps]
    PersistenceCoordinator(session_factory).persist(batch, ctx)


@pytest.mark.parametrize('raw,expected', [
    (None, 1000),
    ('', 1000),
    ('50', 50),
    ('999999', 10000),
    ('0', 1),
    ('-5', 1),
])
def test_parse_limit_clamps(raw, expected):
    assert parse_limit(raw, default=1000, maximum=10000) == expected


@pytest.mark.parametrize('raw', ['abc', '10.5', '1e3'])
def test_parse_limit_rejects_non_integers(raw):
    with pytest.raises(InvalidQueryError):
        parse_limit(raw, default=1000, maximum=10000)


@pytest.mark.parametrize('raw', ['x', '0', '-1', 'nan', 'inf'])
def test_parse_hours_rejects_bad_values(raw):
    with pytest.raises(InvalidQueryError):
        parse_hours(raw)


def test_parse_hours():
    assert parse_hours(None) is None
    assert parse_hours('24') == 24.0


def test_cache_serves_until_ttl_expires():
    clock = FakeClock()
    cache = QueryCache(ttl_seconds=60, clock=clock)
    cache.put(10, [{'id': 1}])
    clock.now += 59
    assert cache.get(10) == [{'id': 1}]
    clock.now += 1
    assert cache.get(10) is None
    assert len(cache) == 0


def test_cache_keyed_by_limit():
    cache = QueryCache(ttl_seconds=60, clock=FakeClock())
    cache.put(10, ['a'])
    assert cache.get(20) is None


def test_cache_evicts_when_full():
    clock = FakeClock()
    cache = QueryCache(ttl_seconds=60, max_entries=2, clock=clock)
    cache.put(1, ['one'])
    clock.now += 1
    cache.put(2, ['two'])
    cache.put(3, ['three'])
    assert cache.get(1) is None
    assert cache.get(3) == ['three']


def test_zero_ttl_disables_cache():
    cache = QueryCache(ttl_seconds=0, clock=FakeClock())
    cache.put(10, ['a'])
    assert cache.get(10) is None


def test_recent_orders_newest_first(session_factory, ctx):
    store(session_factory, ctx, '2026-02-01T10:00:00Z', '2026-02-03T10:00:00Z', '2026-02-02T10:00:00+05:00')
    service = QueryService(session_factory, cache=QueryCache(ttl_seconds=60, clock=FakeClock()))
    rows, hit = service.recent(10, ctx)
    assert not hit
    assert [r['timestamp'] for r in rows] == [
        '2026-02-03T10:00:00.000000Z',
        '2026-02-02T05:00:00.000000Z',
        '2026-02-01T10:00:00.000000Z',
    ]
    assert rows[0]['ping_results'] == []


def test_recent_respects_limit(session_factory, ctx):
    store(session_factory, ctx, '2026-02-01T10:00:00Z', '2026-02-02T10:00:00Z', '2026-02-03T10:00:00Z')
    service = QueryService(session_factory, cache=QueryCache(ttl_seconds=0))
    rows, _ = service.recent(2, ctx)
    assert len(rows) == 2
    assert rows[0]['timestamp'] == '2026-02-03T10:00:00.000000Z'


def test_recent_is_cached_then_refreshed(session_factory, ctx):
    clock = FakeClock()
    service = QueryService(session_factory, cache=QueryCache(ttl_seconds=60, clock=clock))
    store(session_factory, ctx, '2026-02-01T10:00:00Z')
    rows, _ = service.recent(10, ctx)
    assert len(rows) == 1

    store(session_factory, ctx, '2026-02-02T10:00:00Z')
    rows, hit = service.recent(10, ctx)
    assert hit
    assert len(rows) == 1

    clock.now += 61
    rows, hit = service.recent(10, ctx)
    assert not hit
    assert len(rows) == 2


def test_window_filters_by_hours(session_factory):
    ctx = RequestContext(request_id='window', received_at=datetime(2026, 2, 3, 12, 0, tzinfo=timezone.utc))
    store(session_factory, ctx, '2026-02-01T10:00:00Z', '2026-02-03T10:00:00Z')
    service = QueryService(session_factory)
    rows = service.window(100, 24, ctx)
    assert [r['timestamp'] for r in rows] == ['2026-02-03T10:00:00.000000Z']


def test_ping_database(session_factory):
    assert QueryService(session_factory).ping_database()
