import time
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from conftest import NOW, make_payment
from paydash.core.exceptions import StoreUnavailable
from paydash.services.payment_store import DayBucket
from paydash.services.stats_service import (
    build_revenue_chart,
    compute_stats,
    compute_stats_or_zero,
    midnight,
)


def expected_days(now=NOW):
    today = now.date()
    return [(today - timedelta(days=offset)).isoformat() for offset in range(6, -1, -1)]


@pytest.mark.asyncio
async def test_empty_store_gives_zero_stats_and_zero_filled_chart(store):
    stats = await compute_stats(store, NOW)

    assert stats.total_payments_today == 0
    assert stats.total_payments_week == 0
    assert stats.total_revenue_today == 0
    assert stats.total_revenue_week == 0
    assert stats.failed_transactions == 0
    assert [p.date for p in stats.revenue_chart] == expected_days()
    assert all(p.revenue == 0 and p.count == 0 for p in stats.revenue_chart)


@pytest.mark.asyncio
async def test_single_success_today(store):
    await store.insert(make_payment(amount=150))

    stats = await compute_stats(store, NOW)

    assert stats.total_payments_today == 1
    assert stats.total_revenue_today == 150
    assert stats.total_payments_week == 1
    assert stats.total_revenue_week == 150
    last = stats.revenue_chart[-1]
    assert (last.date, last.revenue, last.count) == (NOW.date().isoformat(), 150, 1)


@pytest.mark.asyncio
async def test_failed_payment_counts_but_adds_no_revenue(store):
    await store.insert(make_payment(amount=150))
    before = await compute_stats(store, NOW)

    await store.insert(make_payment(amount=200, status="failed"))
    after = await compute_stats(store, NOW)

    assert after.failed_transactions == before.failed_transactions + 1
    assert after.total_revenue_today == before.total_revenue_today
    assert after.total_payments_today == before.total_payments_today


@pytest.mark.asyncio
async def test_failed_transactions_is_all_time(store):
    await store.insert(make_payment(status="failed", created_at=NOW - timedelta(days=400)))
    await store.insert(make_payment(status="failed", created_at=NOW - timedelta(days=30)))
    await store.insert(make_payment(status="failed", created_at=NOW - timedelta(minutes=5)))

    stats = await compute_stats(store, NOW)

    assert stats.failed_transactions == 3


@pytest.mark.asyncio
async def test_pending_payments_are_ignored(store):
    await store.insert(make_payment(amount=89.99, status="pending"))

    stats = await compute_stats(store, NOW)

    assert stats.total_payments_today == 0
    assert stats.total_revenue_week == 0
    assert stats.failed_transactions == 0


@pytest.mark.asyncio
async def test_window_boundaries(store):
    start = midnight(NOW)
    await store.insert(make_payment(amount=10, created_at=start))                         # today, inclusive
    await store.insert(make_payment(amount=20, created_at=start - timedelta(seconds=1)))  # yesterday
    await store.insert(make_payment(amount=40, created_at=start - timedelta(days=7)))     # week start, inclusive
    await store.insert(make_payment(amount=80, created_at=start - timedelta(days=7, seconds=1)))
    await store.insert(make_payment(amount=160, created_at=NOW))                          # now is exclusive

    stats = await compute_stats(store, NOW)

    assert stats.total_payments_today == 1
    assert stats.total_revenue_today == 10
    assert stats.total_payments_week == 3
    assert stats.total_revenue_week == 70


@pytest.mark.asyncio
async def test_week_revenue_covers_today(store):
    for days_ago, amount in [(0, 12.5), (1, 30), (3, 7.25), (6, 100)]:
        await store.insert(make_payment(amount=amount, created_at=NOW - timedelta(days=days_ago, minutes=1)))

    stats = await compute_stats(store, NOW)

    assert stats.total_revenue_week >= stats.total_revenue_today
    assert stats.total_revenue_week == pytest.approx(149.75)


@pytest.mark.asyncio
async def test_compute_stats_is_idempotent(store):
    await store.insert(make_payment(amount=150))
    await store.insert(make_payment(amount=200, status="failed"))

    first = await compute_stats(store, NOW)
    second = await compute_stats(store, NOW)

    assert first == second


@pytest.mark.asyncio
async def test_chart_buckets_by_day(store):
    await store.insert(make_payment(amount=50, created_at=NOW - timedelta(days=2)))
    await store.insert(make_payment(amount=25, created_at=NOW - timedelta(days=2, minutes=30)))
    await store.insert(make_payment(amount=75.5, created_at=NOW - timedelta(days=5)))
    await store.insert(make_payment(amount=999, created_at=NOW - timedelta(days=9)))  # outside the chart
    await store.insert(make_payment(amount=500, status="failed", created_at=NOW - timedelta(days=1)))

    chart = await build_revenue_chart(store, NOW)

    assert len(chart) == 7
    by_date = {p.date: (p.revenue, p.count) for p in chart}
    assert by_date[(NOW - timedelta(days=2)).date().isoformat()] == (75, 2)
    assert by_date[(NOW - timedelta(days=5)).date().isoformat()] == (75.5, 1)
    assert by_date[(NOW - timedelta(days=1)).date().isoformat()] == (0, 0)
    assert sum(count for _, count in by_date.values()) == 3


class UnorderedBucketStore:
    """Returns grouped results with gaps, out of order, plus a day outside the window."""

    async def group_by_day_where(self, flt, tz):
        today = NOW.date()
        return [
            DayBucket(day_key=today.isoformat(), sum=10, count=1),
            DayBucket(day_key=(today - timedelta(days=20)).isoformat(), sum=99, count=9),
            DayBucket(day_key=(today - timedelta(days=4)).isoformat(), sum=40, count=4),
        ]


@pytest.mark.asyncio
async def test_chart_merges_by_date_not_position():
    chart = await build_revenue_chart(UnorderedBucketStore(), NOW)

    assert [p.date for p in chart] == expected_days()
    assert [p.count for p in chart] == [0, 0, 4, 0, 0, 0, 1]
    assert [p.revenue for p in chart] == [0, 0, 40, 0, 0, 0, 10]


@pytest.mark.asyncio
async def test_store_failure_propagates_from_compute_stats(store, monkeypatch):
    async def boom(*args, **kwargs):
        raise StoreUnavailable("firestore down")

    monkeypatch.setattr(store, "count_where", boom)

    with pytest.raises(StoreUnavailable):
        await compute_stats(store, NOW)


@pytest.mark.asyncio
async def test_read_path_falls_back_to_zero_snapshot(store, monkeypatch):
    await store.insert(make_payment(amount=150))

    async def boom(*args, **kwargs):
        raise StoreUnavailable("firestore down")

    monkeypatch.setattr(store, "sum_where", boom)

    stats = await compute_stats_or_zero(store, NOW)

    assert stats.total_payments_today == 0
    assert stats.total_revenue_today == 0
    assert stats.failed_transactions == 0
    assert [p.date for p in stats.revenue_chart] == expected_days()
    assert all(p.count == 0 for p in stats.revenue_chart)


# US clocks fall back at 02:00 on 2026-11-01
NEW_YORK = ZoneInfo("America/New_York")


@pytest.fixture
def new_york_server(monkeypatch):
    monkeypatch.setenv("TZ", "America/New_York")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


async def assert_fall_back_day(store, now, tz=None):
    def at(*fields):
        naive = datetime(*fields)
        return naive.replace(tzinfo=tz) if tz else naive.astimezone()

    await store.insert(make_payment(amount=10, created_at=at(2026, 11, 1, 0, 30)))   # EDT, today
    await store.insert(make_payment(amount=20, created_at=at(2026, 10, 31, 0, 30)))  # EDT, yesterday
    await store.insert(make_payment(amount=40, created_at=at(2026, 10, 31, 23, 30)))  # EDT, yesterday

    stats = await compute_stats(store, now, tz)

    assert stats.total_payments_today == 1
    assert stats.total_revenue_today == 10
    assert stats.total_payments_week == 3
    chart = {p.date: p for p in stats.revenue_chart}
    assert (chart["2026-11-01"].count, chart["2026-11-01"].revenue) == (1, 10)
    assert (chart["2026-10-31"].count, chart["2026-10-31"].revenue) == (2, 60)
    assert chart["2026-10-30"].count == 0


@pytest.mark.asyncio
async def test_dst_change_day_in_explicit_zone(store):
    await assert_fall_back_day(store, datetime(2026, 11, 1, 15, 0, tzinfo=NEW_YORK), NEW_YORK)


@pytest.mark.asyncio
async def test_dst_change_day_in_server_local_zone(store, new_york_server):
    await assert_fall_back_day(store, datetime(2026, 11, 1, 15, 0).astimezone())


def test_midnight_uses_the_offset_in_force_at_midnight(new_york_server):
    now = datetime(2026, 11, 1, 15, 0).astimezone()  # EST, -05:00

    start = midnight(now)

    assert start.utcoffset() == timedelta(hours=-4)
    assert (now - start) == timedelta(hours=16)
