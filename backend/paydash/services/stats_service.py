# services/stats_service.py
import asyncio
import logging
from datetime import date, datetime, time, timedelta, tzinfo
from typing import List, Optional

from paydash.core.exceptions import StoreUnavailable
from paydash.models.payment_model import RevenuePoint, StatsSnapshot
from paydash.services.payment_store import PaymentFilter, PaymentStore

logger = logging.getLogger("paydash.stats")

CHART_DAYS = 7
WEEK_DAYS = 7


def local_now(tz: Optional[tzinfo] = None) -> datetime:
    """Timezone-aware server-local time (or the time in `tz`)."""
    return datetime.now(tz).astimezone(tz)


def _as_local(now: Optional[datetime], tz: Optional[tzinfo] = None) -> datetime:
    # Naive values are taken as server-local; aware ones are converted
    if now is None:
        return local_now(tz)
    return now.astimezone(tz)


def local_midnight(day: date, tz: Optional[tzinfo] = None) -> datetime:
    """
    Start of `day` with the offset in force at that instant.

    tz=None follows the server's zone rules, so a DST change between the
    day in question and now is respected.
    """
    if tz is None:
        return datetime.combine(day, time()).astimezone()
    return datetime.combine(day, time(), tzinfo=tz)


def midnight(now: datetime, tz: Optional[tzinfo] = None) -> datetime:
    return local_midnight(now.date(), tz)


# -------------------------------
# Revenue chart
# -------------------------------
async def build_revenue_chart(
    store: PaymentStore,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> List[RevenuePoint]:
    """
    Successful revenue per calendar day, today - 6 through today.

    Always CHART_DAYS entries, oldest first. Days are generated here and
    looked up in the grouped result by key, so gaps or odd ordering in
    the store's answer never shift a value onto the wrong day.
    """
    now = _as_local(now, tz)
    today = now.date()
    window = PaymentFilter(
        status="success",
        created_from=local_midnight(today - timedelta(days=CHART_DAYS - 1), tz),
        created_before=now,
    )

    buckets = await store.group_by_day_where(window, tz)
    by_day = {b.day_key: b for b in buckets}

    chart = []
    for offset in range(CHART_DAYS - 1, -1, -1):
        key = (today - timedelta(days=offset)).isoformat()
        bucket = by_day.get(key)
        chart.append(RevenuePoint(
            date=key,
            revenue=bucket.sum if bucket else 0,
            count=bucket.count if bucket else 0,
        ))
    return chart


# -------------------------------
# Stats snapshot
# -------------------------------
async def compute_stats(
    store: PaymentStore,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> StatsSnapshot:
    """
    Recompute the dashboard stats from the store. Nothing is cached.

    Today is [midnight, now) and the week is [midnight 7 days ago, now), both
    counting successful payments only. failed_transactions is an all-time
    count and ignores the windows. Midnights are server-local unless `tz`
    is given.

    Raises StoreUnavailable if any of the underlying queries fail.
    """
    now = _as_local(now, tz)
    today = now.date()
    today_window = PaymentFilter(
        status="success",
        created_from=local_midnight(today, tz),
        created_before=now,
    )
    week_window = PaymentFilter(
        status="success",
        created_from=local_midnight(today - timedelta(days=WEEK_DAYS), tz),
        created_before=now,
    )

    (
        payments_today,
        payments_week,
        revenue_today,
        revenue_week,
        failed,
        chart,
    ) = await asyncio.gather(
        store.count_where(today_window),
        store.count_where(week_window),
        store.sum_where(today_window, "amount"),
        store.sum_where(week_window, "amount"),
        store.count_where(PaymentFilter(status="failed")),
        build_revenue_chart(store, now, tz),
    )

    return StatsSnapshot(
        total_payments_today=payments_today,
        total_payments_week=payments_week,
        total_revenue_today=revenue_today or 0,
        total_revenue_week=revenue_week or 0,
        failed_transactions=failed,
        revenue_chart=chart,
    )


async def compute_stats_or_zero(
    store: PaymentStore,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> StatsSnapshot:
    """Read-path variant: a store outage yields a zeroed snapshot instead of an error."""
    now = _as_local(now, tz)
    try:
        return await compute_stats(store, now, tz)
    except StoreUnavailable as e:
        logger.warning(f"Stats unavailable, serving zeroed snapshot: {e}")
        return StatsSnapshot.zero(now)
