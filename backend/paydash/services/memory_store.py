# services/memory_store.py
import asyncio
import uuid
from collections import defaultdict
from datetime import tzinfo
from typing import Dict, List, Optional, Tuple

from paydash.core.exceptions import DuplicateTransaction
from paydash.models.payment_model import Payment, PaymentQuery
from paydash.services.payment_store import DayBucket, PaymentFilter, PaymentStore, query_matches


class InMemoryPaymentStore(PaymentStore):
    """Process-local store for PAYMENT_STORE=memory. Lost on restart."""

    def __init__(self):
        self._payments: Dict[str, Payment] = {}
        self._transaction_ids = set()
        self._lock = asyncio.Lock()

    def new_id(self) -> str:
        return uuid.uuid4().hex

    async def insert(self, payment: Payment) -> Payment:
        async with self._lock:
            if payment.transaction_id in self._transaction_ids or payment.id in self._payments:
                raise DuplicateTransaction(payment.transaction_id)
            self._transaction_ids.add(payment.transaction_id)
            self._payments[payment.id] = payment
        return payment

    async def get(self, payment_id: str) -> Optional[Payment]:
        return self._payments.get(payment_id)

    async def find(self, query: PaymentQuery) -> Tuple[List[Payment], int]:
        matches = [p for p in self._payments.values() if query_matches(query, p)]
        matches.sort(key=lambda p: p.created_at, reverse=True)
        start = (query.page - 1) * query.limit
        return matches[start:start + query.limit], len(matches)

    async def count_all(self) -> int:
        return len(self._payments)

    async def count_where(self, flt: PaymentFilter) -> int:
        return sum(1 for p in self._payments.values() if flt.matches(p))

    async def sum_where(self, flt: PaymentFilter, field: str = "amount") -> float:
        return sum(getattr(p, field) for p in self._payments.values() if flt.matches(p))

    async def group_by_day_where(self, flt: PaymentFilter, tz: Optional[tzinfo] = None) -> List[DayBucket]:
        sums = defaultdict(float)
        counts = defaultdict(int)
        for p in self._payments.values():
            if not flt.matches(p):
                continue
            key = p.created_at.astimezone(tz).date().isoformat()
            sums[key] += p.amount
            counts[key] += 1
        return [DayBucket(day_key=k, sum=sums[k], count=counts[k]) for k in sorted(sums)]
