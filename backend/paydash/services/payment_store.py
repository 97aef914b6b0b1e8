# services/payment_store.py
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Callable, List, Optional, Tuple, TypeVar
import logging

from google.api_core import exceptions as gexc
from google.cloud.firestore_v1.base_query import FieldFilter
from starlette.concurrency import run_in_threadpool

from paydash.core.exceptions import DuplicateTransaction, StoreUnavailable
from paydash.models.payment_model import Payment, PaymentQuery, PaymentStatus

logger = logging.getLogger("paydash.store")

T = TypeVar("T")


@dataclass(frozen=True)
class PaymentFilter:
    """Status equality plus a [created_from, created_before) window."""
    status: Optional[PaymentStatus] = None
    created_from: Optional[datetime] = None
    created_before: Optional[datetime] = None

    def matches(self, payment: Payment) -> bool:
        if self.status is not None and payment.status != self.status:
            return False
        if self.created_from is not None and payment.created_at < self.created_from:
            return False
        if self.created_before is not None and payment.created_at >= self.created_before:
            return False
        return True


@dataclass(frozen=True)
class DayBucket:
    day_key: str  # YYYY-MM-DD
    sum: float
    count: int


def query_matches(query: PaymentQuery, payment: Payment) -> bool:
    """Listing filter. Unlike PaymentFilter both date bounds are inclusive."""
    if query.status and payment.status != query.status:
        return False
    if query.method and payment.method != query.method:
        return False
    if query.receiver and query.receiver.lower() not in payment.receiver.lower():
        return False
    if query.start_date and payment.created_at < query.start_date:
        return False
    if query.end_date and payment.created_at > query.end_date:
        return False
    return True


class PaymentStore(ABC):
    """Everything the services need from wherever payments live."""

    @abstractmethod
    def new_id(self) -> str:
        ...

    @abstractmethod
    async def insert(self, payment: Payment) -> Payment:
        """Persist a new payment. Raises DuplicateTransaction if the transaction id is taken."""

    @abstractmethod
    async def get(self, payment_id: str) -> Optional[Payment]:
        ...

    @abstractmethod
    async def find(self, query: PaymentQuery) -> Tuple[List[Payment], int]:
        """One page of payments (newest first) and the total number of matches."""

    @abstractmethod
    async def count_all(self) -> int:
        ...

    @abstractmethod
    async def count_where(self, flt: PaymentFilter) -> int:
        ...

    @abstractmethod
    async def sum_where(self, flt: PaymentFilter, field: str = "amount") -> float:
        """Sum of `field` over matching payments, 0 for no matches."""

    @abstractmethod
    async def group_by_day_where(self, flt: PaymentFilter, tz: Optional[tzinfo] = None) -> List[DayBucket]:
        """
        Per-day sum of amount and count. Days without payments are absent.

        Each created_at is converted on its own, into `tz` or (None) the server's
        local zone, so payments on either side of a DST change land on their
        own calendar day.
        """

    async def ping(self) -> None:
        """Raise StoreUnavailable if the store cannot answer."""
        await self.count_all()


# ========================================
# FIRESTORE
# ========================================
class FirestorePaymentStore(PaymentStore):
    def __init__(self, db, collection: str, transaction_ids_collection: str, timeout: float):
        self.db = db
        self.collection = collection
        self.transaction_ids_collection = transaction_ids_collection
        self.timeout = timeout

    async def _call(self, fn: Callable[[], T], what: str) -> T:
        try:
            return await run_in_threadpool(fn)
        except gexc.AlreadyExists:
            raise
        except (gexc.GoogleAPICallError, gexc.RetryError, TimeoutError) as e:
            logger.error(f"❌ Firestore {what} failed: {e}")
            raise StoreUnavailable(f"Payment store unavailable during {what}") from e

    def _payments(self):
        return self.db.collection(self.collection)

    def _filtered(self, flt: PaymentFilter):
        query = self._payments()
        if flt.status is not None:
            query = query.where(filter=FieldFilter("status", "==", flt.status))
        if flt.created_from is not None:
            query = query.where(filter=FieldFilter("created_at", ">=", flt.created_from))
        if flt.created_before is not None:
            query = query.where(filter=FieldFilter("created_at", "<", flt.created_before))
        return query

    @staticmethod
    def _from_doc(doc) -> Payment:
        return Payment(id=doc.id, **doc.to_dict())

    def new_id(self) -> str:
        return self._payments().document().id

    async def insert(self, payment: Payment) -> Payment:
        # The guard document makes transaction_id unique at the store level:
        # batch.create fails the whole commit if either document exists.
        payment_ref = self._payments().document(payment.id)
        guard_ref = self.db.collection(self.transaction_ids_collection).document(payment.transaction_id)

        def write():
            batch = self.db.batch()
            batch.create(payment_ref, payment.to_document())
            batch.create(guard_ref, {"payment_id": payment.id, "created_at": payment.created_at})
            batch.commit(timeout=self.timeout)

        try:
            await self._call(write, "insert")
        except gexc.AlreadyExists as e:
            raise DuplicateTransaction(payment.transaction_id) from e
        return payment

    async def get(self, payment_id: str) -> Optional[Payment]:
        doc = await self._call(
            lambda: self._payments().document(payment_id).get(timeout=self.timeout), "get"
        )
        return self._from_doc(doc) if doc.exists else None

    async def find(self, query: PaymentQuery) -> Tuple[List[Payment], int]:
        fs_query = self._payments()
        if query.status:
            fs_query = fs_query.where(filter=FieldFilter("status", "==", query.status))
        if query.method:
            fs_query = fs_query.where(filter=FieldFilter("method", "==", query.method))
        if query.start_date:
            fs_query = fs_query.where(filter=FieldFilter("created_at", ">=", query.start_date))
        if query.end_date:
            fs_query = fs_query.where(filter=FieldFilter("created_at", "<=", query.end_date))
        ordered = fs_query.order_by("created_at", direction="DESCENDING")
        skip = (query.page - 1) * query.limit

        if query.receiver:
            # Firestore has no substring match; receiver is filtered here
            docs = await self._call(lambda: list(ordered.stream(timeout=self.timeout)), "find")
            matches = [p for p in map(self._from_doc, docs) if query_matches(query, p)]
            return matches[skip:skip + query.limit], len(matches)

        counter = fs_query.count(alias="total")
        page = ordered.offset(skip).limit(query.limit)
        totals = await self._call(lambda: counter.get(timeout=self.timeout), "find")
        docs = await self._call(lambda: list(page.stream(timeout=self.timeout)), "find")
        return [self._from_doc(d) for d in docs], int(totals[0][0].value)

    async def count_all(self) -> int:
        return await self.count_where(PaymentFilter())

    async def count_where(self, flt: PaymentFilter) -> int:
        aggregate = self._filtered(flt).count(alias="total")
        results = await self._call(lambda: aggregate.get(timeout=self.timeout), "count")
        return int(results[0][0].value)

    async def sum_where(self, flt: PaymentFilter, field: str = "amount") -> float:
        aggregate = self._filtered(flt).sum(field, alias="total")
        results = await self._call(lambda: aggregate.get(timeout=self.timeout), "sum")
        value = results[0][0].value
        return float(value or 0)

    async def group_by_day_where(self, flt: PaymentFilter, tz: Optional[tzinfo] = None) -> List[DayBucket]:
        # Firestore cannot group; bucket the (small) window client-side
        query = self._filtered(flt).select(["amount", "created_at"])
        docs = await self._call(lambda: list(query.stream(timeout=self.timeout)), "group_by_day")

        buckets = {}
        for doc in docs:
            data = doc.to_dict()
            key = data["created_at"].astimezone(tz).date().isoformat()
            total, count = buckets.get(key, (0.0, 0))
            buckets[key] = (total + float(data.get("amount", 0)), count + 1)

        return [DayBucket(day_key=k, sum=s, count=c) for k, (s, c) in sorted(buckets.items())]
