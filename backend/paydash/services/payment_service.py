# services/payment_service.py
import logging
import math
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from paydash.core.exceptions import (
    BroadcastFailure,
    DuplicateTransaction,
    NotFoundError,
    StoreUnavailable,
    ValidationError,
)
from paydash.models.payment_model import Payment, PaymentCreate, PaymentPage, PaymentQuery
from paydash.services.notifier import PaymentEvents
from paydash.services.payment_store import PaymentStore
from paydash.services.stats_service import compute_stats

logger = logging.getLogger("paydash")

TRANSACTION_ID_PREFIX = "TXN"
TRANSACTION_ID_ATTEMPTS = 3
_BASE36 = string.digits + string.ascii_uppercase

SAMPLE_PAYMENTS = [
    {
        "amount": 150.00,
        "receiver": "John Doe",
        "status": "success",
        "method": "credit_card",
        "description": "Online purchase",
        "currency": "USD",
    },
    {
        "amount": 75.50,
        "receiver": "Jane Smith",
        "status": "success",
        "method": "paypal",
        "description": "Service payment",
        "currency": "USD",
    },
    {
        "amount": 200.00,
        "receiver": "Bob Johnson",
        "status": "failed",
        "method": "bank_transfer",
        "description": "Refund",
        "currency": "USD",
    },
    {
        "amount": 89.99,
        "receiver": "Alice Brown",
        "status": "pending",
        "method": "debit_card",
        "description": "Subscription",
        "currency": "USD",
    },
]


def generate_transaction_id() -> str:
    """TXN + epoch millis + 9 random base36 chars. The store enforces uniqueness."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"{TRANSACTION_ID_PREFIX}{int(time.time() * 1000)}{suffix}"


class PaymentService:
    def __init__(
        self,
        store: PaymentStore,
        events: PaymentEvents,
        default_currency: str = "USD",
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        id_factory: Callable[[], str] = generate_transaction_id,
    ):
        self.store = store
        self.events = events
        self.default_currency = default_currency
        self.clock = clock
        self.id_factory = id_factory

    # ========================================
    # CREATE: validate → persist → broadcast
    # ========================================
    async def create(self, data: Union[PaymentCreate, Dict[str, Any]]) -> Payment:
        payload = self._validate(data)
        payment = await self._persist(payload)
        logger.info(
            f"Payment created → {payment.transaction_id} | {payment.currency} {payment.amount:,.2f} "
            f"| {payment.status} | {payment.receiver}"
        )
        await self._broadcast(payment)
        return payment

    def _validate(self, data: Union[PaymentCreate, Dict[str, Any]]) -> PaymentCreate:
        if isinstance(data, PaymentCreate):
            return data
        try:
            return PaymentCreate.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError("Invalid payment", detail=e.errors(include_url=False)) from e

    async def _persist(self, payload: PaymentCreate) -> Payment:
        for attempt in range(1, TRANSACTION_ID_ATTEMPTS + 1):
            now = self.clock()
            payment = Payment(
                id=self.store.new_id(),
                amount=payload.amount,
                receiver=payload.receiver,
                status=payload.status,
                method=payload.method,
                description=payload.description,
                transaction_id=self.id_factory(),
                currency=payload.currency or self.default_currency,
                created_at=now,
                updated_at=now,
            )
            try:
                return await self.store.insert(payment)
            except DuplicateTransaction as e:
                logger.warning(f"♻️ Transaction id collision ({e.transaction_id}), attempt {attempt}")
        raise StoreUnavailable("Could not allocate a unique transaction id")

    async def _broadcast(self, payment: Payment) -> None:
        # Best effort: the payment is already stored, nothing here may fail the request
        try:
            await self.events.payment_created(payment)
        except BroadcastFailure as e:
            logger.error(f"newPayment not delivered for {payment.transaction_id}: {e}")
        except Exception:
            logger.exception(f"newPayment not delivered for {payment.transaction_id}")

        try:
            stats = await compute_stats(self.store, self.clock())
        except StoreUnavailable as e:
            logger.error(f"Skipping statsUpdate after {payment.transaction_id}: {e}")
            return
        except Exception:
            logger.exception(f"Skipping statsUpdate after {payment.transaction_id}")
            return

        try:
            await self.events.stats_changed(stats)
        except BroadcastFailure as e:
            logger.error(f"statsUpdate not delivered after {payment.transaction_id}: {e}")
        except Exception:
            logger.exception(f"statsUpdate not delivered after {payment.transaction_id}")

    # ========================================
    # READS
    # ========================================
    async def get(self, payment_id: str) -> Payment:
        payment = await self.store.get(payment_id)
        if payment is None:
            raise NotFoundError("Payment not found")
        return payment

    async def list(self, query: Optional[PaymentQuery] = None) -> PaymentPage:
        query = query or PaymentQuery()
        payments, total = await self.store.find(query)
        return PaymentPage(
            payments=payments,
            total=total,
            page=query.page,
            total_pages=math.ceil(total / query.limit),
        )

    # ========================================
    # DEMO DATA
    # ========================================
    async def seed_sample_data(self) -> int:
        if await self.store.count_all() > 0:
            return 0
        for sample in SAMPLE_PAYMENTS:
            await self.create(sample)
        return len(SAMPLE_PAYMENTS)
