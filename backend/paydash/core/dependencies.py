# core/dependencies.py
from fastapi import Request

from paydash.core.config import Settings
from paydash.core.firebase import get_db
from paydash.services.memory_store import InMemoryPaymentStore
from paydash.services.notifier import ChangeNotifier, NotifierEvents
from paydash.services.payment_service import PaymentService
from paydash.services.payment_store import FirestorePaymentStore, PaymentStore


def build_store(settings: Settings) -> PaymentStore:
    if settings.PAYMENT_STORE == "memory":
        return InMemoryPaymentStore()
    return FirestorePaymentStore(
        db=get_db(),
        collection=settings.PAYMENTS_COLLECTION,
        transaction_ids_collection=settings.TRANSACTION_IDS_COLLECTION,
        timeout=settings.STORE_TIMEOUT_SECONDS,
    )


def wire_services(state, settings: Settings) -> None:
    """Build the store, notifier and payment service once and hang them on app.state."""
    state.store = build_store(settings)
    state.notifier = ChangeNotifier(send_timeout=settings.WS_SEND_TIMEOUT_SECONDS)
    state.payment_service = PaymentService(
        store=state.store,
        events=NotifierEvents(state.notifier, settings.DASHBOARD_CHANNEL),
        default_currency=settings.DEFAULT_CURRENCY,
    )


# ------------------------------------------------------------
# Request-scoped accessors (FastAPI Depends)
# ------------------------------------------------------------
def get_store(request: Request) -> PaymentStore:
    return request.app.state.store


def get_payment_service(request: Request) -> PaymentService:
    return request.app.state.payment_service
