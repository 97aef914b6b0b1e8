# routers/payment_router.py
from fastapi import APIRouter, Depends, Query, status
from typing import Annotated
import logging

from paydash.core.auth import get_current_user
from paydash.core.dependencies import get_payment_service, get_store
from paydash.models.payment_model import (
    Payment,
    PaymentCreate,
    PaymentPage,
    PaymentQuery,
    StatsSnapshot,
)
from paydash.models.user_model import User
from paydash.services.payment_service import PaymentService
from paydash.services.payment_store import PaymentStore
from paydash.services.stats_service import compute_stats_or_zero

router = APIRouter(prefix="/payments", tags=["Payments"])
logger = logging.getLogger("paydash")


@router.post("", response_model=Payment, status_code=status.HTTP_201_CREATED)
async def create_payment(
    payload: PaymentCreate,
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    logger.info(f"Create payment requested by {current_user.id}")
    return await service.create(payload)


@router.get("", response_model=PaymentPage)
async def list_payments(
    query: Annotated[PaymentQuery, Query()],
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    return await service.list(query)


# Declared before /{payment_id} so "stats" is not taken for an id
@router.get("/stats", response_model=StatsSnapshot)
async def get_stats(
    current_user: User = Depends(get_current_user),
    store: PaymentStore = Depends(get_store),
):
    return await compute_stats_or_zero(store)


@router.get("/{payment_id}", response_model=Payment)
async def get_payment(
    payment_id: str,
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    return await service.get(payment_id)
