# models/payment_model.py
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import List, Optional, Literal
from datetime import datetime, timedelta, timezone


PaymentStatus = Literal["success", "failed", "pending"]
PaymentMethod = Literal["credit_card", "debit_card", "paypal", "bank_transfer", "crypto"]


class CamelModel(BaseModel):
    """Snake_case in Python and Firestore, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class PaymentCreate(CamelModel):
    amount: float = Field(..., gt=0)
    receiver: str = Field(..., min_length=1)
    status: PaymentStatus
    method: PaymentMethod
    description: Optional[str] = None
    currency: Optional[str] = None

    @field_validator("receiver")
    @classmethod
    def receiver_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("receiver must not be empty")
        return v

    @field_validator("currency")
    @classmethod
    def currency_upper(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip().upper()


class Payment(CamelModel):
    """One payment record. Written once, never updated."""
    id: str
    amount: float
    receiver: str
    status: PaymentStatus
    method: PaymentMethod
    description: Optional[str] = None
    transaction_id: str
    currency: str = "USD"

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_document(self) -> dict:
        """Firestore document body (snake_case, id lives in the doc path)."""
        return self.model_dump(exclude={"id"})


class RevenuePoint(CamelModel):
    date: str  # YYYY-MM-DD, server-local
    revenue: float = 0
    count: int = 0


class StatsSnapshot(CamelModel):
    total_payments_today: int = 0
    total_payments_week: int = 0
    total_revenue_today: float = 0
    total_revenue_week: float = 0
    failed_transactions: int = 0
    revenue_chart: List[RevenuePoint] = Field(default_factory=list)

    @classmethod
    def zero(cls, now: datetime) -> "StatsSnapshot":
        """Snapshot shown when the store cannot be read."""
        today = now.date()
        chart = [
            RevenuePoint(date=(today - timedelta(days=offset)).isoformat())
            for offset in range(6, -1, -1)
        ]
        return cls(revenue_chart=chart)


class PaymentQuery(CamelModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)
    status: Optional[PaymentStatus] = None
    method: Optional[PaymentMethod] = None
    receiver: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def assume_server_local(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            return v.astimezone()
        return v


class PaymentPage(CamelModel):
    payments: List[Payment]
    total: int
    page: int
    total_pages: int
