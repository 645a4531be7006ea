#kiosk/data/models/payment.py
import math
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy import Column, String, DateTime, Numeric

from kiosk.data.database import Base
from kiosk.domain.errors import (
    AlreadyLinked,
    InvalidAmount,
    InvalidDecision,
    NotApproved,
    NotPending,
)
from kiosk.utils.clock import as_utc


class PaymentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"
    ERROR = "error"  # provider-side failure, never set here; a new checkout replaces it
    EXPIRED = "expired"


DECISIONS = (PaymentStatus.APPROVED.value, PaymentStatus.DECLINED.value)


def _now():
    return datetime.now(timezone.utc)


class PaymentModel(Base):
    """
    One payment attempt for a session cart.

    pending -> approved | declined (webhook), pending -> expired (timer ran
    out). An approved payment is linked to exactly one order.
    """

    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    session_id = Column(String(64), nullable=False, index=True)

    amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)

    qr_url = Column(String(512), nullable=True)
    qr_text = Column(String(1024), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    external_ref = Column(String(100), nullable=True)
    method = Column(String(30), nullable=True)
    order_id = Column(String(36), nullable=True, unique=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    @classmethod
    def create(cls, session_id: str, amount: Decimal) -> "PaymentModel":
        amount = Decimal(str(amount))
        if amount <= 0:
            raise InvalidAmount()
        now = _now()
        return cls(
            id=str(uuid.uuid4()),
            session_id=session_id,
            amount=amount,
            status=PaymentStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_pending(self) -> bool:
        return self.status == PaymentStatus.PENDING

    def issue_qr_code(self, qr_url: str, qr_text: str, ttl_seconds: int, now: datetime | None = None) -> None:
        if not self.is_pending:
            raise NotPending(self.id, self.status)
        now = now or _now()
        self.qr_url = qr_url
        self.qr_text = qr_text
        self.expires_at = now + timedelta(seconds=ttl_seconds)
        self.updated_at = now

    def confirm(self, decision: str, external_ref: str, method: str) -> None:
        if decision not in DECISIONS:
            raise InvalidDecision()
        if not self.is_pending:
            raise NotPending(self.id, self.status)
        self.status = decision
        self.external_ref = external_ref
        self.method = method
        self.updated_at = _now()

    def expire(self) -> None:
        if not self.is_pending:
            raise NotPending(self.id, self.status)
        self.status = PaymentStatus.EXPIRED.value
        self.updated_at = _now()

    def link_order(self, order_id: str) -> None:
        if self.status != PaymentStatus.APPROVED:
            raise NotApproved()
        if self.order_id:
            raise AlreadyLinked(self.id, self.order_id)
        self.order_id = order_id
        self.updated_at = _now()

    def check_timer(self, now: datetime | None = None) -> dict:
        # the timer only means something while we are waiting for the money
        if not self.is_pending or self.expires_at is None:
            return {"status": "expired", "seconds_remaining": 0}
        now = now or _now()
        remaining = (as_utc(self.expires_at) - now).total_seconds()
        if remaining <= 0:
            return {"status": "expired", "seconds_remaining": 0}
        return {"status": "active", "seconds_remaining": math.ceil(remaining)}
