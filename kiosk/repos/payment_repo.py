# kiosk/repos/payment_repo.py
from datetime import datetime
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from kiosk.data.models.payment import PaymentModel, PaymentStatus


class PaymentRepo:
    def __init__(self, db: Session):
        self.db = db

    def add(self, payment: PaymentModel) -> PaymentModel:
        self.db.add(payment)
        self.db.flush()
        return payment

    def get(self, payment_id: str) -> PaymentModel | None:
        return self.db.get(PaymentModel, payment_id)

    def get_for_update(self, payment_id: str, skip_locked: bool = False) -> PaymentModel | None:
        # populate_existing: the webhook may have resolved the row since it was last read
        return self.db.execute(
            select(PaymentModel)
            .where(PaymentModel.id == payment_id)
            .with_for_update(skip_locked=skip_locked)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_latest_by_session(self, session_id: str) -> PaymentModel | None:
        return self.db.execute(
            select(PaymentModel)
            .where(PaymentModel.session_id == session_id)
            .order_by(PaymentModel.created_at.desc())
            .limit(1)
        ).scalar_one_or_none()

    def list_stale_pending(self, now: datetime) -> List[PaymentModel]:
        return list(
            self.db.execute(
                select(PaymentModel).where(
                    PaymentModel.status == PaymentStatus.PENDING.value,
                    PaymentModel.expires_at.is_not(None),
                    PaymentModel.expires_at < now,
                )
            ).scalars().all()
        )

    def session_has_open_payment(self, session_id: str, now: datetime) -> bool:
        """True while a pending QR is still live or an approved payment has no order yet."""
        rows = self.db.execute(
            select(PaymentModel).where(
                PaymentModel.session_id == session_id,
                PaymentModel.status.in_((PaymentStatus.PENDING.value, PaymentStatus.APPROVED.value)),
            )
        ).scalars().all()
        for p in rows:
            if p.status == PaymentStatus.APPROVED and not p.order_id:
                return True
            if p.status == PaymentStatus.PENDING and p.check_timer(now)["status"] == "active":
                return True
        return False
