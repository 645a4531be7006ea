# kiosk/repos/order_repo.py
from typing import List

from sqlalchemy import select, func
from sqlalchemy.orm import Session, selectinload

from kiosk.data.models.order import OrderModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel)
            .options(selectinload(OrderModel.items))
            .where(OrderModel.id == order_id)
        ).scalar_one_or_none()

    def get_for_update(self, order_id: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel)
            .where(OrderModel.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_transaction_number(self) -> int:
        # unique index on transaction_number catches two placements reading the same max
        current = self.db.execute(select(func.max(OrderModel.transaction_number))).scalar()
        return (current or 0) + 1

    def list_orders(self, status: str | None = None) -> List[OrderModel]:
        stmt = select(OrderModel).options(selectinload(OrderModel.items))
        if status:
            stmt = stmt.where(OrderModel.status == status)
        stmt = stmt.order_by(OrderModel.updated_at.desc())
        return list(self.db.execute(stmt).scalars().all())
