# kiosk/repos/product_repo.py
from typing import Dict, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from kiosk.data.models.product import ProductModel


class ProductRepo:
    """Catalog lookup. Stock changes happen on rows returned by lock_products."""

    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def lock_products(self, product_ids: Iterable[int]) -> Dict[int, ProductModel]:
        # ascending id so two placements never wait on each other in opposite order
        ids = sorted(set(product_ids))
        if not ids:
            return {}
        rows = self.db.execute(
            select(ProductModel)
            .where(ProductModel.id.in_(ids))
            .order_by(ProductModel.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()
        return {p.id: p for p in rows}
