#kiosk/data/models/product.py
from sqlalchemy import Column, Integer, String, Numeric, Boolean

from kiosk.data.database import Base


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String(120), nullable=False)
    category = Column(String(60), nullable=False, default="Desconhecida")

    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    available = Column(Boolean, nullable=False, default=True)

    @property
    def purchasable(self) -> bool:
        return bool(self.available) and (self.stock or 0) > 0
