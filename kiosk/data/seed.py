# kiosk/data/seed.py
from decimal import Decimal

from sqlalchemy.orm import sessionmaker

from kiosk.data.database import init_models, make_engine, make_session_factory
from kiosk.data.models import CustomerModel, ProductModel
from kiosk.utils.logging import get_logger

logger = get_logger(__name__)

MENU = [
    (1, "Hambúrguer Clássico", "Lanches", "18.90", 50),
    (2, "Cheeseburger Duplo", "Lanches", "24.90", 40),
    (3, "Refrigerante Cola", "Bebidas", "5.90", 100),
    (4, "Suco de Laranja", "Bebidas", "7.90", 80),
    (5, "Batata Frita", "Acompanhamentos", "9.90", 60),
    (6, "Onion Rings", "Acompanhamentos", "11.90", 45),
    (7, "Sundae de Chocolate", "Sobremesas", "8.90", 30),
    (8, "Milkshake de Morango", "Sobremesas", "12.90", 25),
]

CUSTOMERS = [
    (1, "João Silva", "joao@email.com"),
    (2, "Maria Souza", "maria@email.com"),
]


def seed(session_factory: sessionmaker | None = None) -> None:
    if session_factory is None:
        engine = make_engine()
        init_models(engine)
        session_factory = make_session_factory(engine)

    db = session_factory()
    try:
        # only seed an empty catalog
        if db.query(ProductModel).first():
            logger.info("Catalog already seeded, skipping")
            return

        for pid, name, category, price, stock in MENU:
            db.add(ProductModel(id=pid, name=name, category=category, price=Decimal(price), stock=stock, available=True))
        for cid, name, email in CUSTOMERS:
            db.add(CustomerModel(id=cid, name=name, email=email))
        db.commit()
        logger.info(f"Seeded {len(MENU)} products and {len(CUSTOMERS)} customers")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
