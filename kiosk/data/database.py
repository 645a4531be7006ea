# kiosk/data/database.py
from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from kiosk.utils.settings import DATABASE_URL

Base = declarative_base()


def make_engine(url: str | None = None, **kwargs) -> Engine:
    return create_engine(url or DATABASE_URL, pool_pre_ping=True, future=True, **kwargs)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


def init_models(engine: Engine) -> None:
    # register every model on Base.metadata before create_all
    import kiosk.data.models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def get_db(request: Request):
    db: Session = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
