from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from bistro.config import settings


class Base(DeclarativeBase):
    pass


def _engine_kwargs(url: str) -> dict:
    kw: dict = {"future": True}
    if url.startswith("sqlite"):
        kw["connect_args"] = {"check_same_thread": False}
        # one shared connection, otherwise every session sees an empty db
        if ":memory:" in url or url.rstrip("/") == "sqlite:":
            kw["poolclass"] = StaticPool
    return kw


engine = create_engine(settings.DB_URL, **_engine_kwargs(settings.DB_URL))
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
