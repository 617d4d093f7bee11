from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings


def build_engine(database_url: str, **kwargs):
    # FastAPI runs sync endpoints in a thread pool; SQLite connections must be shareable.
    if database_url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_engine(database_url, future=True, **kwargs)


def build_session_factory(bind) -> sessionmaker:
    return sessionmaker(bind=bind, autoflush=False, autocommit=False, expire_on_commit=False, future=True)


engine = build_engine(settings.database_url)
SessionLocal = build_session_factory(engine)
Base = declarative_base()
