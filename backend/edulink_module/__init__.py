from .config import settings
from .database import Base, engine
from .routes import router
from .services import seed_demo_records
from .store import record_store


def init_edulink_module() -> None:
    Base.metadata.create_all(bind=engine)
    if settings.seed_demo:
        seed_demo_records(record_store)


__all__ = ["router", "init_edulink_module"]
