# passvault/server/database.py
import logging
from typing import Any, Generator, Optional
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine
from .config import settings

logger = logging.getLogger(__name__)


def create_db_engine(url: str, echo: bool = False, **kwargs: Any) -> Engine:
    """Engine for ``url``; SQLite connections are shared across FastAPI's worker threads."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {})["check_same_thread"] = False
    return create_engine(url, echo=echo, **kwargs)


engine = create_db_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)


def init_db(bind: Optional[Engine] = None):
    # Table classes register themselves on import
    from . import models  # noqa: F401
    target = bind or engine
    SQLModel.metadata.create_all(target)
    logger.info("Database ready at %s", target.url.render_as_string(hide_password=True))


# FastAPI dependency, one session per request
def get_session() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session
