from sqlalchemy.engine.base import Engine
from sqlmodel import SQLModel, create_engine

from learnova.utils.logger import get_logger

logger = get_logger(__name__)


def create_db_engine(url: str) -> Engine:
    """Create the engine, SQLite connections are shared with the janitor thread."""
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=False, connect_args=connect_args)


def init_db(engine: Engine) -> None:
    # make sure all SQLModel models are imported before creating the tables
    import learnova.database.models  # noqa: F401, PLC0415

    SQLModel.metadata.create_all(engine)
    logger.debug("Database tables created")
