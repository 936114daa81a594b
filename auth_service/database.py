# auth_service/database.py (SQLITE FALLBACK, PER-URL FACTORIES)
import os

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from config import AppConfig

# Base class which all database models will inherit from
Base = declarative_base()


def make_engine(database_url=None):
    url = database_url or AppConfig.DATABASE_URL
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    # connect_args is ONLY needed for SQLite: the auth worker thread and the
    # request thread share connections
    kwargs = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        # one shared in-memory database instead of one per connection
        kwargs["poolclass"] = StaticPool
    else:
        db_path = url.replace("sqlite:///", "", 1)
        folder = os.path.dirname(db_path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        logger.info(f"Using SQLite database: {db_path}")
    return create_engine(url, **kwargs)


def make_session_factory(database_url=None):
    engine = make_engine(database_url)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(session_factory):
    # models must be imported so their tables are registered on Base
    from auth_service import models  # noqa: F401

    Base.metadata.create_all(bind=session_factory.kw["bind"])
    logger.debug("Database tables checked/created.")

