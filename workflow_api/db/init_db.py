"""
Database initialization utilities.
"""
import logging
from pathlib import Path

from sqlalchemy.engine import make_url

from workflow_api.db.models import Base
from workflow_api.db.database import engine as default_engine

logger = logging.getLogger(__name__)


def ensure_sqlite_directory(engine) -> None:
    """SQLite will not create missing parent directories of the database file."""
    url = make_url(str(engine.url))
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


def create_tables(engine=None):
    """Create all tables defined in models."""
    engine = engine or default_engine
    ensure_sqlite_directory(engine)
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("All tables created successfully")


def drop_all_tables(engine=None):
    """Drop all tables (useful for testing)."""
    engine = engine or default_engine
    logger.info("Dropping all database tables...")
    Base.metadata.drop_all(bind=engine)
    logger.info("All tables dropped successfully")
