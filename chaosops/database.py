"""Database engine, per-connection SQLite settings and session dependency."""

from sqlalchemy import event
from sqlmodel import SQLModel, Session, create_engine

from chaosops.config import settings

# Import all models so SQLModel registers them
import chaosops.models  # noqa: F401

engine = create_engine(
    f"sqlite:///{settings.db_path}",
    echo=settings.debug,
    connect_args={"check_same_thread": False, "timeout": 15},
)


@event.listens_for(engine, "connect")
def _configure_sqlite(dbapi_connection, connection_record):
    # foreign_keys is per connection; journal_mode sticks to the file
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


def init_db() -> None:
    """Create all tables and switch the database file to WAL."""
    SQLModel.metadata.create_all(engine)
    with engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA journal_mode=WAL")
        conn.commit()


def get_session():
    """FastAPI dependency: yields a database session."""
    with Session(engine) as session:
        yield session
