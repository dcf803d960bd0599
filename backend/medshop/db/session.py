"""Database session. SQLite by default, any SQLAlchemy URL works."""
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from medshop.core.config import settings


def make_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        # SQLite: NullPool for thread-safety, one connection per session
        from sqlalchemy.pool import NullPool
        eng = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=NullPool,
        )
        enable_sqlite_foreign_keys(eng)
        return eng
    # PostgreSQL/MySQL: QueuePool with sensible defaults
    return create_engine(
        url,
        pool_size=5,  # Number of persistent connections
        max_overflow=10,  # Max temporary connections
        pool_timeout=30,  # Seconds to wait for connection
        pool_recycle=3600,  # Recycle connections after 1 hour
        pool_pre_ping=True,  # Verify connection health
    )


def enable_sqlite_foreign_keys(eng: Engine) -> None:
    """SQLite ignores ON DELETE CASCADE unless the pragma is on per connection."""

    @event.listens_for(eng, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = make_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
