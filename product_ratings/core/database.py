# product_ratings/core/database.py

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import settings
from .query_logger import setup_query_logging

DATABASE_URL = settings.database_url

# Create engine with optional echo for development
engine_kwargs = {
    "echo": settings.log_sql_queries,
    "pool_pre_ping": True,
}

if DATABASE_URL.startswith("sqlite"):
    # Wait on a locked database instead of failing immediately
    engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
    if DATABASE_URL in {"sqlite://", "sqlite:///:memory:"}:
        engine_kwargs["poolclass"] = StaticPool
else:
    engine_kwargs["pool_size"] = settings.db_pool_size
    engine_kwargs["max_overflow"] = settings.db_max_overflow

engine = create_engine(
    DATABASE_URL,
    **engine_kwargs,
)


def configure_sqlite_transactions(engine):
    """
    Make every SQLite transaction take the write lock when it begins.

    SQLite ignores SELECT ... FOR UPDATE, so without this a review read
    before computing an update delta could be changed by another writer
    before the delta is applied. PostgreSQL engines are left untouched.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def disable_driver_transactions(dbapi_conn, connection_record):
        # Let SQLAlchemy emit BEGIN itself
        dbapi_conn.isolation_level = None

    @event.listens_for(engine, "begin")
    def begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


configure_sqlite_transactions(engine)

# Setup query logging in development
setup_query_logging(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Create all tables registered on ``Base``."""
    # Import models so they register with the metadata
    from product_ratings.modules.reviews.models import review_models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
