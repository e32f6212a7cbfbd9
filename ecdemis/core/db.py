# ecdemis/core/db.py
from contextlib import contextmanager
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from ecdemis.core.config import settings


def configure_sqlite(engine):
    """
    pysqlite does its own transaction handling, which breaks SAVEPOINT.
    Take over BEGIN ourselves and make it IMMEDIATE so concurrent writers
    queue on the database lock instead of failing on upgrade.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def build_engine(url: str):
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            future=True,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        return configure_sqlite(engine)
    return create_engine(url, pool_pre_ping=True, future=True)


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

@contextmanager
def db_session():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

# FastAPI dependency
def get_db():
    with db_session() as db:
        yield db

def create_tables(bind=None):
    """Create all tables in the database (dev/test only; production uses alembic)"""
    from ecdemis.models import Base

    Base.metadata.create_all(bind=bind or engine)
