import logging
import os
from typing import Iterator

from fastapi import HTTPException, Request
from sqlalchemy import create_engine, text
from sqlalchemy.exc import DataError, IntegrityError
from sqlalchemy.orm import sessionmaker, Session

logger = logging.getLogger(__name__)

DB_USER = os.getenv("DB_USER", "app")
DB_PASS = os.getenv("DB_PASS", "app")
DB_NAME = os.getenv("DB_NAME", "appdb")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_SCHEMA = os.getenv("DB_SCHEMA", "storefront")

# Use psycopg3; set search_path so unqualified tables use our schema.
# DATABASE_URL, when set, wins (e.g. sqlite for local runs).
options = f"-csearch_path={DB_SCHEMA},public"
DATABASE_URL = os.getenv("DATABASE_URL") or (
    f"postgresql+psycopg://{DB_USER}:{DB_PASS}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
    f"?options={options}"
)


class Database:
    """
    Handle on the relational store: one engine and one session factory.
    Built once and handed to create_app(); handlers reach it through the
    get_session dependency, never through module globals.
    """

    def __init__(self, url: str = DATABASE_URL, schema: str = DB_SCHEMA, **engine_kwargs):
        engine_kwargs.setdefault("pool_pre_ping", True)
        self.url = url
        self.schema = schema
        self.engine = create_engine(url, future=True, **engine_kwargs)
        self.SessionLocal = sessionmaker(
            bind=self.engine, autoflush=False, autocommit=False, future=True
        )

    def init_db(self) -> None:
        """
        Ensure the schema exists (PostgreSQL only), then create tables (idempotent).
        Called once at application startup.
        """
        if self.engine.dialect.name == "postgresql":
            with self.engine.begin() as conn:
                # Quote the schema to avoid edge cases with names
                conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{self.schema}"'))
        # Import here to avoid circulars
        from .models import Base  # noqa
        Base.metadata.create_all(bind=self.engine)
        logger.info("tables ready on %s", self.engine.url.render_as_string(hide_password=True))

    def dispose(self) -> None:
        self.engine.dispose()


def get_session(request: Request) -> Iterator[Session]:
    """
    FastAPI dependency: yields a DB session, commits on success, rolls back on error.
    The whole request is one transaction, so multi-row writes are all-or-nothing.
    """
    db: Database = request.app.state.db
    s = db.SessionLocal()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()


def flush_or_400(session: Session) -> None:
    """
    Flush pending writes; rows the store refuses (dangling category_id,
    numeric overflow) are the caller's fault and become a 400.
    """
    try:
        session.flush()
    except (IntegrityError, DataError):
        session.rollback()
        raise HTTPException(status_code=400, detail="Invalid input")
