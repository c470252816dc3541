# core/db.py
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from core.config import DATABASE_URL, SQL_ECHO
from core.logger import get_logger

logger = get_logger(__name__)

Base = declarative_base()


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:")


class Database:
    """
    Explicit database handle.

    Construct it with a connection URL, call open() (or use it as a context
    manager) and hand sessions out with `with database.session() as db:`.
    """

    def __init__(self, url: str = DATABASE_URL, echo: bool = SQL_ECHO):
        self.url = url
        self.echo = echo
        self.engine = None
        self.SessionLocal = None

    @property
    def is_open(self) -> bool:
        return self.engine is not None

    def open(self):
        if self.is_open:
            return self

        engine_args = {"echo": self.echo, "future": True}
        # Disable check_same_thread only for SQLite
        if self.url.startswith("sqlite"):
            engine_args["connect_args"] = {"check_same_thread": False}
            # An in-memory database lives as long as its single connection
            if _is_memory_sqlite(self.url):
                engine_args["poolclass"] = StaticPool

        engine = create_engine(self.url, **engine_args)
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            engine.dispose()
            logger.error(f"Database connection failed: {e}")
            raise

        self.engine = engine
        # expire_on_commit=False keeps returned records readable after commit
        self.SessionLocal = sessionmaker(
            bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True
        )
        logger.info(f"Connected to database {engine.url.render_as_string(hide_password=True)}")
        return self

    def close(self):
        if not self.is_open:
            return
        self.engine.dispose()
        self.engine = None
        self.SessionLocal = None
        logger.info("Database connection closed")

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def create_tables(self):
        import models.food_item  # noqa: F401  (registers the tables on Base.metadata)
        Base.metadata.create_all(bind=self._require_engine())

    def drop_tables(self):
        import models.food_item  # noqa: F401
        Base.metadata.drop_all(bind=self._require_engine())

    @contextmanager
    def session(self):
        """Yield a session; commit on success, roll back on error, always close."""
        if not self.is_open:
            raise RuntimeError("Database is not open. Call open() first.")
        db = self.SessionLocal()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _require_engine(self):
        if not self.is_open:
            raise RuntimeError("Database is not open. Call open() first.")
        return self.engine
