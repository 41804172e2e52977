import asyncio
import contextlib
import logging
import threading
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy import create_engine, event, select
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from . import config
from .models import Base, Category
from .seed import seed

logger = logging.getLogger(__name__)


class Database:
    """
    Owns the engine and session factory for one store instance.
    The app keeps it on ``app.state.db``; tests build a fresh one each.
    """

    def __init__(self, url: str = config.DATABASE_URL, seed_data: bool = config.SEED_DATA,
                 echo: bool = config.SQL_ECHO):
        self.url = make_url(url)
        self.seed_data = seed_data
        kwargs = {"future": True, "echo": echo}
        if self.url.get_backend_name() == "sqlite":
            kwargs["connect_args"] = {"check_same_thread": False}
            if self.url.database in (None, "", ":memory:"):
                # one shared connection, otherwise each session gets an empty db
                kwargs["poolclass"] = StaticPool
        else:
            kwargs["pool_pre_ping"] = True

        # sessions over a single connection would share one transaction
        self.shared_connection = kwargs.get("poolclass") is StaticPool

        self.engine = create_engine(self.url, **kwargs)
        self.SessionLocal = sessionmaker(
            bind=self.engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True
        )
        self._initialized = False
        self._init_lock = threading.Lock()
        self._session_lock = None
        self._session_lock_loop = None

        if self.url.get_backend_name() == "sqlite":
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

    def init_db(self):
        """
        Create tables and seed rows (idempotent).
        Called at startup and again, cheaply, before the first request.
        """
        if self._initialized:
            return
        with self._init_lock:
            if self._initialized:
                return
            Base.metadata.create_all(bind=self.engine)
            if self.seed_data:
                with self.SessionLocal.begin() as s:
                    if s.scalar(select(Category.id).limit(1)) is None:
                        seed(s)
                        logger.info("Seeded catalog store at %s", self.url.render_as_string())
            self._initialized = True

    def session_guard(self):
        """
        Async context held for a whole request session.
        Over a shared connection it admits one session at a time; otherwise a no-op.
        """
        if not self.shared_connection:
            return contextlib.nullcontext()
        loop = asyncio.get_running_loop()
        if self._session_lock_loop is not loop:
            self._session_lock = asyncio.Lock()
            self._session_lock_loop = loop
        return self._session_lock

    def dispose(self):
        self.engine.dispose()


def _enable_sqlite_foreign_keys(dbapi_conn, _record):
    cur = dbapi_conn.cursor()
    cur.execute("PRAGMA foreign_keys=ON")
    cur.close()


async def get_session(request: Request) -> AsyncIterator[Session]:
    """
    FastAPI dependency: yields a session bound to the app's Database,
    commits on success, rolls back on error, always closes.
    """
    db: Database = request.app.state.db
    db.init_db()
    async with db.session_guard():
        s = db.SessionLocal()
        try:
            yield s
            s.commit()
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()
