"""Store context: engine and session factory, explicitly opened and disposed.

The API creates one StoreContext in its lifespan and keeps it on app.state;
CLIs build their own. Nothing here is created at import time.
"""

from collections.abc import Generator

from fastapi import Request
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """Let SQLAlchemy emit BEGIN itself so SAVEPOINT works on pysqlite."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):  # noqa: ANN001
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):  # noqa: ANN001
        conn.exec_driver_sql("BEGIN")


class StoreContext:
    """Owns the engine and hands out sessions. Call dispose() on shutdown."""

    def __init__(self, database_url: str, echo: bool = False) -> None:
        if database_url.startswith("sqlite://"):
            kwargs: dict = {"connect_args": {"check_same_thread": False}}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                # One shared connection so every session sees the same in-memory database.
                kwargs["poolclass"] = StaticPool
            self.engine = create_engine(database_url, echo=echo, **kwargs)
            _enable_sqlite_savepoints(self.engine)
        else:
            self.engine = create_engine(database_url, pool_pre_ping=True, echo=echo)
        self.session_factory = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine
        )

    def session(self) -> Session:
        return self.session_factory()

    def create_all(self) -> None:
        """Create every table from the ORM metadata (tests and local sqlite runs)."""
        from app.models import Base

        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


def get_db(request: Request) -> Generator[Session, None, None]:
    """Dependency that yields a DB session from the app's StoreContext and closes it when done."""
    store: StoreContext = request.app.state.store
    db = store.session()
    try:
        yield db
    finally:
        db.close()


def check_db_connected(db: Session) -> bool:
    """Run a trivial query to verify the database is reachable."""
    try:
        db.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
