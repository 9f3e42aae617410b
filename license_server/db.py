import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

CONNECTED = "connected"
DISCONNECTED = "disconnected"


class Base(DeclarativeBase):
    pass


class LicenseStore:
    """Persistence handle shared by every request.

    Owns the engine and the session factory. Routes reach it through
    ``current_app.extensions["license_store"]`` instead of a module global.
    """

    def __init__(self, database_url: str, **engine_options):
        if database_url.startswith("sqlite"):
            engine_options.setdefault("connect_args", {"check_same_thread": False})
            if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
                # one shared connection, otherwise every session sees an empty database
                engine_options.setdefault("poolclass", StaticPool)
        else:
            engine_options.setdefault("pool_pre_ping", True)
            engine_options.setdefault("pool_recycle", 3600)
        self.database_url = database_url
        self.engine = create_engine(database_url, **engine_options)
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)

    def create_all(self) -> None:
        # models must be imported so their tables are registered on Base
        from license_server import models  # noqa: F401
        Base.metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    def status(self) -> str:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return CONNECTED
        except SQLAlchemyError as e:
            logger.warning("store health probe failed: %s", e.__class__.__name__)
            return DISCONNECTED

    @contextmanager
    def session(self):
        """Yield a session that commits on success and rolls back on error."""
        db = self.SessionLocal()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def dispose(self) -> None:
        self.engine.dispose()
