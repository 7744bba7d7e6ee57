from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool
from contextlib import contextmanager
from fastapi import Request
import logging
import os

from models import Base
# Import RBAC models to register with Base.metadata
import models_rbac  # noqa: F401
from models_rbac import User
from auth_utils import hash_password
from settings import Settings

logger = logging.getLogger(__name__)


def get_engine(database_url: str):
    """Create SQLAlchemy engine for the configured database URL.

    SQLite files get a connection pool and foreign key enforcement; an
    in-memory SQLite database shares one connection so every session sees
    the same tables. Other backends (MySQL via PyMySQL) use a pre-pinged pool.
    """
    url = make_url(database_url)
    is_sqlite = url.get_backend_name() == "sqlite"

    if is_sqlite and url.database and url.database != ":memory:":
        directory = os.path.dirname(url.database)
        if directory:
            os.makedirs(directory, exist_ok=True)

    if is_sqlite and (not url.database or url.database == ":memory:"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    elif is_sqlite:
        engine = create_engine(
            database_url,
            connect_args={
                "check_same_thread": False,
                "timeout": 30,
            },
            poolclass=QueuePool,
            pool_size=10,
            max_overflow=20,
            pool_pre_ping=True,
            pool_recycle=3600
        )
    else:
        engine = create_engine(
            database_url,
            poolclass=QueuePool,
            pool_size=10,
            max_overflow=20,
            pool_pre_ping=True,
            pool_recycle=3600
        )

    if is_sqlite:
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            # SQLite leaves foreign keys off unless asked
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA busy_timeout=30000")  # 30 seconds
            cursor.close()

    return engine


def init_database(engine):
    """Create all tables"""
    Base.metadata.create_all(engine)
    logger.info(f"Database schema ready ({engine.url.get_backend_name()})")


def bootstrap_platform_admin(session: Session, email: str, password: str) -> None:
    """Create the first platform admin account if it does not exist yet"""
    if not email or not password:
        return

    existing = session.query(User).filter(User.email == email.lower()).first()
    if existing:
        return

    admin = User(
        name="Platform Admin",
        email=email.lower(),
        password_hash=hash_password(password),
        role="admin",
        account_role="admin",
        status="active",
    )
    session.add(admin)
    session.commit()
    logger.info(f"Bootstrapped platform admin {admin.email}")


@contextmanager
def get_session(engine):
    """Context manager for database sessions"""
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def transaction(db: Session):
    """
    Commit everything done inside the block, or nothing.

    Usage:
        with transaction(db):
            db.add(parent)
            db.flush()
            db.add(child)
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def get_db(request: Request):
    """
    FastAPI dependency for database sessions

    Usage:
        @router.get("/api/endpoint")
        def endpoint(db: Session = Depends(get_db)):
            # Use db here
    """
    session_factory = getattr(request.app.state, "session_factory", None)
    if session_factory is None:
        raise RuntimeError("Database not initialized. Build the app with create_app().")

    db = session_factory()
    try:
        yield db
    finally:
        db.close()


def get_settings(request: Request) -> Settings:
    """FastAPI dependency returning the Settings the app was built with"""
    return request.app.state.settings
