"""SQLAlchemy base configuration and session management."""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool
from config.settings import get_settings

settings = get_settings()


def build_engine(database_url: str) -> Engine:
    """
    Create an engine for the given URL.

    PostgreSQL connections carry a server-side statement timeout so a stuck
    query fails the current item instead of wedging a scheduler job.
    In-memory SQLite (tests) shares one in-process connection; file-backed
    SQLite keeps a regular pool.
    """
    url = make_url(database_url)
    if url.get_backend_name() == 'sqlite':
        if url.database in (None, '', ':memory:'):
            return create_engine(
                database_url,
                connect_args={'check_same_thread': False},
                poolclass=StaticPool,
            )
        return create_engine(database_url, connect_args={'check_same_thread': False})

    connect_args = {}
    if url.get_backend_name() == 'postgresql':
        connect_args['options'] = f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}"
        connect_args['connect_timeout'] = settings.DB_POOL_TIMEOUT_SECONDS

    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT_SECONDS,
        connect_args=connect_args,
    )


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


# Create database engine
engine = build_engine(settings.DATABASE_URL)

# Session factory
SessionLocal = build_session_factory(engine)

# Base class for all models
Base = declarative_base()

def get_db() -> Session:
    """
    Dependency for FastAPI routes.
    Provides database session and ensures cleanup.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
