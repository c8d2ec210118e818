from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from strenx.config import DATABASE_URL, DB_TIMEOUT_SECONDS

# Render/Heroku hand out postgres://, SQLAlchemy wants postgresql://
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

IS_POSTGRES = DATABASE_URL.startswith("postgresql")
IS_SQLITE_MEMORY = DATABASE_URL in ("sqlite://", "sqlite:///:memory:")

# --- ENGINE & SESSION ---
if IS_POSTGRES:
    # Production: PostgreSQL with bounded pool + connect waits
    engine = create_engine(
        DATABASE_URL,
        pool_size=20,
        max_overflow=10,
        pool_timeout=DB_TIMEOUT_SECONDS,
        pool_recycle=1800,
        pool_pre_ping=True,
        connect_args={"connect_timeout": DB_TIMEOUT_SECONDS},
    )
elif IS_SQLITE_MEMORY:
    # Tests: one shared connection so every session sees the same database
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    # Development: SQLite file
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False, "timeout": DB_TIMEOUT_SECONDS},
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


# --- DEPENDENCY ---
def get_db():
    """
    Dependency for FastAPI routes.
    Yields a database session and closes it after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    # models must be imported so their tables are registered on Base.metadata
    from strenx import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
