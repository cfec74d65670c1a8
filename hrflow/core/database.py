# =====================================================
# FILE: hrflow/core/database.py
# Database Connection and Session Management
# =====================================================

from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import NullPool, QueuePool, StaticPool
from typing import Generator
from urllib.parse import quote_plus
import logging

from hrflow.core.config import settings

logger = logging.getLogger(__name__)


def build_database_url() -> str:
    """Explicit DATABASE_URL first, otherwise MySQL from the DB_* components"""
    if settings.DATABASE_URL:
        return settings.DATABASE_URL

    # URL-encode the password to handle special characters like @ # $ etc.
    encoded_password = quote_plus(settings.DB_PASSWORD)
    return (
        f"mysql+pymysql://{settings.DB_USER}:{encoded_password}"
        f"@{settings.DB_HOST}:{settings.DB_PORT}/{settings.DB_NAME}"
    )


DATABASE_URL = build_database_url()

# Database engine configuration
engine_args = {
    "pool_pre_ping": settings.DB_POOL_PRE_PING,
    "echo": settings.DB_ECHO,
}

if DATABASE_URL.startswith("sqlite"):
    # One shared in-memory connection across threads (TestClient runs in a worker thread)
    engine_args["connect_args"] = {"check_same_thread": False}
    engine_args["poolclass"] = StaticPool
elif settings.DEBUG:
    engine_args["poolclass"] = NullPool
else:
    engine_args["pool_size"] = settings.DB_POOL_SIZE
    engine_args["max_overflow"] = settings.DB_MAX_OVERFLOW
    engine_args["poolclass"] = QueuePool

try:
    engine = create_engine(DATABASE_URL, **engine_args)
    logger.info(f"Database engine created for {engine.url.render_as_string(hide_password=True)}")
except Exception as e:
    logger.error(f"Failed to create database engine: {str(e)}")
    raise

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False
)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency for FastAPI.

    Commits when the request handler returns normally, rolls back otherwise,
    so a refused workflow action never leaves partial state behind.
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def check_connection() -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            logger.info("Database connection test successful")
            return True
    except Exception as e:
        logger.error(f"Database connection test failed: {str(e)}")
        return False


def init_db():
    """
    Create all tables in the database
    """
    # Register every model on Base.metadata before create_all
    import hrflow.models  # noqa: F401

    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Failed to create database tables: {str(e)}")
        raise
