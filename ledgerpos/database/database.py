from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from ledgerpos.core.config import settings
import logging

logger = logging.getLogger(__name__)

engine_options = {
    "pool_pre_ping": True,
    "echo": settings.DB_ECHO,
}
if settings.database_url.startswith("sqlite"):
    # SQLite is only used for local runs and tests
    engine_options["connect_args"] = {"check_same_thread": False}
else:
    engine_options["pool_size"] = 10
    engine_options["max_overflow"] = 20

engine = create_engine(settings.database_url, **engine_options)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Yield one database session per request."""
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database error: {e}")
        db.rollback()
        raise
    finally:
        db.close()
