import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from peerlearn.core.config import settings

logger = logging.getLogger(__name__)

def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # single shared connection so an in-memory database survives across sessions
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    return {"pool_pre_ping": True}

engine = create_engine(settings.DATABASE_URL, future=True, echo=settings.DATABASE_ECHO, **_engine_options(settings.DATABASE_URL))
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db():
    """Create tables if they don't exist."""
    from peerlearn.models.orm import Base
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured")

def close_db():
    engine.dispose()
