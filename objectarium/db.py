import logging
import os
import time

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

logger = logging.getLogger(__name__)

DATABASE_URL = os.environ.get("DATABASE_URL")
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL env var not set")


def make_engine(url: str):
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def wait_for_db(max_attempts: int = 30, sleep_s: float = 1.0) -> None:
    last_exc = None
    for attempt in range(max_attempts):
        try:
            with engine.connect() as conn:
                conn.exec_driver_sql("SELECT 1")
            return
        except Exception as exc:
            last_exc = exc
            logger.warning("database not ready (attempt %d/%d): %s", attempt + 1, max_attempts, exc)
            time.sleep(sleep_s)
    raise RuntimeError(f"Database not ready after {max_attempts} attempts: {last_exc}")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
