# marketplace/database.py
import logging

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base, Session

from marketplace.config.settings import SETTINGS

logger = logging.getLogger(__name__)

DATABASE_URL = SETTINGS.database_url


def make_engine(url: str, **kwargs):
    """
    SQLite 는 스레드 체크 해제 + FK 강제, 그 외 DB 는 커넥션 풀 크기 지정.
    """
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        kwargs.setdefault("pool_size", SETTINGS.db_pool_size)
        kwargs.setdefault("pool_pre_ping", True)

    eng = create_engine(url, **kwargs)

    if url.startswith("sqlite"):
        # bids.auction_id ON DELETE CASCADE 가 동작하려면 필요
        @event.listens_for(eng, "connect")
        def _sqlite_fk_on(dbapi_conn, _record):
            cur = dbapi_conn.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()

    return eng


engine = make_engine(DATABASE_URL)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()


def get_db():
    db: Session = SessionLocal()
    try:
        yield db
    finally:
        db.close()


logger.debug("Using database: %s", DATABASE_URL)
