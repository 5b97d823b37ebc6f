from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from .config import settings


def create_db_engine(url=None, pool_timeout=None):
    url = url or settings.DATABASE_URL
    if url.startswith('sqlite'):
        # SQLite has no pool sizing; threads share the file through separate connections
        db_engine = create_engine(
            url,
            echo=False,
            connect_args={'check_same_thread': False, 'timeout': settings.STORAGE_TIMEOUT_SECONDS},
        )

        @event.listens_for(db_engine, 'connect')
        def _enable_wal(dbapi_conn, _record):
            cursor = dbapi_conn.cursor()
            cursor.execute('PRAGMA journal_mode=WAL')
            cursor.close()

        return db_engine

    return create_engine(
        url,
        echo=False,
        pool_size=20,          # duplicate lookups fan out up to MAX_WORKERS connections per request
        max_overflow=20,
        pool_timeout=pool_timeout or settings.DB_POOL_TIMEOUT,
        pool_pre_ping=True,
    )


def make_session_factory(db_engine):
    return sessionmaker(bind=db_engine, autoflush=False, autocommit=False, expire_on_commit=False)


engine = create_db_engine()
SessionLocal = make_session_factory(engine)
