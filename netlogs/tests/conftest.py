import pytest
from fastapi.testclient import TestClient

from netlogs.api.server import create_app
from netlogs.core.config import Settings
from netlogs.core.context import RequestContext
from netlogs.core.database import create_db_engine, make_session_factory
from netlogs.models import Base


@pytest.fixture
def db_engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'netlogs.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return make_session_factory(db_engine)


@pytest.fixture
def ctx():
    return RequestContext(request_id='test-request')


@pytest.fixture
def config():
    cfg = Settings()
    cfg.MAX_BATCH_SIZE = 100
    cfg.MAX_BODY_BYTES = 5 * 1024 * 1024
    cfg.QUERY_DEFAULT_LIMIT = 1000
    cfg.QUERY_MAX_LIMIT = 10000
    cfg.QUERY_CACHE_TTL_SECONDS = 60
    cfg.STORAGE_TIMEOUT_SECONDS = 5
    return cfg


@pytest.fixture
def app(config, session_factory):
    return create_app(config=config, session_factory=session_factory)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
