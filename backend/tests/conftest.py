import pytest
from fastapi.testclient import TestClient

from tabcatalog.db import init_db, make_engine, make_session_factory
from tabcatalog.main import create_app


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'tabs.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def client(tmp_path):
    app = create_app(f"sqlite:///{tmp_path / 'api.db'}", seed=False)
    with TestClient(app) as c:
        yield c
