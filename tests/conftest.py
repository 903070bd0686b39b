import pytest
from fastapi.testclient import TestClient

from launch_tracker.config import Settings
from launch_tracker.db import init_db, make_engine
from launch_tracker.main import create_app
from launch_tracker.reconciler import StatusReconciler
from launch_tracker.store import DocumentStore, StoreError


class FlakyStore(DocumentStore):
    """fail_writes=True 이면 모든 쓰기가 StoreError."""

    fail_writes = False

    def _check(self):
        if self.fail_writes:
            raise StoreError("simulated write failure")

    def add(self, obj):
        self._check()
        return super().add(obj)

    def update(self, model, doc_id, **fields):
        self._check()
        return super().update(model, doc_id, **fields)

    def delete(self, model, doc_id):
        self._check()
        return super().delete(model, doc_id)


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'launch_tracker_test.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def store(engine):
    return FlakyStore(engine)


@pytest.fixture
def reconciler(store):
    r = StatusReconciler(store)
    r.attach()
    yield r
    r.detach()


@pytest.fixture
def client(engine):
    app = create_app(Settings(database_url="sqlite://"), engine=engine)
    with TestClient(app) as c:
        yield c
