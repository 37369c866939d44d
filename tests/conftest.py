"""Pytest configuration for sharevault tests."""
import hashlib
import sys
from datetime import datetime, timedelta
from pathlib import Path

# Add backend/ to path for package imports without an install
_BACKEND = Path(__file__).parent.parent / 'backend'
if str(_BACKEND) not in sys.path:
    sys.path.insert(0, str(_BACKEND))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from sharevault import crud, schemas
from sharevault.api import deps
from sharevault.db.init_db import init_db
from sharevault.db.session import make_engine
from sharevault.main import app
from sharevault.services.ledger import AuditTrail
from sharevault.services.share_service import ShareLinkService
from sharevault.storage.blob_store import LocalBlobStore


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'sharevault.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(str(tmp_path / 'blobs'))


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 1, 1, 12, 0, 0))


@pytest.fixture
def audit():
    return AuditTrail()


@pytest.fixture
def service(db, blob_store, clock, audit):
    return ShareLinkService(db, blob_store, clock=clock, audit=audit, base_url='https://share.test')


@pytest.fixture
def store_file(db, blob_store):
    """Factory: put bytes in the blob store and record the file."""

    def _store(data: bytes = b'ciphertext bytes', filename: str = 'report.pdf'):
        path = blob_store.put(data)
        return crud.file.create(
            db,
            obj_in=schemas.FileMetaCreate(
                original_filename=filename,
                size_bytes=len(data),
                content_type='application/pdf',
                file_hash=hashlib.sha256(data).hexdigest(),
                storage_path=path,
            ),
        )

    return _store


@pytest.fixture
def stored_file(store_file):
    return store_file()


@pytest.fixture
def client(session_factory, blob_store, clock, audit):
    app.dependency_overrides[deps.get_session_factory] = lambda: session_factory
    app.dependency_overrides[deps.get_blob_store] = lambda: blob_store
    app.dependency_overrides[deps.get_clock] = lambda: clock
    app.dependency_overrides[deps.get_audit_trail] = lambda: audit
    yield TestClient(app)
    app.dependency_overrides.clear()
