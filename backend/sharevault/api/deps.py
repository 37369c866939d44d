from functools import lru_cache
from typing import Callable, Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from sharevault.core.clock import Clock, utcnow
from sharevault.core.config import settings
from sharevault.db.session import SessionLocal
from sharevault.services.ledger import AuditTrail, audit_trail
from sharevault.services.share_service import ShareLinkService
from sharevault.storage.blob_store import BlobStore, LocalBlobStore


def get_session_factory() -> Callable[[], Session]:
    return SessionLocal


def get_db(session_factory: Callable[[], Session] = Depends(get_session_factory)) -> Generator:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@lru_cache()
def get_blob_store() -> BlobStore:
    return LocalBlobStore(settings.UPLOAD_DIR)


def get_clock() -> Clock:
    return utcnow


def get_audit_trail() -> AuditTrail:
    return audit_trail


def get_share_service(
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    clock: Clock = Depends(get_clock),
    audit: AuditTrail = Depends(get_audit_trail),
) -> ShareLinkService:
    return ShareLinkService(db, blob_store, clock=clock, audit=audit)
