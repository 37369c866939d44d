from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from sharevault.core.errors import DuplicateToken, PersistenceError
from sharevault.crud.base import CRUDBase
from sharevault.models.share import ShareLink
from sharevault.schemas.share import ShareLinkRecord


@dataclass(frozen=True)
class ConsumedRow:
    """Row state right after a successful increment."""
    id: int
    file_id: int
    current_downloads: int
    max_downloads: Optional[int]


class CRUDShareLink(CRUDBase[ShareLink, ShareLinkRecord]):
    def get_by_token(self, db: Session, *, token: str) -> Optional[ShareLink]:
        try:
            # populate_existing: never answer from a stale identity-map copy
            return (
                db.query(ShareLink)
                .filter(ShareLink.token == token)
                .populate_existing()
                .first()
            )
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError("failed to look up share link") from e

    def get_multi_by_file(
        self, db: Session, *, file_id: int, skip: int = 0, limit: int = 100
    ) -> List[ShareLink]:
        try:
            return (
                db.query(ShareLink)
                .filter(ShareLink.file_id == file_id)
                .order_by(ShareLink.created_at, ShareLink.id)
                .offset(skip)
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"failed to list share links for file {file_id}") from e

    def create(self, db: Session, *, obj_in: ShareLinkRecord) -> ShareLink:
        db_obj = ShareLink(**obj_in.model_dump(), current_downloads=0, is_active=True)
        try:
            db.add(db_obj)
            db.commit()
        except IntegrityError as e:
            db.rollback()
            if self.get_by_token(db, token=obj_in.token) is not None:
                raise DuplicateToken() from e
            raise PersistenceError("failed to create share link") from e
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError("failed to create share link") from e
        db.refresh(db_obj)
        return db_obj

    def consume(self, db: Session, *, token: str, now: datetime) -> Optional[ConsumedRow]:
        """
        Spend one download in a single conditional UPDATE.

        The policy check and the increment are the same statement, so two
        concurrent callers can never both take the last slot. Returns None
        when no row qualified.
        """
        stmt = (
            update(ShareLink)
            .where(
                ShareLink.token == token,
                ShareLink.is_active.is_(True),
                or_(ShareLink.expires_at.is_(None), ShareLink.expires_at > now),
                or_(
                    ShareLink.max_downloads.is_(None),
                    ShareLink.current_downloads < ShareLink.max_downloads,
                ),
            )
            .values(current_downloads=ShareLink.current_downloads + 1)
            .returning(
                ShareLink.id,
                ShareLink.file_id,
                ShareLink.current_downloads,
                ShareLink.max_downloads,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            row = db.execute(stmt).first()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError("failed to consume share link") from e
        # Loaded copies of the row are stale now
        db.expire_all()
        if row is None:
            return None
        return ConsumedRow(
            id=row.id,
            file_id=row.file_id,
            current_downloads=row.current_downloads,
            max_downloads=row.max_downloads,
        )

    def revoke(self, db: Session, *, id: int) -> Optional[ShareLink]:
        stmt = (
            update(ShareLink)
            .where(ShareLink.id == id)
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        try:
            result = db.execute(stmt)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"failed to revoke share link {id}") from e
        if result.rowcount == 0:
            return None
        db.expire_all()
        return self.get(db, id=id)


share_link = CRUDShareLink(ShareLink)
