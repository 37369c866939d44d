from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sharevault.core.errors import PersistenceError
from sharevault.models.download_log import DownloadLog


class CRUDDownloadLog:
    def append(
        self,
        db: Session,
        *,
        share_link_id: int,
        timestamp: datetime,
        user_agent: Optional[str] = None,
        source_address: Optional[str] = None,
    ) -> DownloadLog:
        db_obj = DownloadLog(
            share_link_id=share_link_id,
            timestamp=timestamp,
            user_agent=user_agent,
            source_address=source_address,
        )
        try:
            db.add(db_obj)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"failed to append download log for link {share_link_id}") from e
        return db_obj

    def get_by_share_link(
        self, db: Session, *, share_link_id: int, skip: int = 0, limit: int = 100
    ) -> List[DownloadLog]:
        try:
            return (
                db.query(DownloadLog)
                .filter(DownloadLog.share_link_id == share_link_id)
                .order_by(DownloadLog.timestamp, DownloadLog.id)
                .offset(skip)
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"failed to list download logs for link {share_link_id}") from e


download_log = CRUDDownloadLog()
