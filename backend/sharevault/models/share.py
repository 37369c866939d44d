from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sharevault.db.base_class import Base
from sharevault.core.clock import utcnow


class ShareLink(Base):
    __tablename__ = "share_link"

    id = Column(Integer, primary_key=True, index=True)
    token = Column(String(256), unique=True, index=True, nullable=False)
    file_id = Column(Integer, ForeignKey("file_meta.id"), nullable=False, index=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=True)  # None: no time limit
    max_downloads = Column(Integer, nullable=True)  # None: unlimited
    current_downloads = Column(Integer, default=0, nullable=False)
    # Only revocation writes this, and only ever to False
    is_active = Column(Boolean, default=True, nullable=False)
